"""
Data models for tracked secrets and their positions within files.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

# Anchors look like @KeeShepherd(<secret name>)
ANCHOR_PREFIX = "@KeeShepherd"

ANCHOR_REGEX = re.compile(re.escape(ANCHOR_PREFIX) + r"\((.+?)\)")

# Reserved scope for secrets that are not bound to a file (env variables, shortcuts)
SHORTCUTS_SCOPE = "|KeeShepherdSecretShortcuts|"


def anchor_for(secret_name: str) -> str:
    """Return the anchor text standing in for a secret's value."""
    return f"{ANCHOR_PREFIX}({secret_name})"


class SecretType(Enum):
    """Where a secret's value comes from. Opaque to the text algorithms."""

    UNKNOWN = 0
    AZURE_KEY_VAULT = 1
    AZURE_STORAGE = 2
    RESOURCE_MANAGER_REST_API = 3
    AZURE_SERVICE_BUS = 4
    AZURE_EVENT_HUBS = 5
    AZURE_COSMOS_DB = 6
    AZURE_REDIS_CACHE = 7
    AZURE_APP_INSIGHTS = 8
    AZURE_EVENT_GRID = 9
    AZURE_MAPS = 10
    AZURE_COGNITIVE_SERVICES = 11
    AZURE_SEARCH = 12
    AZURE_SIGNALR = 13
    AZURE_DEVOPS_PAT = 14
    CODESPACES = 15
    SECRET_STORAGE = 16
    ENVIRONMENT = 17


class ControlType(Enum):
    """How much the tool is allowed to do with a secret's value."""

    SUPERVISED = 0
    MANAGED = 1
    ENV_VARIABLE = 2


@dataclass
class SecretReference:
    """Enough information for a value provider to fetch a secret's value."""

    name: str
    type: SecretType
    properties: Optional[dict[str, Any]] = None


@dataclass
class Secret:
    """
    Metadata about one tracked secret.

    The plaintext value is never stored; ``hash`` is its salted fingerprint
    and ``length`` its character count at the time it was registered.
    """

    name: str
    type: SecretType
    control_type: ControlType
    file_path: str
    hash: str
    length: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    properties: Optional[dict[str, Any]] = None

    @property
    def is_managed(self) -> bool:
        return self.control_type == ControlType.MANAGED

    def to_reference(self) -> SecretReference:
        return SecretReference(name=self.name, type=self.type, properties=self.properties)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "controlType": self.control_type.value,
            "filePath": self.file_path,
            "hash": self.hash,
            "length": self.length,
            "timestamp": self.timestamp.isoformat(),
            "properties": self.properties,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Secret":
        return cls(
            name=data["name"],
            type=SecretType(data.get("type", 0)),
            control_type=ControlType(data.get("controlType", 0)),
            file_path=data.get("filePath", ""),
            hash=data["hash"],
            length=int(data["length"]),
            timestamp=datetime.fromisoformat(data["timestamp"])
            if data.get("timestamp")
            else datetime.now(timezone.utc),
            properties=data.get("properties"),
        )


@dataclass
class PositionMapEntry:
    """
    Claim that secret ``name`` currently sits at ``[pos, pos + length)``.

    ``pos`` is measured in fully-unstashed coordinates, i.e. as if every
    anchor preceding it in the text had been replaced by its value.
    ``length`` is always the plaintext length, even for a stashed secret.
    Entries are a cache and may be stale.
    """

    name: str
    hash: str
    pos: int
    length: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "hash": self.hash, "pos": self.pos, "length": self.length}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PositionMapEntry":
        return cls(
            name=data["name"],
            hash=data["hash"],
            pos=int(data["pos"]),
            length=int(data["length"]),
        )


@dataclass(frozen=True)
class TextRange:
    """Half-open character range ``[start, end)`` within a text."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start
