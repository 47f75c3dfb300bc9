"""
Local secret storage.

A JSON document of ``{key: value}`` kept under the storage root and only
readable by the current user. Secrets of type SECRET_STORAGE point into it
through ``properties["key"]``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List

from keeshepherd.core.models import SecretReference, SecretType

from .errors import ValueNotFoundError, ValueProviderError
from .interface import ValueProviderInterface

logger = logging.getLogger(__name__)

SECRET_STORAGE_FILE_NAME = "secret-storage.json"


class LocalSecretStorageValueProvider(ValueProviderInterface):
    """Serves SECRET_STORAGE secrets from a local JSON file."""

    def __init__(self, storage_path: Path | str):
        self._path = Path(storage_path)

    @property
    def secret_type(self) -> SecretType:
        return SecretType.SECRET_STORAGE

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            content = self._path.read_text(encoding="utf-8")
            return json.loads(content) if content.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            raise ValueProviderError(f"Failed to read secret storage {self._path}: {e}") from e

    def _write(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        try:
            fd = os.open(str(tmp_path), os.O_CREAT | os.O_TRUNC | os.O_WRONLY, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise ValueProviderError(f"Failed to write secret storage {self._path}: {e}") from e

    async def get_value(self, reference: SecretReference) -> str:
        key = (reference.properties or {}).get("key") or reference.name
        data = self._read()
        if key not in data:
            raise ValueNotFoundError(f"Secret storage has no key {key}")
        return data[key]

    def store_value(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        logger.info(f"Stored secret storage key {key}")

    def delete_value(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        logger.info(f"Deleted secret storage key {key}")
        return True

    def list_keys(self) -> List[str]:
        return sorted(self._read())
