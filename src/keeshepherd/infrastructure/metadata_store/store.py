"""
Secret Metadata Store implementation.

SQLite-based storage for secret records: names, fingerprints, lengths and
value-provider properties. Plaintext values are never stored.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from keeshepherd.core.errors import SecretNameConflictError, SecretTooShortError
from keeshepherd.core.models import SHORTCUTS_SCOPE, ControlType, Secret, SecretType
from keeshepherd.core.path_utils import parent_of

from .interface import SecretStoreInterface
from .models import MetadataStoreError
from .queries import SecretQueryExecutor
from .schema import initialize_schema, migrate_schema

logger = logging.getLogger(__name__)


def _row_to_secret(row: sqlite3.Row) -> Secret:
    timestamp = datetime.fromisoformat(row["timestamp"])
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return Secret(
        name=row["name"],
        type=SecretType(row["type"]),
        control_type=ControlType(row["control_type"]),
        file_path=row["file_path"],
        hash=row["hash"],
        length=row["length"],
        timestamp=timestamp,
        properties=json.loads(row["properties"]) if row["properties"] else None,
    )


class SqliteSecretStore(SecretStoreInterface):
    """
    SQLite-based secret metadata storage.

    File paths are matched case-insensitively, except inside the shortcuts
    scope where they are shortcut folder names and compared exactly.
    """

    def __init__(self, db_path: Path | str, machine_name: str, min_secret_length: int = 5):
        self._db_path = Path(db_path)
        self._machine_name = machine_name
        self._min_secret_length = min_secret_length
        self._conn: Optional[sqlite3.Connection] = None
        self._query: Optional[SecretQueryExecutor] = None
        self._initialized = False

    @property
    def machine_name(self) -> str:
        return self._machine_name

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA busy_timeout=5000;")
            self._query = SecretQueryExecutor(self._conn)
        return self._conn

    def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return
        conn = self._get_connection()
        try:
            initialize_schema(conn)
            migrate_schema(conn)
            self._initialized = True
            logger.info(f"Initialized secret store: {self._db_path}")
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to initialize schema: {e}") from e

    def _ensure_query(self) -> SecretQueryExecutor:
        """Ensure query executor is available."""
        self.initialize()
        assert self._query is not None
        return self._query

    def _scope_of(self, secret: Secret) -> str:
        if secret.control_type == ControlType.ENV_VARIABLE:
            return SHORTCUTS_SCOPE
        return self._machine_name

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    def get_machine_names(self) -> List[str]:
        try:
            names = self._ensure_query().get_machine_names()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get machine names: {e}") from e
        if self._machine_name not in names:
            names.insert(0, self._machine_name)
        return names

    def get_folders(self, machine_name: str) -> List[str]:
        try:
            query = self._ensure_query()
            if machine_name == SHORTCUTS_SCOPE:
                return query.get_file_paths(
                    SHORTCUTS_SCOPE, ControlType.ENV_VARIABLE.value, exclude=False
                )
            paths = query.get_file_paths(
                machine_name, ControlType.ENV_VARIABLE.value, exclude=True
            )
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get folders: {e}") from e

        folders: List[str] = []
        for file_path in paths:
            folder = parent_of(file_path)
            if folder not in folders:
                folders.append(folder)
        return folders

    def list_secrets(
        self, path: str, exact_match: bool, machine_name: Optional[str] = None
    ) -> List[Secret]:
        machine_name = machine_name or self._machine_name
        try:
            rows = self._ensure_query().get_secrets_by_path(
                machine_name,
                path,
                exact_match,
                case_sensitive=machine_name == SHORTCUTS_SCOPE,
            )
            return [_row_to_secret(row) for row in rows]
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to list secrets: {e}") from e

    def get_all_secrets(self) -> List[Secret]:
        try:
            return [_row_to_secret(row) for row in self._ensure_query().get_all_secrets()]
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to get all secrets: {e}") from e

    def find_by_name(self, name: str) -> List[Secret]:
        try:
            return [_row_to_secret(row) for row in self._ensure_query().get_secrets_by_name(name)]
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to find secrets by name: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    def add_secret(self, secret: Secret) -> None:
        if secret.length < self._min_secret_length:
            raise SecretTooShortError(
                f"Secret should be at least {self._min_secret_length} symbols long"
            )

        scope = self._scope_of(secret)
        try:
            query = self._ensure_query()
            existing = query.get_conflicting_hashes(
                scope, secret.file_path, secret.name, case_sensitive=scope == SHORTCUTS_SCOPE
            )
            if any(h != secret.hash for h in existing):
                raise SecretNameConflictError(
                    f"A secret named '{secret.name}' with a different hash already exists"
                )

            query.upsert_secret(
                scope,
                secret.file_path,
                secret.name,
                secret.type.value,
                secret.control_type.value,
                secret.hash,
                secret.length,
                secret.timestamp.isoformat(),
                json.dumps(secret.properties) if secret.properties else None,
            )
            logger.debug(f"Stored secret {secret.name} for {secret.file_path}")
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to add secret: {e}") from e

    def remove_secrets(
        self, file_path: str, names: List[str], machine_name: Optional[str] = None
    ) -> int:
        machine_name = machine_name or self._machine_name
        try:
            count = self._ensure_query().delete_secrets(
                machine_name, file_path, list(names), case_sensitive=machine_name == SHORTCUTS_SCOPE
            )
            logger.debug(f"Removed {count} secret(s) from {file_path}")
            return count
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to remove secrets: {e}") from e

    def remove_all_secrets(self, machine_name: Optional[str] = None) -> int:
        machine_name = machine_name or self._machine_name
        try:
            count = self._ensure_query().delete_all_secrets(machine_name)
            logger.info(f"Removed all {count} secret(s) of {machine_name}")
            return count
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to remove all secrets: {e}") from e

    def update_hash_and_length(self, old_hash: str, new_hash: str, new_length: int) -> int:
        try:
            count = self._ensure_query().update_hash_and_length(old_hash, new_hash, new_length)
            logger.info(f"Updated hash of {count} secret record(s)")
            return count
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Failed to update hash: {e}") from e

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._query = None
            self._initialized = False


def create_secret_store(
    db_path: Path | str, machine_name: str, min_secret_length: int = 5
) -> SqliteSecretStore:
    """Factory function to create a secret store."""
    return SqliteSecretStore(db_path, machine_name, min_secret_length)
