"""
Low-level SQL query executor for the secret metadata store.
"""

import sqlite3
from typing import List, Optional

_COLUMNS = "machine_name, file_path, name, type, control_type, hash, length, timestamp, properties"


class SecretQueryExecutor:
    """Executes SQL queries for the secret metadata store."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    def get_machine_names(self) -> List[str]:
        cursor = self._conn.execute(
            "SELECT DISTINCT machine_name FROM secrets ORDER BY machine_name"
        )
        return [row[0] for row in cursor.fetchall()]

    def get_file_paths(self, machine_name: str, control_type: int, exclude: bool) -> List[str]:
        """Get distinct file paths for a machine, with or without one control type."""
        op = "!=" if exclude else "="
        cursor = self._conn.execute(
            f"""
            SELECT DISTINCT file_path FROM secrets
            WHERE machine_name = ? AND control_type {op} ?
            ORDER BY file_path
            """,
            (machine_name, control_type),
        )
        return [row[0] for row in cursor.fetchall()]

    def get_secrets_by_path(
        self, machine_name: str, path: str, exact_match: bool, case_sensitive: bool
    ) -> List[sqlite3.Row]:
        """Get secrets whose file path equals (or starts with) ``path``."""
        if case_sensitive:
            column, value = "file_path", path
        else:
            column, value = "lower(file_path)", path.lower()

        if exact_match:
            condition = f"{column} = ?"
            params: tuple = (machine_name, value)
        else:
            condition = f"substr({column}, 1, ?) = ?"
            params = (machine_name, len(value), value)

        cursor = self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM secrets
            WHERE machine_name = ? AND {condition}
            ORDER BY file_path, name
            """,
            params,
        )
        return cursor.fetchall()

    def get_all_secrets(self) -> List[sqlite3.Row]:
        cursor = self._conn.execute(
            f"SELECT {_COLUMNS} FROM secrets ORDER BY machine_name, file_path, name"
        )
        return cursor.fetchall()

    def get_secrets_by_name(self, name: str) -> List[sqlite3.Row]:
        cursor = self._conn.execute(
            f"SELECT {_COLUMNS} FROM secrets WHERE name = ? ORDER BY machine_name, file_path",
            (name,),
        )
        return cursor.fetchall()

    def get_conflicting_hashes(
        self, machine_name: str, file_path: str, name: str, case_sensitive: bool
    ) -> List[str]:
        """Get hashes already recorded under the same scope and name."""
        path_condition = "file_path = ?" if case_sensitive else "lower(file_path) = lower(?)"
        cursor = self._conn.execute(
            f"""
            SELECT hash FROM secrets
            WHERE machine_name = ? AND {path_condition} AND name = ?
            """,
            (machine_name, file_path, name),
        )
        return [row[0] for row in cursor.fetchall()]

    def find_row(self, machine_name: str, file_path: str, name: str) -> Optional[sqlite3.Row]:
        cursor = self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM secrets
            WHERE machine_name = ? AND file_path = ? AND name = ?
            """,
            (machine_name, file_path, name),
        )
        return cursor.fetchone()

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    def upsert_secret(
        self,
        machine_name: str,
        file_path: str,
        name: str,
        type_: int,
        control_type: int,
        hash_: str,
        length: int,
        timestamp: str,
        properties: Optional[str],
    ) -> None:
        """Insert or update a single secret."""
        self._conn.execute(
            f"""
            INSERT INTO secrets ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(machine_name, file_path, name) DO UPDATE SET
                type = excluded.type,
                control_type = excluded.control_type,
                hash = excluded.hash,
                length = excluded.length,
                timestamp = excluded.timestamp,
                properties = excluded.properties
            """,
            (machine_name, file_path, name, type_, control_type, hash_, length, timestamp, properties),
        )
        self._conn.commit()

    def delete_secrets(
        self, machine_name: str, file_path: str, names: List[str], case_sensitive: bool
    ) -> int:
        """Delete named secrets of one file. Returns count deleted."""
        if not names:
            return 0
        path_condition = "file_path = ?" if case_sensitive else "lower(file_path) = lower(?)"
        placeholders = ",".join("?" * len(names))
        cursor = self._conn.execute(
            f"""
            DELETE FROM secrets
            WHERE machine_name = ? AND {path_condition} AND name IN ({placeholders})
            """,
            (machine_name, file_path, *names),
        )
        self._conn.commit()
        return cursor.rowcount

    def delete_all_secrets(self, machine_name: str) -> int:
        cursor = self._conn.execute("DELETE FROM secrets WHERE machine_name = ?", (machine_name,))
        self._conn.commit()
        return cursor.rowcount

    def update_hash_and_length(self, old_hash: str, new_hash: str, new_length: int) -> int:
        """Rewrite every record carrying ``old_hash``. Returns count updated."""
        cursor = self._conn.execute(
            "UPDATE secrets SET hash = ?, length = ? WHERE hash = ?",
            (new_hash, new_length, old_hash),
        )
        self._conn.commit()
        return cursor.rowcount
