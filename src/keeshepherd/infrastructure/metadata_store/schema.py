"""
Metadata store schema definitions and migrations.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA = """
-- One row per tracked secret occurrence scope (machine + file + name)
CREATE TABLE IF NOT EXISTS secrets (
    machine_name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    name TEXT NOT NULL,
    type INTEGER NOT NULL,
    control_type INTEGER NOT NULL,
    hash TEXT NOT NULL,
    length INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    properties TEXT,
    PRIMARY KEY (machine_name, file_path, name)
);

CREATE INDEX IF NOT EXISTS idx_secrets_name
    ON secrets(name);
CREATE INDEX IF NOT EXISTS idx_secrets_hash
    ON secrets(hash);
CREATE INDEX IF NOT EXISTS idx_secrets_file_path_nocase
    ON secrets(file_path COLLATE NOCASE);
"""


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript(SCHEMA)
    conn.commit()


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Run schema migrations for existing databases."""
    try:
        cursor = conn.execute("PRAGMA table_info(secrets)")
        columns = {row[1] for row in cursor.fetchall()}

        if "properties" not in columns:
            logger.info("Migrating database: adding properties column to secrets")
            conn.execute("ALTER TABLE secrets ADD COLUMN properties TEXT")
            conn.commit()
    except sqlite3.Error as e:
        logger.warning(f"Schema migration warning: {e}")
