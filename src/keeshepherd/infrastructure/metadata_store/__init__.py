"""
Metadata Store module for KeeShepherd.

SQLite-based storage for secret records (names, fingerprints, lengths).
"""

from .interface import SecretStoreInterface
from .models import MetadataStoreError
from .queries import SecretQueryExecutor
from .schema import initialize_schema, migrate_schema
from .store import SqliteSecretStore, create_secret_store

__all__ = [
    # Main classes
    "SecretStoreInterface",
    "SqliteSecretStore",
    "MetadataStoreError",
    # Query executor
    "SecretQueryExecutor",
    # Schema
    "initialize_schema",
    "migrate_schema",
    # Factory
    "create_secret_store",
]
