"""
Infrastructure Layer - Secret metadata, position maps, value providers and git hooks.
"""

from keeshepherd.infrastructure.fakes import (
    InMemoryKeyMapStore,
    InMemorySecretStore,
    RecordingGitHook,
    StaticValueProvider,
)
from keeshepherd.infrastructure.git_hooks import GitHookInterface, GitHookSync
from keeshepherd.infrastructure.key_map_store import JsonKeyMapStore, KeyMapStoreInterface
from keeshepherd.infrastructure.metadata_store import (
    MetadataStoreError,
    SecretStoreInterface,
    SqliteSecretStore,
    create_secret_store,
)
from keeshepherd.infrastructure.value_providers import (
    EnvironmentValueProvider,
    LocalSecretStorageValueProvider,
    SecretValuesProvider,
    ValueNotFoundError,
    ValueProviderError,
    ValueProviderInterface,
)

__all__ = [
    # Metadata store
    "SecretStoreInterface",
    "SqliteSecretStore",
    "MetadataStoreError",
    "create_secret_store",
    # Key maps
    "KeyMapStoreInterface",
    "JsonKeyMapStore",
    # Value providers
    "ValueProviderInterface",
    "SecretValuesProvider",
    "EnvironmentValueProvider",
    "LocalSecretStorageValueProvider",
    "ValueProviderError",
    "ValueNotFoundError",
    # Git hooks
    "GitHookInterface",
    "GitHookSync",
    # Fakes for testing
    "InMemorySecretStore",
    "InMemoryKeyMapStore",
    "StaticValueProvider",
    "RecordingGitHook",
]
