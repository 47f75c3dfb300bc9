"""
Centralized services container module for KeeShepherd.

Builds every collaborator of the shepherd service from configuration, so
the CLI (and any other entry point) shares one way of wiring them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from keeshepherd.core.config import KeeShepherdConfig, load_config
from keeshepherd.core.hashing import HashingService
from keeshepherd.infrastructure import (
    EnvironmentValueProvider,
    GitHookSync,
    JsonKeyMapStore,
    LocalSecretStorageValueProvider,
    SecretValuesProvider,
    SqliteSecretStore,
    create_secret_store,
)
from keeshepherd.infrastructure.value_providers import SECRET_STORAGE_FILE_NAME
from keeshepherd.services.shepherd_service import ConfirmCallback, KeeShepherdService


@dataclass
class ServicesContainer:
    """
    Container holding all shared service instances.

    Attributes:
        config: Application configuration
        hashing: Fingerprinting service holding the salt
        secret_store: SQLite store for secret records
        key_map_store: JSON store for position maps
        secret_storage: Local secret value storage
        values_provider: Value provider registry
        git_hooks: Pre-commit guard maintainer
        shepherd: File-level secret operations
    """

    config: KeeShepherdConfig
    hashing: HashingService
    secret_store: SqliteSecretStore
    key_map_store: JsonKeyMapStore
    secret_storage: LocalSecretStorageValueProvider
    values_provider: SecretValuesProvider
    git_hooks: GitHookSync
    shepherd: KeeShepherdService

    def close(self) -> None:
        self.secret_store.close()


def create_services(
    config_path: Optional[Path] = None,
    confirm: Optional[ConfirmCallback] = None,
) -> ServicesContainer:
    """
    Create and initialize all services.

    Args:
        config_path: Optional path to configuration file. If None, uses
                    environment variables and defaults.
        confirm: Optional async yes/no prompt for destructive steps

    Returns:
        ServicesContainer with all initialized services.

    Raises:
        SaltInitializationError: If the fingerprint salt cannot be set up
        MetadataStoreError: If the secret database cannot be opened
    """
    config = load_config(config_path)
    storage = config.storage

    # Salt first: nothing can be fingerprinted without it
    hashing = HashingService.from_storage(storage.root_path)

    secret_store = create_secret_store(
        storage.metadata_db_path,
        machine_name=storage.resolved_machine_name(),
        min_secret_length=config.secrets.min_secret_length,
    )
    secret_store.initialize()

    key_map_store = JsonKeyMapStore(
        storage.key_maps_path, max_path_length=config.secrets.max_path_length
    )

    secret_storage = LocalSecretStorageValueProvider(storage.root_path / SECRET_STORAGE_FILE_NAME)
    values_provider = SecretValuesProvider(
        [EnvironmentValueProvider(), secret_storage],
        timeout=config.values.timeout,
        max_retries=config.values.max_retries,
    )

    git_hooks = GitHookSync()

    shepherd = KeeShepherdService(
        secret_store=secret_store,
        key_map_store=key_map_store,
        values_provider=values_provider,
        hashing=hashing,
        git_hook=git_hooks,
        config=config,
        secret_storage=secret_storage,
        confirm=confirm,
    )

    return ServicesContainer(
        config=config,
        hashing=hashing,
        secret_store=secret_store,
        key_map_store=key_map_store,
        secret_storage=secret_storage,
        values_provider=values_provider,
        git_hooks=git_hooks,
        shepherd=shepherd,
    )
