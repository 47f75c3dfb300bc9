"""
Configuration for KeeShepherd.

Sections for storage locations, secret policy, value fetching, git hooks
and logging. Values come from the packaged defaults.yaml, optionally a
YAML/JSON file, then KEESHEPHERD_* environment variables.
"""

import json
import logging
import os
import socket
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section, {})
    return section_defaults.get(key, fallback)


@dataclass
class StorageConfig:
    """Where secret metadata, position maps and the salt live."""

    root_dir: str = field(
        default_factory=lambda: _get_default("storage", "root_dir", "~/.keeshepherd")
    )
    metadata_db: str = field(
        default_factory=lambda: _get_default("storage", "metadata_db", "metadata.db")
    )
    key_maps_dir: str = field(
        default_factory=lambda: _get_default("storage", "key_maps_dir", "key-maps")
    )
    machine_name: str = field(default_factory=lambda: _get_default("storage", "machine_name", ""))

    @property
    def root_path(self) -> Path:
        return Path(self.root_dir).expanduser()

    @property
    def metadata_db_path(self) -> Path:
        return self.root_path / self.metadata_db

    @property
    def key_maps_path(self) -> Path:
        return self.root_path / self.key_maps_dir

    def resolved_machine_name(self) -> str:
        return self.machine_name or socket.gethostname()


@dataclass
class SecretsConfig:
    """Policy values for secret registration."""

    min_secret_length: int = field(
        default_factory=lambda: _get_default("secrets", "min_secret_length", 5)
    )
    max_path_length: int = field(
        default_factory=lambda: _get_default("secrets", "max_path_length", 250)
    )


@dataclass
class ValuesConfig:
    """Configuration for secret value fetching."""

    parallel_fetch: bool = field(
        default_factory=lambda: _get_default("values", "parallel_fetch", False)
    )
    timeout: float = field(default_factory=lambda: _get_default("values", "timeout", 30.0))
    max_retries: int = field(default_factory=lambda: _get_default("values", "max_retries", 3))


@dataclass
class GitHooksConfig:
    """Configuration for the pre-commit guard."""

    enabled: bool = field(default_factory=lambda: _get_default("git_hooks", "enabled", True))


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "INFO"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


@dataclass
class KeeShepherdConfig:
    """Main configuration class for KeeShepherd."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    values: ValuesConfig = field(default_factory=ValuesConfig)
    git_hooks: GitHooksConfig = field(default_factory=GitHooksConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "KeeShepherdConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            KeeShepherdConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "KeeShepherdConfig":
        """Create KeeShepherdConfig from a dictionary."""
        config = cls()

        if "storage" in data:
            config.storage = StorageConfig(**data["storage"])
        if "secrets" in data:
            config.secrets = SecretsConfig(**data["secrets"])
        if "values" in data:
            config.values = ValuesConfig(**data["values"])
        if "git_hooks" in data:
            config.git_hooks = GitHooksConfig(**data["git_hooks"])
        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])

        return config

    def apply_env_overrides(self) -> "KeeShepherdConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: KEESHEPHERD_<SECTION>_<KEY>
        Examples:
            - KEESHEPHERD_STORAGE_ROOT_DIR
            - KEESHEPHERD_SECRETS_MIN_SECRET_LENGTH
            - KEESHEPHERD_VALUES_PARALLEL_FETCH
            - KEESHEPHERD_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            # Storage config
            "KEESHEPHERD_STORAGE_ROOT_DIR": ("storage", "root_dir", str),
            "KEESHEPHERD_STORAGE_METADATA_DB": ("storage", "metadata_db", str),
            "KEESHEPHERD_STORAGE_KEY_MAPS_DIR": ("storage", "key_maps_dir", str),
            "KEESHEPHERD_STORAGE_MACHINE_NAME": ("storage", "machine_name", str),
            # Secrets policy
            "KEESHEPHERD_SECRETS_MIN_SECRET_LENGTH": ("secrets", "min_secret_length", int),
            "KEESHEPHERD_SECRETS_MAX_PATH_LENGTH": ("secrets", "max_path_length", int),
            # Value fetching
            "KEESHEPHERD_VALUES_PARALLEL_FETCH": ("values", "parallel_fetch", _parse_bool),
            "KEESHEPHERD_VALUES_TIMEOUT": ("values", "timeout", float),
            "KEESHEPHERD_VALUES_MAX_RETRIES": ("values", "max_retries", int),
            # Git hooks
            "KEESHEPHERD_GIT_HOOKS_ENABLED": ("git_hooks", "enabled", _parse_bool),
            # Logging config
            "KEESHEPHERD_LOGGING_LEVEL": ("logging", "level", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: Path | str) -> None:
        """
        Save configuration to a file.

        Args:
            path: Path to save the configuration (.yaml, .yml, or .json)

        Raises:
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            content = self.to_yaml()
        elif path.suffix == ".json":
            content = self.to_json()
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _parse_bool(value: str) -> bool:
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes", "on")


def load_config(
    config_path: Optional[Path | str] = None, apply_env: bool = True
) -> KeeShepherdConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        KeeShepherdConfig instance
    """
    if config_path:
        config = KeeShepherdConfig.from_file(config_path)
    else:
        config = KeeShepherdConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
