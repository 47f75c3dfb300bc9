"""
Core Layer - Fingerprinting, position maps, masking and stash/unstash text transforms.
"""

from keeshepherd.core.config import (
    GitHooksConfig,
    KeeShepherdConfig,
    LoggingConfig,
    SecretsConfig,
    StorageConfig,
    ValuesConfig,
    load_config,
)
from keeshepherd.core.errors import (
    InvalidSecretError,
    KeeShepherdError,
    SaltInitializationError,
    SecretNameConflictError,
    SecretTooShortError,
)
from keeshepherd.core.hashing import HashingService, ensure_salt
from keeshepherd.core.masker import MaskResult, mask, render_masked
from keeshepherd.core.models import (
    ANCHOR_PREFIX,
    ANCHOR_REGEX,
    SHORTCUTS_SCOPE,
    ControlType,
    PositionMapEntry,
    Secret,
    SecretReference,
    SecretType,
    TextRange,
    anchor_for,
)
from keeshepherd.core.reconciler import ReconcileResult, SecretLocation, locate_secret, reconcile
from keeshepherd.core.stash_transformer import StashResult, transform

__all__ = [
    # Config
    "KeeShepherdConfig",
    "StorageConfig",
    "SecretsConfig",
    "ValuesConfig",
    "GitHooksConfig",
    "LoggingConfig",
    "load_config",
    # Errors
    "KeeShepherdError",
    "SecretNameConflictError",
    "SecretTooShortError",
    "InvalidSecretError",
    "SaltInitializationError",
    # Models
    "ANCHOR_PREFIX",
    "ANCHOR_REGEX",
    "SHORTCUTS_SCOPE",
    "anchor_for",
    "SecretType",
    "ControlType",
    "SecretReference",
    "Secret",
    "PositionMapEntry",
    "TextRange",
    # Hashing
    "HashingService",
    "ensure_salt",
    # Reconciler
    "ReconcileResult",
    "SecretLocation",
    "reconcile",
    "locate_secret",
    # Masker
    "MaskResult",
    "mask",
    "render_masked",
    # Stash transformer
    "StashResult",
    "transform",
]
