"""Exception types for secret tracking."""


class KeeShepherdError(Exception):
    """Base exception for KeeShepherd errors."""

    pass


class SecretNameConflictError(KeeShepherdError):
    """A secret with the same name but a different hash already exists in this scope.

    Callers are expected to ask for a different name and retry; the
    existing record is never overwritten.
    """

    pass


class SecretTooShortError(KeeShepherdError):
    """Secret value is shorter than the configured minimum length."""

    pass


class InvalidSecretError(KeeShepherdError):
    """Secret name or value is not acceptable (empty, or starts with the anchor prefix)."""

    pass


class SaltInitializationError(KeeShepherdError):
    """The fingerprint salt could not be created or read.

    Without a salt no fingerprint can be computed, so this is fatal
    to the whole metadata subsystem.
    """

    pass
