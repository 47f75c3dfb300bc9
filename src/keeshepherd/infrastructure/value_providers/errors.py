"""Exception types for secret value providers."""

from keeshepherd.core.errors import KeeShepherdError


class ValueProviderError(KeeShepherdError):
    """A secret value could not be fetched from its backend."""

    pass


class ValueNotFoundError(ValueProviderError):
    """The backend is reachable but holds no value for the secret.

    Raised when the secret's properties point at a variable or storage key
    that does not exist.
    """

    pass
