"""Abstract interface for secret value providers."""

from abc import ABC, abstractmethod

from keeshepherd.core.models import SecretReference, SecretType


class ValueProviderInterface(ABC):
    """Abstract interface for secret value providers."""

    @property
    @abstractmethod
    def secret_type(self) -> SecretType:
        """The secret type this provider serves."""
        pass

    @abstractmethod
    async def get_value(self, reference: SecretReference) -> str:
        """
        Fetch the live value of a secret.

        Args:
            reference: Name, type and backend properties of the secret

        Returns:
            The plaintext value

        Raises:
            ValueNotFoundError: If the backend holds no such value
            ValueProviderError: If the backend could not be read
        """
        pass
