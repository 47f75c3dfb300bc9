"""Value provider reading secrets from process environment variables."""

import os

from keeshepherd.core.models import SecretReference, SecretType

from .errors import ValueNotFoundError, ValueProviderError
from .interface import ValueProviderInterface


class EnvironmentValueProvider(ValueProviderInterface):
    """Reads ``properties["variable"]`` from the environment."""

    @property
    def secret_type(self) -> SecretType:
        return SecretType.ENVIRONMENT

    async def get_value(self, reference: SecretReference) -> str:
        variable = (reference.properties or {}).get("variable")
        if not variable:
            raise ValueProviderError(f"Secret {reference.name} has no 'variable' property")

        value = os.environ.get(variable)
        if value is None:
            raise ValueNotFoundError(f"Environment variable {variable} is not set")
        return value
