"""
Secret value providers: one per secret type, dispatched by a registry.
"""

from .environment import EnvironmentValueProvider
from .errors import ValueNotFoundError, ValueProviderError
from .interface import ValueProviderInterface
from .registry import SecretValuesProvider
from .secret_storage import SECRET_STORAGE_FILE_NAME, LocalSecretStorageValueProvider

__all__ = [
    "ValueProviderInterface",
    "SecretValuesProvider",
    "EnvironmentValueProvider",
    "LocalSecretStorageValueProvider",
    "SECRET_STORAGE_FILE_NAME",
    "ValueProviderError",
    "ValueNotFoundError",
]
