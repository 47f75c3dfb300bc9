"""
Dispatches value fetches to the provider registered for each secret type.
"""

import asyncio
import json
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from keeshepherd.core.models import Secret, SecretReference, SecretType

from .errors import ValueNotFoundError, ValueProviderError
from .interface import ValueProviderInterface

logger = logging.getLogger(__name__)


class SecretValuesProvider:
    """
    Registry of value providers keyed by secret type.

    Fetches are sequential unless ``parallel`` is requested, since not every
    backend tolerates concurrent calls. Transient provider failures are
    retried with exponential backoff; a missing value is never retried.
    """

    def __init__(
        self,
        providers: Optional[Iterable[ValueProviderInterface]] = None,
        timeout: Optional[float] = None,
        max_retries: int = 0,
        retry_delay: float = 0.5,
    ):
        self._providers: Dict[SecretType, ValueProviderInterface] = {}
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ValueProviderInterface) -> None:
        """Register (or replace) the provider for its secret type."""
        self._providers[provider.secret_type] = provider

    def get_provider(self, secret_type: SecretType) -> Optional[ValueProviderInterface]:
        return self._providers.get(secret_type)

    @property
    def supported_types(self) -> List[SecretType]:
        return list(self._providers)

    async def _fetch_once(self, provider: ValueProviderInterface, reference: SecretReference) -> str:
        try:
            if self._timeout:
                return await asyncio.wait_for(provider.get_value(reference), self._timeout)
            return await provider.get_value(reference)
        except asyncio.TimeoutError as e:
            raise ValueProviderError(
                f"Timed out fetching value of {reference.name} after {self._timeout}s"
            ) from e

    async def get_value(self, secret: Secret | SecretReference) -> str:
        """
        Fetch one secret's value.

        Returns:
            The plaintext value, or "" when no provider serves the secret's type

        Raises:
            ValueNotFoundError: If the backend holds no such value
            ValueProviderError: If the provider kept failing or timing out
        """
        reference = secret.to_reference() if isinstance(secret, Secret) else secret
        provider = self._providers.get(reference.type)
        if provider is None:
            return ""

        for attempt in range(self._max_retries + 1):
            try:
                return await self._fetch_once(provider, reference)
            except ValueNotFoundError:
                raise
            except ValueProviderError as e:
                if attempt == self._max_retries:
                    raise
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"Attempt {attempt + 1} to get value of {reference.name} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise ValueProviderError(f"Failed to get value of {reference.name}")

    async def fetch_values(self, secrets: Sequence[Secret], parallel: bool = False) -> List[str]:
        """
        Fetch values of several secrets, possibly from different files.

        Secrets pointing at the same backend value (same type, name and
        properties) are fetched once. Failures never propagate: a secret
        whose value could not be fetched gets "" and a warning is logged,
        so callers fall back to fingerprint matching.

        Returns:
            One value per input secret, in input order
        """
        unique: Dict[tuple, Secret] = {}
        keys = []
        for secret in secrets:
            key = _reference_key(secret)
            unique.setdefault(key, secret)
            keys.append(key)

        fetched: Dict[tuple, str] = {}
        if parallel:
            results = await asyncio.gather(
                *(self.get_value(s) for s in unique.values()), return_exceptions=True
            )
            for (key, secret), result in zip(unique.items(), results):
                if isinstance(result, Exception):
                    logger.warning(f"Failed to get value of {secret.name}: {result}")
                    result = ""
                fetched[key] = result
        else:
            for key, secret in unique.items():
                try:
                    fetched[key] = await self.get_value(secret)
                except Exception as e:
                    logger.warning(f"Failed to get value of {secret.name}: {e}")
                    fetched[key] = ""

        return [fetched[key] for key in keys]

    async def get_values(self, secrets: Sequence[Secret], parallel: bool = False) -> Dict[str, str]:
        """
        Fetch values of the secrets of one file.

        Names are unique within a file; should a name repeat, its first
        secret wins.

        Returns:
            ``{secret name: value}`` for every distinct name in ``secrets``
        """
        values = await self.fetch_values(secrets, parallel)
        result: Dict[str, str] = {}
        for secret, value in zip(secrets, values):
            result.setdefault(secret.name, value)
        return result


def _reference_key(secret: Secret) -> tuple:
    properties = json.dumps(secret.properties, sort_keys=True) if secret.properties else ""
    return (secret.type, secret.name, properties)
