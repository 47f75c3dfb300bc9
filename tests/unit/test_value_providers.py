"""
Unit tests for value providers and the provider registry.
"""

import asyncio
import stat
from pathlib import Path

import pytest

from keeshepherd.core.models import ControlType, Secret, SecretReference, SecretType
from keeshepherd.infrastructure.fakes import StaticValueProvider
from keeshepherd.infrastructure.value_providers import (
    EnvironmentValueProvider,
    LocalSecretStorageValueProvider,
    SecretValuesProvider,
    ValueNotFoundError,
    ValueProviderError,
    ValueProviderInterface,
)


def make_secret(name: str, secret_type: SecretType = SecretType.SECRET_STORAGE) -> Secret:
    return Secret(
        name=name,
        type=secret_type,
        control_type=ControlType.MANAGED,
        file_path="/work/.env",
        hash="h",
        length=9,
    )


class SlowValueProvider(ValueProviderInterface):
    @property
    def secret_type(self) -> SecretType:
        return SecretType.CODESPACES

    async def get_value(self, reference: SecretReference) -> str:
        await asyncio.sleep(5)
        return "never"


@pytest.mark.asyncio
async def test_environment_provider(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("KS_TEST_VAR", "ABC123XYZ")
    monkeypatch.delenv("KS_UNSET_VAR", raising=False)
    provider = EnvironmentValueProvider()

    value = await provider.get_value(
        SecretReference("k1", SecretType.ENVIRONMENT, {"variable": "KS_TEST_VAR"})
    )
    assert value == "ABC123XYZ"

    with pytest.raises(ValueNotFoundError):
        await provider.get_value(
            SecretReference("k1", SecretType.ENVIRONMENT, {"variable": "KS_UNSET_VAR"})
        )

    with pytest.raises(ValueProviderError):
        await provider.get_value(SecretReference("k1", SecretType.ENVIRONMENT))


@pytest.mark.asyncio
async def test_secret_storage_provider(tmp_path: Path):
    provider = LocalSecretStorageValueProvider(tmp_path / "secret-storage.json")

    provider.store_value("db-password", "ABC123XYZ")

    assert await provider.get_value(
        SecretReference("pwd", SecretType.SECRET_STORAGE, {"key": "db-password"})
    ) == "ABC123XYZ"
    assert provider.list_keys() == ["db-password"]
    assert stat.S_IMODE(provider.path.stat().st_mode) == 0o600

    with pytest.raises(ValueNotFoundError):
        await provider.get_value(SecretReference("absent", SecretType.SECRET_STORAGE))

    assert provider.delete_value("db-password") is True
    assert provider.delete_value("db-password") is False
    assert provider.list_keys() == []


@pytest.mark.asyncio
async def test_secret_storage_key_defaults_to_name(tmp_path: Path):
    provider = LocalSecretStorageValueProvider(tmp_path / "secret-storage.json")
    provider.store_value("k1", "QWERTY12")

    assert await provider.get_value(SecretReference("k1", SecretType.SECRET_STORAGE)) == "QWERTY12"


@pytest.mark.asyncio
async def test_corrupt_secret_storage_raises(tmp_path: Path):
    path = tmp_path / "secret-storage.json"
    path.write_text("{not json", encoding="utf-8")
    provider = LocalSecretStorageValueProvider(path)

    with pytest.raises(ValueProviderError):
        await provider.get_value(SecretReference("k1", SecretType.SECRET_STORAGE))


@pytest.mark.asyncio
async def test_registry_returns_empty_for_unknown_type():
    registry = SecretValuesProvider([StaticValueProvider({"k1": "ABC123XYZ"})])

    assert await registry.get_value(make_secret("k1")) == "ABC123XYZ"
    assert await registry.get_value(make_secret("k1", SecretType.AZURE_KEY_VAULT)) == ""
    assert registry.supported_types == [SecretType.SECRET_STORAGE]


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_get_values_degrades_failures_to_empty(parallel: bool):
    provider = StaticValueProvider({"ok": "ABC123XYZ", "down": "x"}, failing={"down"})
    registry = SecretValuesProvider([provider])
    secrets = [make_secret("ok"), make_secret("down"), make_secret("gone"), make_secret("ok")]

    values = await registry.get_values(secrets, parallel=parallel)

    assert values == {"ok": "ABC123XYZ", "down": "", "gone": ""}
    assert provider.calls.count("ok") == 1


class BrokenClientValueProvider(ValueProviderInterface):
    """Provider whose client fails with something other than ValueProviderError."""

    @property
    def secret_type(self) -> SecretType:
        return SecretType.CODESPACES

    async def get_value(self, reference: SecretReference) -> str:
        raise RuntimeError("backend client blew up")


class KeyedValueProvider(ValueProviderInterface):
    """Serves values by ``properties["key"]``, like the local secret storage."""

    def __init__(self, values: dict[str, str]):
        self.values = values
        self.calls: list[str] = []

    @property
    def secret_type(self) -> SecretType:
        return SecretType.SECRET_STORAGE

    async def get_value(self, reference: SecretReference) -> str:
        key = (reference.properties or {}).get("key", reference.name)
        self.calls.append(key)
        return self.values[key]


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_get_values_degrades_unexpected_exceptions(parallel: bool):
    registry = SecretValuesProvider([BrokenClientValueProvider(), StaticValueProvider({"ok": "ABC123XYZ"})])
    secrets = [make_secret("broken", SecretType.CODESPACES), make_secret("ok")]

    values = await registry.get_values(secrets, parallel=parallel)

    assert values == {"broken": "", "ok": "ABC123XYZ"}


@pytest.mark.asyncio
@pytest.mark.parametrize("parallel", [False, True])
async def test_fetch_values_keeps_same_name_from_different_files_apart(parallel: bool):
    provider = KeyedValueProvider({"a-k1": "ABC123XYZ", "b-k1": "QWERTY7890"})
    registry = SecretValuesProvider([provider])
    first = make_secret("k1")
    first.properties = {"key": "a-k1"}
    second = make_secret("k1")
    second.file_path = "/other/.env"
    second.properties = {"key": "b-k1"}
    again = make_secret("k1")
    again.properties = {"key": "a-k1"}

    values = await registry.fetch_values([first, second, again], parallel=parallel)

    assert values == ["ABC123XYZ", "QWERTY7890", "ABC123XYZ"]
    assert sorted(provider.calls) == ["a-k1", "b-k1"]


@pytest.mark.asyncio
async def test_timeout_becomes_provider_error():
    registry = SecretValuesProvider([SlowValueProvider()], timeout=0.05)
    secret = make_secret("slow", SecretType.CODESPACES)

    with pytest.raises(ValueProviderError):
        await registry.get_value(secret)

    assert await registry.get_values([secret]) == {"slow": ""}


class FlakyValueProvider(ValueProviderInterface):
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    @property
    def secret_type(self) -> SecretType:
        return SecretType.SECRET_STORAGE

    async def get_value(self, reference: SecretReference) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ValueProviderError("backend busy")
        return "ABC123XYZ"


@pytest.mark.asyncio
async def test_transient_failures_are_retried():
    flaky = FlakyValueProvider(failures=2)
    registry = SecretValuesProvider([flaky], max_retries=2, retry_delay=0.0)

    assert await registry.get_value(make_secret("k1")) == "ABC123XYZ"
    assert flaky.calls == 3


@pytest.mark.asyncio
async def test_retries_are_bounded_and_missing_values_are_not_retried():
    flaky = FlakyValueProvider(failures=5)
    registry = SecretValuesProvider([flaky], max_retries=1, retry_delay=0.0)

    with pytest.raises(ValueProviderError):
        await registry.get_value(make_secret("k1"))
    assert flaky.calls == 2

    static = StaticValueProvider({})
    registry = SecretValuesProvider([static], max_retries=3, retry_delay=0.0)
    with pytest.raises(ValueNotFoundError):
        await registry.get_value(make_secret("absent"))
    assert static.calls == ["absent"]
