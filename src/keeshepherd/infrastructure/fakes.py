"""
Fake implementations for testing.

Provides in-memory implementations of infrastructure interfaces
for use in unit and integration tests without touching disk.
"""

from __future__ import annotations

from keeshepherd.core.errors import SecretNameConflictError, SecretTooShortError
from keeshepherd.core.models import (
    SHORTCUTS_SCOPE,
    ControlType,
    PositionMapEntry,
    Secret,
    SecretReference,
    SecretType,
)
from keeshepherd.core.path_utils import parent_of
from keeshepherd.infrastructure.git_hooks import GitHookInterface
from keeshepherd.infrastructure.key_map_store import KeyMapStoreInterface
from keeshepherd.infrastructure.metadata_store import SecretStoreInterface
from keeshepherd.infrastructure.value_providers import (
    ValueNotFoundError,
    ValueProviderError,
    ValueProviderInterface,
)


class InMemorySecretStore(SecretStoreInterface):
    """
    In-memory secret store for testing.

    Mirrors SqliteSecretStore semantics: case-insensitive paths outside
    the shortcuts scope, name/hash conflict detection and min length.
    """

    def __init__(self, machine_name: str = "test-machine", min_secret_length: int = 5):
        self.machine_name = machine_name
        self._min_secret_length = min_secret_length
        # (machine, file path, name) -> secret
        self._secrets: dict[tuple[str, str, str], Secret] = {}

    def _scope_of(self, secret: Secret) -> str:
        if secret.control_type == ControlType.ENV_VARIABLE:
            return SHORTCUTS_SCOPE
        return self.machine_name

    @staticmethod
    def _same_path(a: str, b: str, case_sensitive: bool) -> bool:
        return a == b if case_sensitive else a.lower() == b.lower()

    def get_machine_names(self) -> list[str]:
        names = sorted({key[0] for key in self._secrets})
        if self.machine_name not in names:
            names.insert(0, self.machine_name)
        return names

    def get_folders(self, machine_name: str) -> list[str]:
        folders: list[str] = []
        for (machine, file_path, _), secret in self._secrets.items():
            if machine != machine_name:
                continue
            folder = file_path if machine == SHORTCUTS_SCOPE else parent_of(file_path)
            if folder not in folders:
                folders.append(folder)
        return sorted(folders)

    def list_secrets(
        self, path: str, exact_match: bool, machine_name: str | None = None
    ) -> list[Secret]:
        machine_name = machine_name or self.machine_name
        case_sensitive = machine_name == SHORTCUTS_SCOPE
        result = []
        for (machine, file_path, _), secret in sorted(self._secrets.items()):
            if machine != machine_name:
                continue
            candidate, wanted = (
                (file_path, path) if case_sensitive else (file_path.lower(), path.lower())
            )
            if exact_match and candidate == wanted:
                result.append(secret)
            elif not exact_match and candidate.startswith(wanted):
                result.append(secret)
        return result

    def get_all_secrets(self) -> list[Secret]:
        return [secret for _, secret in sorted(self._secrets.items())]

    def add_secret(self, secret: Secret) -> None:
        if secret.length < self._min_secret_length:
            raise SecretTooShortError(
                f"Secret should be at least {self._min_secret_length} symbols long"
            )
        scope = self._scope_of(secret)
        case_sensitive = scope == SHORTCUTS_SCOPE
        for (machine, file_path, name), existing in self._secrets.items():
            if (
                machine == scope
                and name == secret.name
                and self._same_path(file_path, secret.file_path, case_sensitive)
                and existing.hash != secret.hash
            ):
                raise SecretNameConflictError(
                    f"A secret named '{secret.name}' with a different hash already exists"
                )
        self._secrets[(scope, secret.file_path, secret.name)] = secret

    def remove_secrets(
        self, file_path: str, names: list[str], machine_name: str | None = None
    ) -> int:
        machine_name = machine_name or self.machine_name
        case_sensitive = machine_name == SHORTCUTS_SCOPE
        doomed = [
            key
            for key in self._secrets
            if key[0] == machine_name
            and key[2] in names
            and self._same_path(key[1], file_path, case_sensitive)
        ]
        for key in doomed:
            del self._secrets[key]
        return len(doomed)

    def remove_all_secrets(self, machine_name: str | None = None) -> int:
        machine_name = machine_name or self.machine_name
        doomed = [key for key in self._secrets if key[0] == machine_name]
        for key in doomed:
            del self._secrets[key]
        return len(doomed)

    def find_by_name(self, name: str) -> list[Secret]:
        return [s for _, s in sorted(self._secrets.items()) if s.name == name]

    def update_hash_and_length(self, old_hash: str, new_hash: str, new_length: int) -> int:
        count = 0
        for secret in self._secrets.values():
            if secret.hash == old_hash:
                secret.hash = new_hash
                secret.length = new_length
                count += 1
        return count


class InMemoryKeyMapStore(KeyMapStoreInterface):
    """In-memory position map store for testing."""

    def __init__(self):
        self.maps: dict[str, list[PositionMapEntry]] = {}
        self.pending_folders: list[str] = []

    def load(self, file_path: str) -> list[PositionMapEntry]:
        return list(self.maps.get(file_path, []))

    def save(self, file_path: str, entries: list[PositionMapEntry]) -> None:
        if entries:
            self.maps[file_path] = list(entries)
        else:
            self.maps.pop(file_path, None)

    def get_pending_folders(self) -> list[str]:
        return list(self.pending_folders)

    def save_pending_folders(self, folders: list[str]) -> None:
        self.pending_folders = list(folders)


class StaticValueProvider(ValueProviderInterface):
    """
    Value provider serving fixed values by secret name.

    Names listed in ``failing`` raise ValueProviderError, mimicking an
    unreachable backend.
    """

    def __init__(
        self,
        values: dict[str, str] | None = None,
        secret_type: SecretType = SecretType.SECRET_STORAGE,
        failing: set[str] | None = None,
    ):
        self.values = dict(values or {})
        self._secret_type = secret_type
        self.failing = set(failing or ())
        self.calls: list[str] = []

    @property
    def secret_type(self) -> SecretType:
        return self._secret_type

    async def get_value(self, reference: SecretReference) -> str:
        self.calls.append(reference.name)
        if reference.name in self.failing:
            raise ValueProviderError(f"Backend unavailable for {reference.name}")
        if reference.name not in self.values:
            raise ValueNotFoundError(f"No value for {reference.name}")
        return self.values[reference.name]


class RecordingGitHook(GitHookInterface):
    """Git hook fake that records every notification."""

    def __init__(self, fail: bool = False):
        self.events: list[tuple[str, bool]] = []
        self._fail = fail

    def on_stash_state_changed(self, file_path: str, has_unstashed: bool) -> None:
        if self._fail:
            raise OSError("hooks folder is read-only")
        self.events.append((file_path, has_unstashed))
