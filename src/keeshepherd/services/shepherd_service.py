"""
Shepherd Service - file-level secret operations.

Wires the pure text algorithms (reconcile, mask, transform) to the secret
store, the position map store, the value providers and the git hook guard.
Operations on one file are serialized; different files run concurrently.
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from keeshepherd.core.config import KeeShepherdConfig
from keeshepherd.core.errors import InvalidSecretError, KeeShepherdError, SecretTooShortError
from keeshepherd.core.hashing import HashingService
from keeshepherd.core.masker import MaskResult, mask
from keeshepherd.core.models import (
    ANCHOR_PREFIX,
    ANCHOR_REGEX,
    ControlType,
    Secret,
    SecretReference,
    SecretType,
)
from keeshepherd.core.reconciler import SecretLocation, locate_secret, reconcile
from keeshepherd.core.stash_transformer import transform
from keeshepherd.infrastructure.git_hooks import GitHookInterface
from keeshepherd.infrastructure.key_map_store import KeyMapStoreInterface
from keeshepherd.infrastructure.metadata_store import SecretStoreInterface
from keeshepherd.infrastructure.value_providers import (
    LocalSecretStorageValueProvider,
    SecretValuesProvider,
    ValueProviderError,
)
from keeshepherd.services.shepherd_models import BulkStashResult, FileStashOutcome, ResolveResult

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], Awaitable[bool]]


async def _decline(message: str) -> bool:
    return False


def _read_text(file_path: str) -> str:
    with open(file_path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def _write_text_atomic(file_path: str, text: str) -> None:
    """Write ``text`` next to the file first, then swap it in."""
    path = Path(file_path)
    tmp_path = path.with_name(f".{path.name}.keeshepherd.tmp")
    with open(tmp_path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    if path.exists():
        shutil.copymode(path, tmp_path)
    os.replace(tmp_path, path)


class KeeShepherdService:
    """
    File-level secret operations.

    Each file has its own asyncio.Lock, so commands for one file run one at
    a time in the order they were issued.
    """

    def __init__(
        self,
        secret_store: SecretStoreInterface,
        key_map_store: KeyMapStoreInterface,
        values_provider: SecretValuesProvider,
        hashing: HashingService,
        git_hook: Optional[GitHookInterface] = None,
        config: Optional[KeeShepherdConfig] = None,
        secret_storage: Optional[LocalSecretStorageValueProvider] = None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        """
        Initialize the service.

        Args:
            secret_store: Where secret records live
            key_map_store: Where position maps live
            values_provider: Registry fetching live secret values
            hashing: Fingerprinting service holding the salt
            git_hook: Optional pre-commit guard to notify
            config: Application configuration (defaults when omitted)
            secret_storage: Optional local secret storage, used to keep the
                values of Managed SECRET_STORAGE secrets
            confirm: Async yes/no prompt used before forgetting secrets;
                declines everything when omitted
        """
        self._store = secret_store
        self._key_maps = key_map_store
        self._values = values_provider
        self._hashing = hashing
        self._git_hook = git_hook
        self._config = config or KeeShepherdConfig()
        self._secret_storage = secret_storage
        self._confirm = confirm or _decline
        self._file_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @property
    def secret_store(self) -> SecretStoreInterface:
        return self._store

    @property
    def key_map_store(self) -> KeyMapStoreInterface:
        return self._key_maps

    @asynccontextmanager
    async def _file_lock(self, file_path: str) -> AsyncIterator[None]:
        """Hold the file's lock; it is dropped once no caller holds or awaits it."""
        lock = self._file_locks.get(file_path)
        if lock is None:
            lock = asyncio.Lock()
            self._file_locks[file_path] = lock
        self._lock_users[file_path] = self._lock_users.get(file_path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[file_path] -= 1
            if self._lock_users[file_path] == 0:
                del self._lock_users[file_path]
                del self._file_locks[file_path]

    async def _read(self, file_path: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read_text, file_path)

    async def _write(self, file_path: str, text: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write_text_atomic, file_path, text)

    async def _fetch_values(self, secrets: List[Secret]) -> Dict[str, str]:
        return await self._values.get_values(secrets, parallel=self._config.values.parallel_fetch)

    def _notify_git_hook(self, file_path: str, has_unstashed: bool) -> None:
        if self._git_hook is None or not self._config.git_hooks.enabled:
            return
        try:
            self._git_hook.on_stash_state_changed(file_path, has_unstashed)
        except OSError as e:
            logger.warning(f"Failed to update git hooks for {file_path}: {e}")

    async def _ask_about_missing(self, file_path: str, missing: List[str]) -> List[str]:
        """Offer to forget secrets that could not be found. Returns the names forgotten."""
        if not missing:
            return []
        message = (
            f"The following secrets: {', '.join(missing)} were not found in "
            f"{Path(file_path).name}. Do you want to forget them?"
        )
        if not await self._confirm(message):
            return []
        self._store.remove_secrets(file_path, missing)
        logger.info(f"Forgot {len(missing)} missing secret(s) of {file_path}")
        return list(missing)

    # ─────────────────────────────────────────────────────────────────
    # Position maps and masking
    # ─────────────────────────────────────────────────────────────────

    def _rebuild_map(self, file_path: str, text: str, values: Optional[Dict[str, str]]) -> List[str]:
        secrets = self._store.list_secrets(file_path, True)
        result = reconcile(text, secrets, self._hashing, values)
        self._key_maps.save(file_path, result.entries)
        logger.debug(
            f"Rebuilt map of {file_path}: {len(result.entries)} entries, "
            f"{len(result.missing)} missing"
        )
        return result.missing

    async def update_secret_map(
        self, file_path: str, text: Optional[str] = None, values: Optional[Dict[str, str]] = None
    ) -> List[str]:
        """
        Rescan a file and store its fresh position map.

        Args:
            file_path: Tracked file
            text: Current text; read from disk when omitted
            values: Optional known live values, by secret name

        Returns:
            Names of the file's secrets that were not found
        """
        async with self._file_lock(file_path):
            if text is None:
                text = await self._read(file_path)
            return self._rebuild_map(file_path, text, values)

    async def mask_file(
        self, file_path: str, text: Optional[str] = None, refresh_if_missing: bool = True
    ) -> MaskResult:
        """
        Compute hide-ranges for a file.

        Never raises: any failure is logged and yields an empty result.
        When the stored map is empty or some entry no longer validates, the
        map is rebuilt from the text (fingerprints only) and masking is
        retried; secrets still missing are offered to ``confirm`` for
        forgetting.
        """
        try:
            async with self._file_lock(file_path):
                if text is None:
                    text = await self._read(file_path)

                entries = self._key_maps.load(file_path)
                result = mask(text, entries, self._hashing)
                if not refresh_if_missing or (entries and not result.missing):
                    return result

                missing = self._rebuild_map(file_path, text, {})
                result = mask(text, self._key_maps.load(file_path), self._hashing)
                result.missing = missing
                await self._ask_about_missing(file_path, missing)
                return result
        except Exception as e:
            logger.error(f"Failed to mask secrets in {file_path}: {e}")
            return MaskResult()

    # ─────────────────────────────────────────────────────────────────
    # Stash / unstash
    # ─────────────────────────────────────────────────────────────────

    async def _stash_with_values(
        self, file_path: str, stash: bool, values: Dict[str, str]
    ) -> FileStashOutcome:
        """Stash or unstash one file given the live values of its Managed secrets."""
        async with self._file_lock(file_path):
            text = await self._read(file_path)
            values = dict(values)

            managed = [s for s in self._store.list_secrets(file_path, True) if s.is_managed]
            if stash:
                # A value the provider could not deliver may still be sitting in the text
                for secret in managed:
                    if not values.get(secret.name):
                        location = locate_secret(text, secret, self._hashing, unstashed_only=True)
                        if location is not None:
                            values[secret.name] = text[location.range.start : location.range.end]

            result = transform(text, values, stash)
            if result.text != text:
                await self._write(file_path, result.text)
                logger.info(
                    f"{'Stashed' if stash else 'Unstashed'} {result.replaced} secret(s) in {file_path}"
                )

            self._rebuild_map(file_path, result.text, values)
            await self._ask_about_missing(file_path, result.missing)

            if stash:
                still_live = [
                    s.name
                    for s in managed
                    if not values.get(s.name)
                    and locate_secret(result.text, s, self._hashing, unstashed_only=True) is not None
                ]
                self._notify_git_hook(file_path, bool(still_live))
            elif any(values.values()):
                self._notify_git_hook(file_path, True)

            return FileStashOutcome(
                file_path=file_path,
                stash=stash,
                replaced=result.replaced,
                missing=result.missing,
                unresolved=result.unresolved,
            )

    async def _stash(self, file_path: str, stash: bool) -> FileStashOutcome:
        managed = [s for s in self._store.list_secrets(file_path, True) if s.is_managed]
        values = await self._fetch_values(managed)
        return await self._stash_with_values(file_path, stash, values)

    async def stash_file(self, file_path: str) -> FileStashOutcome:
        """Replace the live values of a file's Managed secrets with anchors."""
        return await self._stash(file_path, True)

    async def unstash_file(self, file_path: str) -> FileStashOutcome:
        """Replace the anchors of a file's Managed secrets with live values."""
        return await self._stash(file_path, False)

    async def stash_folders(self, folders: List[str], stash: bool) -> BulkStashResult:
        """
        Stash or unstash every tracked file under the given folders.

        Values are fetched once for all files, then files are processed in
        parallel. A failing file is recorded and does not stop the others.
        """
        secrets: List[Secret] = []
        for folder in folders:
            secrets.extend(self._store.list_secrets(folder, False))

        per_file: Dict[str, Dict[str, str]] = {}
        for secret in secrets:
            per_file.setdefault(secret.file_path, {})

        # Names repeat across files, so values travel with their own secret
        managed = [s for s in secrets if s.is_managed]
        fetched = await self._values.fetch_values(
            managed, parallel=self._config.values.parallel_fetch
        )
        for secret, value in zip(managed, fetched):
            file_values = per_file[secret.file_path]
            if value or secret.name not in file_values:
                file_values[secret.name] = value

        file_paths = list(per_file)
        results = await asyncio.gather(
            *(self._stash_with_values(p, stash, per_file[p]) for p in file_paths),
            return_exceptions=True,
        )

        bulk = BulkStashResult()
        for file_path, result in zip(file_paths, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Failed to {'stash' if stash else 'unstash'} secrets in {file_path}: {result}"
                )
                bulk.failures[file_path] = str(result)
            else:
                bulk.outcomes.append(result)

        logger.info(
            f"{'Stashed' if stash else 'Unstashed'} {bulk.secrets_replaced} secret(s) "
            f"in {bulk.files_changed} of {len(file_paths)} file(s)"
        )
        return bulk

    async def stash_workspace(self, folders: List[str], stash: bool) -> BulkStashResult:
        """
        Stash or unstash whole workspace folders.

        Before a stash the folder list is persisted, so an interrupted run
        can be finished later with stash_pending_folders().
        """
        if stash:
            self._key_maps.save_pending_folders(folders)

        result = await self.stash_folders(folders, stash)

        if result.succeeded:
            self._key_maps.save_pending_folders([])
        return result

    async def stash_pending_folders(self) -> BulkStashResult:
        """Finish a workspace stash that was interrupted."""
        folders = self._key_maps.get_pending_folders()
        if not folders:
            return BulkStashResult()

        logger.info(f"Resuming stash of {len(folders)} pending folder(s)")
        result = await self.stash_folders(folders, True)

        if result.succeeded:
            self._key_maps.save_pending_folders([])
        return result

    # ─────────────────────────────────────────────────────────────────
    # Registering secrets
    # ─────────────────────────────────────────────────────────────────

    def _validate_value(self, value: str) -> None:
        if not value:
            raise InvalidSecretError("Secret value should not be empty")
        if value.startswith(ANCHOR_PREFIX):
            raise InvalidSecretError(f"Secret value should not start with {ANCHOR_PREFIX}")
        min_length = self._config.secrets.min_secret_length
        if len(value) < min_length:
            raise SecretTooShortError(f"Secret should be at least {min_length} symbols long")

    async def _refresh_after_change(self, file_path: str, text: str, secret: Secret) -> None:
        secrets = self._store.list_secrets(file_path, True)
        values = await self._fetch_values(secrets)
        self._rebuild_map(file_path, text, values)
        if secret.is_managed:
            self._notify_git_hook(file_path, True)

    async def resolve_anchors(self, file_path: str) -> ResolveResult:
        """
        Register anchors of a file that name secrets recorded for other files.

        A name recorded with several different hashes, or without
        value-provider properties, cannot be resolved. When both a Managed
        and a Supervised record exist, the Managed one is used.
        """
        async with self._file_lock(file_path):
            text = await self._read(file_path)
            known = {s.name for s in self._store.list_secrets(file_path, True)}
            result = ResolveResult()

            for match in ANCHOR_REGEX.finditer(text):
                name = match.group(1)
                if name in known or name in result.resolved or name in result.unresolved:
                    continue

                candidates = self._store.find_by_name(name)
                if len({s.hash for s in candidates}) != 1:
                    logger.warning(f"Could not resolve {name}: {len(candidates)} candidate record(s)")
                    result.unresolved.append(name)
                    continue

                source = next((s for s in candidates if s.is_managed), candidates[0])
                if not source.properties:
                    logger.warning(f"Could not resolve {name}: no value-provider properties")
                    result.unresolved.append(name)
                    continue

                self._store.add_secret(
                    Secret(
                        name=name,
                        type=source.type,
                        control_type=ControlType.MANAGED,
                        file_path=file_path,
                        hash=source.hash,
                        length=source.length,
                        properties=source.properties,
                    )
                )
                result.resolved.append(name)

            if result.resolved:
                self._rebuild_map(file_path, text, None)
                logger.info(f"Resolved {len(result.resolved)} secret(s) in {file_path}")
            return result

    async def control_secret(
        self,
        file_path: str,
        start: int,
        end: int,
        name: str,
        control_type: ControlType,
        secret_type: SecretType = SecretType.UNKNOWN,
        properties: Optional[dict] = None,
    ) -> Secret:
        """
        Start tracking the text at ``[start, end)`` of a file as a secret.

        A Managed secret of type SECRET_STORAGE also has its value written
        to the local secret storage, under ``properties["key"]`` (or its name).

        Raises:
            InvalidSecretError: Bad range, empty name, or value starting with the anchor prefix
            SecretTooShortError: Value shorter than the minimum length
            SecretNameConflictError: Name already taken by a different value in this file
        """
        if not name:
            raise InvalidSecretError("Secret name should not be empty")
        if control_type == ControlType.ENV_VARIABLE:
            raise InvalidSecretError("Environment variable shortcuts are not bound to files")

        async with self._file_lock(file_path):
            text = await self._read(file_path)
            if not 0 <= start < end <= len(text):
                raise InvalidSecretError(f"Range {start}..{end} is outside of {file_path}")

            value = text[start:end]
            self._validate_value(value)

            properties = dict(properties) if properties else None
            if control_type == ControlType.MANAGED and secret_type == SecretType.SECRET_STORAGE:
                properties = properties or {}
                properties.setdefault("key", name)

            secret = Secret(
                name=name,
                type=secret_type,
                control_type=control_type,
                file_path=file_path,
                hash=self._hashing.hash(value),
                length=len(value),
                properties=properties,
            )
            self._store.add_secret(secret)

            if (
                secret_type == SecretType.SECRET_STORAGE
                and properties
                and "key" in properties
                and self._secret_storage is not None
            ):
                try:
                    self._secret_storage.store_value(properties["key"], value)
                except ValueProviderError:
                    # Dropping the just created record, so that it does not point nowhere
                    self._store.remove_secrets(file_path, [name])
                    raise

            await self._refresh_after_change(file_path, text, secret)
            logger.info(f"Added {control_type.name.lower()} secret {name} to {file_path}")
            return secret

    async def insert_secret(
        self,
        file_path: str,
        offset: int,
        reference: SecretReference,
        control_type: ControlType,
        name: Optional[str] = None,
    ) -> Secret:
        """
        Fetch a secret's value from its provider and insert it into a file.

        Raises:
            ValueProviderError: The value could not be fetched
            InvalidSecretError: No value, bad offset, or value starting with the anchor prefix
            SecretNameConflictError: Name already taken by a different value in this file
        """
        value = await self._values.get_value(reference)
        if not value:
            raise InvalidSecretError(f"No value could be obtained for {reference.name}")
        self._validate_value(value)

        async with self._file_lock(file_path):
            text = await self._read(file_path)
            if not 0 <= offset <= len(text):
                raise InvalidSecretError(f"Offset {offset} is outside of {file_path}")

            secret = Secret(
                name=name or reference.name,
                type=reference.type,
                control_type=control_type,
                file_path=file_path,
                hash=self._hashing.hash(value),
                length=len(value),
                properties=reference.properties,
            )
            self._store.add_secret(secret)

            new_text = text[:offset] + value + text[offset:]
            await self._write(file_path, new_text)

            await self._refresh_after_change(file_path, new_text, secret)
            logger.info(f"Inserted secret {secret.name} into {file_path}")
            return secret

    # ─────────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────────

    async def forget_secrets(self, file_path: str, names: Optional[List[str]] = None) -> int:
        """
        Drop secret records of a file after asking ``confirm``.

        Neither the secret values nor the file text are touched.

        Returns:
            Number of records removed (0 when declined)
        """
        async with self._file_lock(file_path):
            if names is None:
                names = [s.name for s in self._store.list_secrets(file_path, True)]
            if not names:
                return 0

            message = (
                f"Secrets {', '.join(names)} will be dropped from secret metadata storage. "
                f"This will NOT affect the secret itself or the file itself. Do you want to proceed?"
            )
            if not await self._confirm(message):
                return 0

            count = self._store.remove_secrets(file_path, names)
            remaining = [e for e in self._key_maps.load(file_path) if e.name not in names]
            self._key_maps.save(file_path, remaining)
            logger.info(f"Forgot {count} secret(s) of {file_path}")
            return count

    async def locate_secret(self, file_path: str, name: str) -> Optional[SecretLocation]:
        """
        Find a secret in a file by brute force, ignoring the stored map.

        When it cannot be found, the map is rebuilt and forgetting the
        secret is offered to ``confirm``.
        """
        async with self._file_lock(file_path):
            secret = next(
                (s for s in self._store.list_secrets(file_path, True) if s.name == name), None
            )
            if secret is None:
                raise KeeShepherdError(f"Secret {name} is not tracked in {file_path}")

            text = await self._read(file_path)
            location = locate_secret(text, secret, self._hashing)
            if location is None:
                self._rebuild_map(file_path, text, {})
                await self._ask_about_missing(file_path, [name])
            return location

    async def rotate_secret(self, old_value: str, new_value: str) -> int:
        """
        Point every record of ``old_value`` at ``new_value``.

        File texts are not touched: stashed files pick the new value up on
        their next unstash.

        Returns:
            Number of records updated
        """
        self._validate_value(new_value)
        old_hash, new_hash, new_length = self._hashing.rehash(old_value, new_value)
        count = self._store.update_hash_and_length(old_hash, new_hash, new_length)
        logger.info(f"Rotated {count} secret record(s)")
        return count
