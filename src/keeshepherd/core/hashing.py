"""
Salted fingerprinting of secret values.

Fingerprints let a secret be recognised in text without the value ever
being persisted. The salt is generated once per storage folder and shared
by every process using that folder.
"""

import base64
import hashlib
import logging
import os
import secrets
import time
from pathlib import Path

from keeshepherd.core.errors import SaltInitializationError

logger = logging.getLogger(__name__)

SALT_FILE_NAME = "salt.dat"
LOCK_FILE_NAME = "lock.dat"

# How long a process that lost the creation race waits for the winner's salt
_SALT_WAIT_ATTEMPTS = 50
_SALT_WAIT_INTERVAL = 0.1


def _read_salt(salt_path: Path) -> str | None:
    if not salt_path.exists():
        return None
    salt = salt_path.read_text(encoding="utf-8").strip()
    return salt or None


def ensure_salt(storage_dir: Path | str) -> str:
    """
    Return the salt for a storage folder, creating it if absent.

    Creation is guarded by an exclusively created lock file, with a
    double-check read once the lock is held, so two first-run processes
    can never end up with different salts.

    Args:
        storage_dir: Folder holding ``salt.dat``

    Returns:
        The salt string

    Raises:
        SaltInitializationError: If the salt can be neither read nor created
    """
    storage_dir = Path(storage_dir)
    salt_path = storage_dir / SALT_FILE_NAME
    lock_path = storage_dir / LOCK_FILE_NAME

    try:
        storage_dir.mkdir(parents=True, exist_ok=True)

        salt = _read_salt(salt_path)
        if salt:
            return salt

        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return _wait_for_salt(salt_path)

        try:
            os.close(fd)

            salt = _read_salt(salt_path)
            if salt:
                return salt

            salt = secrets.token_hex(128)
            tmp_path = salt_path.with_suffix(".tmp")
            tmp_path.write_text(salt, encoding="utf-8")
            os.replace(tmp_path, salt_path)
            logger.info(f"Generated new fingerprint salt in {storage_dir}")
            return salt
        finally:
            lock_path.unlink(missing_ok=True)

    except OSError as e:
        raise SaltInitializationError(f"Failed to initialize salt: {e}") from e


def _wait_for_salt(salt_path: Path) -> str:
    """Wait for another process to finish writing the salt."""
    for _ in range(_SALT_WAIT_ATTEMPTS):
        time.sleep(_SALT_WAIT_INTERVAL)
        salt = _read_salt(salt_path)
        if salt:
            return salt
    raise SaltInitializationError(
        f"Failed to initialize salt: lock held by another process and {salt_path} never appeared"
    )


class HashingService:
    """Computes salted fingerprints of plaintext strings."""

    def __init__(self, salt: str):
        if not salt:
            raise SaltInitializationError("Salt must not be empty")
        self._salt = salt

    @classmethod
    def from_storage(cls, storage_dir: Path | str) -> "HashingService":
        """Create a service using the (possibly newly created) salt of a storage folder."""
        return cls(ensure_salt(storage_dir))

    def hash(self, plaintext: str) -> str:
        """Return the base64 SHA-256 digest of ``plaintext`` + salt."""
        digest = hashlib.sha256((plaintext + self._salt).encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    def matches(self, text: str, digest: str) -> bool:
        """Check whether ``text`` fingerprints to ``digest``."""
        return self.hash(text) == digest

    def rehash(self, old_value: str, new_value: str) -> tuple[str, str, int]:
        """
        Compute the bulk-update triple for a rotated secret value.

        Returns:
            ``(old_hash, new_hash, new_length)``, ready for the secret
            store's ``update_hash_and_length``
        """
        return self.hash(old_value), self.hash(new_value), len(new_value)
