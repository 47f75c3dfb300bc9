"""
Unit tests for salted fingerprints and salt initialization.
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from keeshepherd.core import hashing as hashing_module
from keeshepherd.core.errors import SaltInitializationError
from keeshepherd.core.hashing import LOCK_FILE_NAME, SALT_FILE_NAME, HashingService, ensure_salt


def test_ensure_salt_creates_and_reuses_salt(tmp_path: Path):
    first = ensure_salt(tmp_path)
    second = ensure_salt(tmp_path)

    assert first == second
    assert len(first) == 256
    assert (tmp_path / SALT_FILE_NAME).read_text(encoding="utf-8") == first
    assert not (tmp_path / LOCK_FILE_NAME).exists()


def test_concurrent_first_runs_agree_on_one_salt(tmp_path: Path):
    with ThreadPoolExecutor(max_workers=8) as pool:
        salts = list(pool.map(lambda _: ensure_salt(tmp_path), range(16)))

    assert len(set(salts)) == 1


def test_stuck_lock_without_salt_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(hashing_module, "_SALT_WAIT_ATTEMPTS", 2)
    monkeypatch.setattr(hashing_module, "_SALT_WAIT_INTERVAL", 0.0)
    (tmp_path / LOCK_FILE_NAME).write_text("", encoding="utf-8")

    with pytest.raises(SaltInitializationError):
        ensure_salt(tmp_path)


def test_existing_salt_wins_over_held_lock(tmp_path: Path):
    (tmp_path / SALT_FILE_NAME).write_text("pre-existing-salt", encoding="utf-8")
    (tmp_path / LOCK_FILE_NAME).write_text("", encoding="utf-8")

    assert ensure_salt(tmp_path) == "pre-existing-salt"


def test_hash_depends_on_salt():
    a = HashingService("salt-a")
    b = HashingService("salt-b")

    assert a.hash("ABC123XYZ") == a.hash("ABC123XYZ")
    assert a.hash("ABC123XYZ") != b.hash("ABC123XYZ")
    assert a.matches("ABC123XYZ", a.hash("ABC123XYZ"))
    assert not a.matches("ABC123XYZ", b.hash("ABC123XYZ"))


def test_empty_salt_is_rejected():
    with pytest.raises(SaltInitializationError):
        HashingService("")


def test_rehash_returns_update_triple():
    service = HashingService("salt")

    old_hash, new_hash, new_length = service.rehash("old-value", "brand-new-value")

    assert old_hash == service.hash("old-value")
    assert new_hash == service.hash("brand-new-value")
    assert new_length == len("brand-new-value")


def test_from_storage_uses_folder_salt(tmp_path: Path):
    service = HashingService.from_storage(tmp_path)

    assert service.hash("x") == HashingService(ensure_salt(tmp_path)).hash("x")
