"""
Persistence of position maps (secret coordinates within a file).

Each tracked file gets one small JSON document under the key maps folder.
An empty map is never stored: saving one deletes the document.
"""

import json
import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from keeshepherd.core.models import PositionMapEntry
from keeshepherd.core.path_utils import (
    DEFAULT_MAX_PATH_LENGTH,
    encode_path_segment,
    full_path_that_fits,
    parent_of,
    weak_hash,
)

logger = logging.getLogger(__name__)

PENDING_FOLDERS_FILE_NAME = "folders-to-be-stashed.json"


class KeyMapStoreInterface(ABC):
    """Abstract interface for position map persistence."""

    @abstractmethod
    def load(self, file_path: str) -> List[PositionMapEntry]:
        """Return the stored map of a file, or an empty list."""
        pass

    @abstractmethod
    def save(self, file_path: str, entries: List[PositionMapEntry]) -> None:
        """Store the map of a file; an empty list deletes it."""
        pass

    @abstractmethod
    def get_pending_folders(self) -> List[str]:
        """Return folders whose bulk stash has not finished yet."""
        pass

    @abstractmethod
    def save_pending_folders(self, folders: List[str]) -> None:
        """Record folders whose bulk stash has not finished yet."""
        pass


class JsonKeyMapStore(KeyMapStoreInterface):
    """Stores position maps as JSON files in a local folder."""

    def __init__(self, storage_dir: Path | str, max_path_length: int = DEFAULT_MAX_PATH_LENGTH):
        self._storage_dir = Path(storage_dir)
        self._max_path_length = max_path_length
        self._storage_dir.mkdir(parents=True, exist_ok=True)

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def map_path_for(self, file_path: str) -> Path:
        """Return where the map of ``file_path`` is kept."""
        folder = encode_path_segment(parent_of(file_path))
        base_name = file_path.rstrip("/").rsplit("/", 1)[-1]
        file_name = f"{encode_path_segment(base_name)}-{weak_hash(file_path)}.json"
        return full_path_that_fits(self._storage_dir, folder, file_name, self._max_path_length)

    def load(self, file_path: str) -> List[PositionMapEntry]:
        map_path = self.map_path_for(file_path)
        if not map_path.exists():
            return []
        data = json.loads(map_path.read_text(encoding="utf-8"))
        return [PositionMapEntry.from_dict(item) for item in data]

    def save(self, file_path: str, entries: List[PositionMapEntry]) -> None:
        map_path = self.map_path_for(file_path)
        map_folder = map_path.parent

        if not entries:
            map_path.unlink(missing_ok=True)
            if map_folder.exists() and not any(map_folder.iterdir()):
                map_folder.rmdir()
            return

        map_folder.mkdir(parents=True, exist_ok=True)
        tmp_path = map_path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps([e.to_dict() for e in entries], indent=3), encoding="utf-8"
        )
        os.replace(tmp_path, map_path)
        logger.debug(f"Saved {len(entries)} map entries for {file_path}")

    def get_pending_folders(self) -> List[str]:
        path = self._storage_dir / PENDING_FOLDERS_FILE_NAME
        if not path.exists():
            return []
        return json.loads(path.read_text(encoding="utf-8"))

    def save_pending_folders(self, folders: List[str]) -> None:
        path = self._storage_dir / PENDING_FOLDERS_FILE_NAME
        if not folders:
            path.unlink(missing_ok=True)
            return
        path.write_text(json.dumps(list(folders), indent=3), encoding="utf-8")

    def cleanup(self) -> None:
        """Drop every stored map and pending folder list."""
        if self._storage_dir.exists():
            shutil.rmtree(self._storage_dir)
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cleaned up key maps in {self._storage_dir}")
