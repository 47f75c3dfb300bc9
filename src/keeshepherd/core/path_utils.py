"""
Path helpers for on-disk metadata layout.

Tracked file paths become folder and file names inside the storage folder,
so they are percent-encoded and, when too long, replaced by a short hash.
"""

from pathlib import Path
from urllib.parse import quote, unquote

# Default cap on generated metadata paths (policy value, overridable via config)
DEFAULT_MAX_PATH_LENGTH = 250


def encode_path_segment(value: str) -> str:
    """Percent-encode everything except unreserved characters, so the result is a single path segment."""
    return quote(value, safe="")


def decode_path_segment(value: str) -> str:
    """Inverse of encode_path_segment."""
    return unquote(value)


def weak_hash(value: str) -> int:
    """Cheap, stable, non-negative 31-bit string hash for naming files."""
    hash_code = 0
    for ch in value:
        hash_code = ((hash_code << 5) - hash_code + ord(ch)) & 0x7FFFFFFF
    return hash_code


def full_path_that_fits(
    base_folder: Path | str,
    proposed_folder_name: str,
    file_name: str,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> Path:
    """
    Join ``base_folder / proposed_folder_name / file_name``.

    If the result is longer than ``max_path_length``, the folder name is
    replaced with its weak hash.
    """
    result = Path(base_folder) / proposed_folder_name / file_name
    if len(str(result)) > max_path_length:
        result = Path(base_folder) / str(weak_hash(proposed_folder_name)) / file_name
    return result


def parent_of(file_path: str) -> str:
    """
    Return the folder part of a tracked file path.

    Works for plain paths as well as ``file://`` style URIs, which are
    kept as plain strings.
    """
    index = file_path.rstrip("/").rfind("/")
    if index < 0:
        return str(Path(file_path).parent)
    if index == 0:
        return "/"
    return file_path[:index]
