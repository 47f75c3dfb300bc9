"""
Turns a position map into hide-ranges for display.

Masking is read-only: it never changes the text or the map. Every mapped
span is re-validated against its fingerprint before it is hidden, so a
stale map can fail to hide a secret but can never hide the wrong text.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from keeshepherd.core.hashing import HashingService
from keeshepherd.core.models import PositionMapEntry, TextRange, anchor_for


@dataclass
class MaskResult:
    """Hide-ranges for the presentation layer plus names that failed validation."""

    hide_ranges: list[TextRange] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def mask(text: str, entries: Sequence[PositionMapEntry], hashing: HashingService) -> MaskResult:
    """
    Compute the ranges of ``text`` that hold live secret values.

    Args:
        text: Current text of the file
        entries: Position map for the file, in any order
        hashing: Fingerprinting service holding the salt

    Returns:
        MaskResult; anchors are never hidden, and entries whose span no
        longer matches the recorded hash are reported as missing
    """
    result = MaskResult()
    missing: list[str] = []

    pos_shift = 0
    for entry in sorted(entries, key=lambda e: e.pos):
        start = entry.pos + pos_shift
        anchor = anchor_for(entry.name)

        if text.startswith(anchor, start):
            # Stashed: safe to show, but later entries sit further along
            pos_shift += len(anchor) - entry.length
            continue

        end = start + entry.length
        if start < 0 or end > len(text) or not hashing.matches(text[start:end], entry.hash):
            if entry.name not in missing:
                missing.append(entry.name)
            continue

        result.hide_ranges.append(TextRange(start, end))

    result.missing = missing
    return result


def render_masked(text: str, ranges: Iterable[TextRange], mask_char: str = "*") -> str:
    """Return ``text`` with every hide-range overwritten by ``mask_char``."""
    chars = list(text)
    for text_range in ranges:
        for i in range(max(text_range.start, 0), min(text_range.end, len(chars))):
            if chars[i] not in "\r\n":
                chars[i] = mask_char
    return "".join(chars)
