"""
Rebuilds a file's position map by scanning its text.

A single left-to-right pass recognises each known secret in one of three
forms at every position: its anchor (cheap substring test), its live value
(when one could be fetched), or a span whose fingerprint equals the
recorded hash (always correct, but costly). Recorded positions are shifted
into fully-unstashed coordinates so that one map describes a file holding
any mix of stashed and unstashed secrets.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from keeshepherd.core.hashing import HashingService
from keeshepherd.core.models import PositionMapEntry, Secret, TextRange, anchor_for


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    entries: list[PositionMapEntry] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


@dataclass
class SecretLocation:
    """Where a single secret was found in the current text."""

    range: TextRange
    stashed: bool


@dataclass
class _Match:
    secret: Secret
    span: int
    is_anchor: bool


def _match_at(
    text: str,
    pos: int,
    secret: Secret,
    anchor: str,
    value: Optional[str],
    hashing: HashingService,
) -> Optional[_Match]:
    """Test the anchor, live value and fingerprint of one secret at ``pos``, in that order."""
    if text.startswith(anchor, pos):
        return _Match(secret, len(anchor), True)

    if value:
        # A known live value is authoritative, no need to hash
        if text.startswith(value, pos):
            return _Match(secret, len(value), False)
        return None

    if secret.length <= 0 or pos + secret.length > len(text):
        return None
    if hashing.matches(text[pos : pos + secret.length], secret.hash):
        return _Match(secret, secret.length, False)
    return None


def _unique_by_name(secrets: Sequence[Secret]) -> list[Secret]:
    seen: set[str] = set()
    result = []
    for secret in secrets:
        if secret.name not in seen:
            seen.add(secret.name)
            result.append(secret)
    return result


def reconcile(
    text: str,
    secrets: Sequence[Secret],
    hashing: HashingService,
    known_values: Optional[Mapping[str, str]] = None,
) -> ReconcileResult:
    """
    Locate every known secret in ``text`` and build a fresh position map.

    When several secrets match at the same position, the longest matched
    span wins; ties go to the secret listed first. Every occurrence of a
    secret is recorded, so a value pasted twice is masked twice.

    Args:
        text: Current text of the file
        secrets: Secrets known to belong to the file
        hashing: Fingerprinting service holding the salt
        known_values: Optional ``{name: live value}``; may be partial or empty

    Returns:
        ReconcileResult with the map entries in text order and the names
        of secrets that were not found anywhere
    """
    if not secrets:
        return ReconcileResult()

    known_values = known_values or {}
    candidates = _unique_by_name(secrets)
    anchors = {s.name: anchor_for(s.name) for s in candidates}

    entries: list[PositionMapEntry] = []
    found: set[str] = set()

    pos = 0
    pos_shift = 0
    while pos < len(text):
        best: Optional[_Match] = None
        for secret in candidates:
            match = _match_at(
                text, pos, secret, anchors[secret.name], known_values.get(secret.name), hashing
            )
            if match is not None and (best is None or match.span > best.span):
                best = match

        if best is None:
            pos += 1
            continue

        secret = best.secret
        length = secret.length if best.is_anchor else best.span
        entries.append(PositionMapEntry(secret.name, secret.hash, pos + pos_shift, length))
        found.add(secret.name)

        pos += best.span
        if best.is_anchor:
            # Everything after this anchor sits (value - anchor) further in unstashed coordinates
            pos_shift += secret.length - best.span

    missing = [s.name for s in candidates if s.name not in found]
    return ReconcileResult(entries=entries, missing=missing)


def locate_secret(
    text: str, secret: Secret, hashing: HashingService, unstashed_only: bool = False
) -> Optional[SecretLocation]:
    """
    Find the first occurrence of one secret by brute force, ignoring any map.

    Used for navigation and for recovering a secret's live value from text
    when its value provider is unavailable. With ``unstashed_only``, anchors
    are stepped over and only a live value can be returned.
    """
    anchor = anchor_for(secret.name)
    pos = 0
    while pos < len(text):
        if text.startswith(anchor, pos):
            if not unstashed_only:
                return SecretLocation(TextRange(pos, pos + len(anchor)), stashed=True)
            pos += len(anchor)
            continue
        if pos + secret.length <= len(text) and hashing.matches(
            text[pos : pos + secret.length], secret.hash
        ):
            return SecretLocation(TextRange(pos, pos + secret.length), stashed=False)
        pos += 1
    return None
