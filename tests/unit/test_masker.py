"""
Unit tests for the masker.
"""

from keeshepherd.core.hashing import HashingService
from keeshepherd.core.masker import mask, render_masked
from keeshepherd.core.models import PositionMapEntry, TextRange

hashing = HashingService("unit-test-salt")


def entry(name: str, value: str, pos: int) -> PositionMapEntry:
    return PositionMapEntry(name, hashing.hash(value), pos, len(value))


def test_valid_entry_is_hidden():
    result = mask("key=ABC123XYZ", [entry("k1", "ABC123XYZ", 4)], hashing)

    assert result.hide_ranges == [TextRange(4, 13)]
    assert result.missing == []


def test_stashed_entry_is_not_hidden():
    result = mask("key=@KeeShepherd(k1)", [entry("k1", "ABC123XYZ", 4)], hashing)

    assert result.hide_ranges == []
    assert result.missing == []


def test_stale_entry_is_reported_not_hidden():
    text = "key=ABC123XYZ"
    stale = entry("k1", "ABC123XYZ", 3)

    result = mask(text, [stale], hashing)

    assert result.hide_ranges == []
    assert result.missing == ["k1"]


def test_deleted_secret_is_reported():
    result = mask("key=", [entry("k1", "ABC123XYZ", 4)], hashing)

    assert result.hide_ranges == []
    assert result.missing == ["k1"]


def test_entries_are_processed_in_position_order():
    text = "b=@KeeShepherd(s1) c=QWERTY12"
    # Unstashed coordinates: "b=VALUE1234 c=QWERTY12"
    entries = [entry("s2", "QWERTY12", 14), entry("s1", "VALUE1234", 2)]

    result = mask(text, entries, hashing)

    start = text.index("QWERTY12")
    assert result.hide_ranges == [TextRange(start, start + 8)]


def test_missing_names_are_deduplicated():
    entries = [entry("k1", "ABC123XYZ", 0), entry("k1", "ABC123XYZ", 20)]

    result = mask("short", entries, hashing)

    assert result.missing == ["k1"]


def test_render_masked_keeps_line_breaks():
    text = "a=SECRET\nb=XY\r\nZ"

    rendered = render_masked(text, [TextRange(2, 8), TextRange(11, 16)])

    assert rendered == "a=******\nb=**\r\n*"
    assert len(rendered) == len(text)
