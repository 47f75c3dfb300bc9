"""
Unit tests for position map reconstruction.
"""

from keeshepherd.core.hashing import HashingService
from keeshepherd.core.masker import mask
from keeshepherd.core.models import ControlType, PositionMapEntry, Secret, SecretType, anchor_for
from keeshepherd.core.reconciler import locate_secret, reconcile

hashing = HashingService("unit-test-salt")


def make_secret(name: str, value: str, control_type: ControlType = ControlType.MANAGED) -> Secret:
    return Secret(
        name=name,
        type=SecretType.UNKNOWN,
        control_type=control_type,
        file_path="/work/app.env",
        hash=hashing.hash(value),
        length=len(value),
    )


def test_unstashed_value_is_found_by_hash():
    secret = make_secret("k1", "ABC123XYZ")

    result = reconcile("key=ABC123XYZ", [secret], hashing)

    assert result.missing == []
    assert result.entries == [PositionMapEntry("k1", secret.hash, 4, 9)]


def test_stashed_secret_records_value_length():
    secret = make_secret("k1", "ABC123XYZ")

    result = reconcile("key=@KeeShepherd(k1)", [secret], hashing)

    assert result.entries == [PositionMapEntry("k1", secret.hash, 4, 9)]


def test_known_value_is_used_without_hash_match():
    secret = make_secret("k1", "ABC123XYZ")
    # A stale hash would never match, but the live value is authoritative
    secret.hash = "stale"

    result = reconcile("key=ABC123XYZ", [secret], hashing, {"k1": "ABC123XYZ"})

    assert [(e.pos, e.length) for e in result.entries] == [(4, 9)]


def test_missing_secret_is_reported():
    secret = make_secret("k1", "ABC123XYZ")

    result = reconcile("key=", [secret], hashing)

    assert result.entries == []
    assert result.missing == ["k1"]


def test_position_after_anchor_is_shifted_to_unstashed_coordinates():
    # anchor width a=20, value width v=8
    first = make_secret("secret", "Abcd1234")
    second = make_secret("other", "Zyxw9876")
    anchor = anchor_for("secret")
    assert len(anchor) == 20

    text = "a=" + anchor + ";b=" + "Zyxw9876"
    p = text.index("Zyxw9876")

    result = reconcile(text, [first, second], hashing)

    assert [(e.name, e.pos, e.length) for e in result.entries] == [
        ("secret", 2, 8),
        ("other", p + (8 - 20), 8),
    ]
    # The same map matches the fully unstashed text
    unstashed = "a=Abcd1234;b=Zyxw9876"
    assert unstashed[result.entries[1].pos : result.entries[1].pos + 8] == "Zyxw9876"

    masked = mask(text, result.entries, hashing)
    assert [(r.start, r.end) for r in masked.hide_ranges] == [(p, p + 8)]
    assert masked.missing == []


def test_longest_match_wins():
    short = make_secret("short", "ABCDE")
    long = make_secret("long", "ABCDEFGH")

    result = reconcile(
        "x=ABCDEFGH", [short, long], hashing, {"short": "ABCDE", "long": "ABCDEFGH"}
    )

    assert [(e.name, e.pos, e.length) for e in result.entries] == [("long", 2, 8)]
    assert result.missing == ["short"]


def test_every_occurrence_is_recorded():
    secret = make_secret("k1", "ABC123XYZ")

    result = reconcile("a=ABC123XYZ\nb=ABC123XYZ", [secret], hashing)

    assert [e.pos for e in result.entries] == [2, 14]


def test_no_secrets_yields_empty_result():
    result = reconcile("anything", [], hashing)

    assert result.entries == []
    assert result.missing == []


def test_locate_secret_prefers_first_occurrence():
    secret = make_secret("k1", "ABC123XYZ")

    stashed = locate_secret("x=@KeeShepherd(k1) y=ABC123XYZ", secret, hashing)
    assert stashed is not None
    assert stashed.stashed is True
    assert (stashed.range.start, stashed.range.length) == (2, 16)

    unstashed = locate_secret("y=ABC123XYZ", secret, hashing)
    assert unstashed is not None
    assert unstashed.stashed is False
    assert (unstashed.range.start, unstashed.range.end) == (2, 11)

    assert locate_secret("nothing here", secret, hashing) is None


def test_locate_secret_can_skip_anchors():
    secret = make_secret("k1", "ABC123XYZ")
    text = "x=@KeeShepherd(k1) y=ABC123XYZ"

    location = locate_secret(text, secret, hashing, unstashed_only=True)

    assert location is not None
    assert location.stashed is False
    assert text[location.range.start : location.range.end] == "ABC123XYZ"
    assert locate_secret("x=@KeeShepherd(k1)", secret, hashing, unstashed_only=True) is None
