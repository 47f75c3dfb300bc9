"""
Property-based tests for stash/unstash, reconciliation and masking.

Texts are built from lowercase filler and uppercase/digit secret values, so
a value can only ever be matched where it was placed.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from keeshepherd.core.hashing import HashingService
from keeshepherd.core.masker import mask
from keeshepherd.core.models import ControlType, PositionMapEntry, Secret, SecretType
from keeshepherd.core.reconciler import reconcile
from keeshepherd.core.stash_transformer import transform

hashing = HashingService("property-test-salt")

value_strategy = st.text(alphabet="ABCDEFGHJKLMNPQRSTUVWXYZ0123456789", min_size=5, max_size=12)

separator_strategy = st.text(alphabet="abcxyz =;:\n", min_size=1, max_size=12)


def _independent(values: list[str]) -> bool:
    return not any(a != b and a in b for a in values for b in values)


@st.composite
def document_strategy(draw):
    """Generate (text, {name: value}) with every value placed at least once."""
    values = draw(
        st.lists(value_strategy, min_size=1, max_size=4, unique=True).filter(_independent)
    )
    secrets = {f"s{i}": v for i, v in enumerate(values)}
    names = list(secrets)
    repeats = draw(st.lists(st.sampled_from(names), max_size=4))
    order = draw(st.permutations(names + repeats))

    parts = [draw(st.text(alphabet="abcxyz =;:\n", max_size=8))]
    for name in order:
        parts.append(secrets[name])
        parts.append(draw(separator_strategy))
    return "".join(parts), secrets


def _secrets_for(values: dict[str, str]) -> list[Secret]:
    return [
        Secret(
            name=name,
            type=SecretType.UNKNOWN,
            control_type=ControlType.MANAGED,
            file_path="/work/app.env",
            hash=hashing.hash(value),
            length=len(value),
        )
        for name, value in values.items()
    ]


@given(doc=document_strategy())
@settings(max_examples=100, deadline=None)
def test_unstash_of_stash_restores_text(doc):
    """
    *For any* text holding secret values, stashing then unstashing
    should give back exactly the original text.
    """
    text, values = doc

    stashed = transform(text, values, stash=True)
    restored = transform(stashed.text, values, stash=False)

    assert stashed.missing == []
    for value in values.values():
        assert value not in stashed.text
    assert restored.text == text


@given(doc=document_strategy())
@settings(max_examples=100, deadline=None)
def test_stash_and_unstash_are_idempotent(doc):
    """
    *For any* text, stashing an already stashed text (or unstashing an
    unstashed one) should change nothing and report nothing missing.
    """
    text, values = doc

    stashed = transform(text, values, stash=True).text
    again = transform(stashed, values, stash=True)
    assert again.text == stashed
    assert again.replaced == 0
    assert again.missing == []

    unstashed = transform(text, values, stash=False)
    assert unstashed.text == text
    assert unstashed.missing == []


@given(doc=document_strategy())
@settings(max_examples=50, deadline=None)
def test_map_is_identical_for_stashed_and_unstashed_text(doc):
    """
    *For any* text, the map rebuilt from the stashed text should equal the
    map rebuilt from the unstashed text, since positions are recorded in
    fully-unstashed coordinates.
    """
    text, values = doc
    secrets = _secrets_for(values)

    stashed = transform(text, values, stash=True).text
    from_plain = reconcile(text, secrets, hashing)
    from_stashed = reconcile(stashed, secrets, hashing)
    with_values = reconcile(text, secrets, hashing, values)

    assert from_plain.missing == []
    assert from_stashed.entries == from_plain.entries
    assert with_values.entries == from_plain.entries


@given(doc=document_strategy())
@settings(max_examples=50, deadline=None)
def test_masking_hides_exactly_the_values(doc):
    """
    *For any* valid map, every hide-range should cover exactly one secret
    value, and every value occurrence should be hidden.
    """
    text, values = doc
    secrets = _secrets_for(values)
    entries = reconcile(text, secrets, hashing, values).entries

    result = mask(text, entries, hashing)

    assert result.missing == []
    assert len(result.hide_ranges) == sum(text.count(v) for v in values.values())
    hidden = {text[r.start : r.end] for r in result.hide_ranges}
    assert hidden == set(values.values())


@given(doc=document_strategy(), shift=st.integers(min_value=1, max_value=3))
@settings(max_examples=50, deadline=None)
def test_masking_never_hides_stale_spans(doc, shift):
    """
    *For any* map whose entries no longer point at their values, nothing
    should be hidden and every such name should be reported missing.
    """
    text, values = doc
    secrets = _secrets_for(values)
    entries = reconcile(text, secrets, hashing, values).entries
    stale = [PositionMapEntry(e.name, e.hash, e.pos + shift, e.length) for e in entries]

    result = mask(text, stale, hashing)

    assert result.hide_ranges == []
    assert set(result.missing) == {e.name for e in entries}
