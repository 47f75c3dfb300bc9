"""
Forward (value -> anchor) and backward (anchor -> value) text substitution.

The whole output is built in memory in one left-to-right pass; spans that
are already in their target form are copied through untouched, which
makes both directions idempotent.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from keeshepherd.core.models import anchor_for


@dataclass
class StashResult:
    """
    Outcome of a stash/unstash pass.

    Attributes:
        text: The transformed text
        missing: Names found neither in source nor in target form
        unresolved: Names skipped because no value was available for them
        replaced: Number of spans actually rewritten
    """

    text: str
    missing: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    replaced: int = 0

    @property
    def changed(self) -> bool:
        return self.replaced > 0


@dataclass
class _Token:
    name: str
    source: str
    target: str


def transform(text: str, values: Mapping[str, Optional[str]], stash: bool) -> StashResult:
    """
    Swap secret values for anchors (``stash=True``) or anchors for values.

    When several tokens match at one position the longest one wins; ties
    go to the name listed first in ``values``.

    Args:
        text: Input text
        values: ``{secret name: live value}`` for the secrets taking part
            (Managed secrets only). Names with an empty value are skipped,
            since an empty token would match everywhere.
        stash: Direction flag

    Returns:
        StashResult whose text differs from the input only at matched spans
    """
    tokens: list[_Token] = []
    unresolved: list[str] = []
    for name, value in values.items():
        if not value:
            unresolved.append(name)
            continue
        anchor = anchor_for(name)
        if stash:
            tokens.append(_Token(name, source=value, target=anchor))
        else:
            tokens.append(_Token(name, source=anchor, target=value))

    not_found = [t.name for t in tokens]
    output: list[str] = []
    replaced = 0

    pos = 0
    prev_pos = 0
    while pos < len(text):
        best: Optional[_Token] = None
        best_span = 0
        best_is_source = False

        for token in tokens:
            if text.startswith(token.source, pos):
                span, is_source = len(token.source), True
            elif text.startswith(token.target, pos):
                # Already in its final form
                span, is_source = len(token.target), False
            else:
                continue
            if best is None or span > best_span:
                best, best_span, best_is_source = token, span, is_source

        if best is None:
            pos += 1
            continue

        output.append(text[prev_pos:pos])
        output.append(best.target)
        if best_is_source:
            replaced += 1
        if best.name in not_found:
            not_found.remove(best.name)

        pos += best_span
        prev_pos = pos

    output.append(text[prev_pos:])

    return StashResult(
        text="".join(output),
        missing=not_found,
        unresolved=unresolved,
        replaced=replaced,
    )
