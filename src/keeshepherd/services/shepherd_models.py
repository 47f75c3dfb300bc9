"""
Result models for file-level secret operations.
"""

from dataclasses import dataclass, field


@dataclass
class FileStashOutcome:
    """
    Outcome of stashing or unstashing one file.

    Attributes:
        file_path: The file that was processed
        stash: Direction (True = values replaced by anchors)
        replaced: Number of spans rewritten
        missing: Managed secrets found neither as value nor as anchor
        unresolved: Managed secrets skipped because no value was available
    """

    file_path: str
    stash: bool
    replaced: int = 0
    missing: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.replaced > 0


@dataclass
class BulkStashResult:
    """Outcome of stashing or unstashing every tracked file under some folders."""

    outcomes: list[FileStashOutcome] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def files_changed(self) -> int:
        return sum(1 for o in self.outcomes if o.changed)

    @property
    def secrets_replaced(self) -> int:
        return sum(o.replaced for o in self.outcomes)

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class ResolveResult:
    """Anchors of a file matched (or not) to secrets recorded elsewhere."""

    resolved: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
