# diffmerge/models/diff.py

from enum import Enum
from typing import Any, Dict, Iterable, Tuple

from pydantic import BaseModel, ConfigDict, Field

BASIC_DIFF_SUMMARY = "Basic diff comparison completed. Enable enhanced diff for AI summary."


class DiffLineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class DiffLine(BaseModel):
    """One line of a line-level diff (wire shape: {"type", "line"})."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: DiffLineKind = Field(alias="type")
    text: str = Field(alias="line")


class DiffStats(BaseModel):
    """Counts and ratios reported with a diff. Opaque to the workflow."""

    model_config = ConfigDict(frozen=True, extra="allow")

    total_lines: int = 0
    added_lines: int = 0
    removed_lines: int = 0
    unchanged_lines: int = 0
    words_added: int = 0
    words_removed: int = 0
    change_ratio: float = 0.0


class DiffResult(BaseModel):
    """
    Result of comparing two documents.

    Produced once per comparison request and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    diff_lines: Tuple[DiffLine, ...] = ()
    stats: DiffStats = Field(default_factory=DiffStats)
    summary: str = Field(default="", alias="ai_summary")

    @classmethod
    def from_basic(cls, lines: Iterable[Dict[str, Any]]) -> "DiffResult":
        """Normalize a non-enhanced ``{"diff": [...]}`` payload, counting lines locally."""
        diff_lines = tuple(DiffLine.model_validate(line) for line in lines)

        def count(kind: DiffLineKind) -> int:
            return sum(1 for line in diff_lines if line.kind == kind)

        return cls(
            diff_lines=diff_lines,
            stats=DiffStats(
                total_lines=len(diff_lines),
                added_lines=count(DiffLineKind.ADDED),
                removed_lines=count(DiffLineKind.REMOVED),
                unchanged_lines=count(DiffLineKind.UNCHANGED),
            ),
            summary=BASIC_DIFF_SUMMARY,
        )

    @property
    def added_lines(self) -> Tuple[DiffLine, ...]:
        return tuple(line for line in self.diff_lines if line.kind == DiffLineKind.ADDED)
