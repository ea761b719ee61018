# diffmerge/highlight/reconciler.py
"""
Line classification of merged text against a line-level diff.

This is a heuristic, not an alignment: a merged line counts as added when
its stripped text equals the stripped text of any added diff line, wherever
either appears. Duplicate lines therefore produce false positives and
negatives. Callers depend only on classify(), so a positional algorithm can
replace it later.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional

from ..models.diff import DiffLineKind, DiffResult

CONFLICT_START_MARKER = "<<<"
CONFLICT_END_MARKER = ">>>"


class HighlightKind(str, Enum):
    ADDED = "added"
    CONFLICT = "conflict"
    NONE = "none"


@dataclass(frozen=True)
class HighlightedLine:
    """One line of merged content and how to highlight it."""
    text: str
    highlight: HighlightKind


def added_texts(diff_result: Optional[DiffResult]) -> FrozenSet[str]:
    """Stripped text of every added line in the diff."""
    if diff_result is None:
        return frozenset()
    return frozenset(
        line.text.strip() for line in diff_result.diff_lines if line.kind == DiffLineKind.ADDED
    )


def classify(merged_content: str, diff_result: Optional[DiffResult]) -> List[HighlightedLine]:
    """
    Classify each line of merged_content.

    Added-set membership is checked first, so a line that is both added and
    carries conflict markers is reported as added.
    """
    if not merged_content:
        return []

    added = added_texts(diff_result)
    lines: List[HighlightedLine] = []
    for line in merged_content.split("\n"):
        if line.strip() in added:
            highlight = HighlightKind.ADDED
        elif CONFLICT_START_MARKER in line and CONFLICT_END_MARKER in line:
            highlight = HighlightKind.CONFLICT
        else:
            highlight = HighlightKind.NONE
        lines.append(HighlightedLine(text=line, highlight=highlight))
    return lines
