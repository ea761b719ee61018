"""Data models for the merge workflow."""

from .goal import MergeGoal, MergePriority, MergeStrategy
from .document import DocumentRef
from .diff import DiffLine, DiffLineKind, DiffResult, DiffStats
from .task import AsyncTask, TaskStatus
from .merge import AIGuidance, FinalizedMerge, MergeReport, MergeRequest, MergeResult
from .session import WorkflowSession, WorkflowStep

__all__ = [
    "MergeGoal",
    "MergePriority",
    "MergeStrategy",
    "DocumentRef",
    "DiffLine",
    "DiffLineKind",
    "DiffResult",
    "DiffStats",
    "AsyncTask",
    "TaskStatus",
    "AIGuidance",
    "FinalizedMerge",
    "MergeReport",
    "MergeRequest",
    "MergeResult",
    "WorkflowSession",
    "WorkflowStep",
]
