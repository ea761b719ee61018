"""Merge job submission, tracking and persistence."""

from .orchestrator import MergeOrchestrator, parse_merge_payload

__all__ = [
    "MergeOrchestrator",
    "parse_merge_payload",
]
