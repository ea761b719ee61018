"""Remote task tracking."""

from .poller import CancellationToken, TaskPoller

__all__ = [
    "CancellationToken",
    "TaskPoller",
]
