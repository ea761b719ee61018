# diffmerge/models/task.py

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class AsyncTask(BaseModel):
    """
    Snapshot of a remote long-running job.

    Only ever built from a task-status response; the client never edits one.
    """

    id: str
    status: TaskStatus
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    message: str = ""
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return min(max(float(value), 0.0), 100.0)
        return value

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, value: Any) -> Any:
        return value or ""

    @classmethod
    def from_status(cls, task_id: str, payload: Dict[str, Any]) -> "AsyncTask":
        """Build a task from a ``GET /diffs/task-status/{id}`` payload."""
        return cls(
            id=task_id,
            status=payload.get("status"),
            progress=payload.get("progress"),
            message=payload.get("message"),
            result=payload.get("result"),
            error=payload.get("error"),
        )
