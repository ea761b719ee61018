# diffmerge/tasks/poller.py
"""
Polling engine for remote long-running tasks.

Requests the task status once per attempt, sleeping between attempts, until
the task completes, fails, is cancelled or the attempt budget runs out.
Transient request failures are retried and share the same budget.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import anyio
from pydantic import ValidationError as SchemaError

from ..errors import (
    NetworkError,
    ProtocolError,
    ServiceError,
    TaskCancelledError,
    TaskFailedError,
    TaskTimeoutError,
)
from ..models.task import AsyncTask, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_ATTEMPTS = 120

ProgressCallback = Callable[[float, str], Any]
SleepFunc = Callable[[float], Awaitable[None]]


class TaskStatusSource(Protocol):
    """Anything able to report a task's status payload."""

    async def get_task_status(self, task_id: str) -> dict: ...


class CancellationToken:
    """Cooperative cancellation flag handed to a poll loop."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Polling cancelled") -> None:
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise TaskCancelledError(self.reason or "Polling cancelled")


class TaskPoller:
    """Track a remote task until it reaches a terminal state."""

    def __init__(
        self,
        source: TaskStatusSource,
        sleep: Optional[SleepFunc] = None,
        max_network_failures: Optional[int] = None,
    ):
        """
        Args:
            source: Object exposing ``get_task_status(task_id)``
            sleep: Async delay function (defaults to ``anyio.sleep``)
            max_network_failures: Give up after this many consecutive
                transient failures; None lets them draw on the attempt budget
        """
        self.source = source
        self._sleep = sleep or anyio.sleep
        self.max_network_failures = max_network_failures

    async def poll(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncTask:
        """
        Poll until the task completes.

        Args:
            task_id: Remote task identifier
            on_progress: Called with (progress, message) whenever a progress
                value is reported; may be sync or async
            interval: Seconds between attempts
            max_attempts: Total number of status requests allowed
            cancel_token: Stops the loop when cancelled

        Returns:
            The completed task, including its result payload

        Raises:
            TaskFailedError: the service reported failure
            TaskTimeoutError: max_attempts requests without a terminal status
            TaskCancelledError: the token was cancelled
            AuthError, ServiceError (4xx), ProtocolError: not retried
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        consecutive_failures = 0
        for attempt in range(1, max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                payload = await self.source.get_task_status(task_id)
            except (NetworkError, ServiceError) as e:
                if isinstance(e, ServiceError) and not e.is_transient:
                    raise
                consecutive_failures += 1
                logger.warning(
                    "Task %s status request failed (attempt %d/%d): %s",
                    task_id, attempt, max_attempts, e,
                )
                if (
                    self.max_network_failures is not None
                    and consecutive_failures >= self.max_network_failures
                ):
                    raise
            else:
                consecutive_failures = 0
                task = self._parse(task_id, payload)
                logger.debug(
                    "Task %s attempt %d/%d: %s %s",
                    task_id, attempt, max_attempts, task.status.value, task.progress,
                )

                if on_progress is not None and task.progress is not None:
                    outcome = on_progress(task.progress, task.message)
                    if inspect.isawaitable(outcome):
                        await outcome

                if task.status == TaskStatus.COMPLETED:
                    return task
                if task.status == TaskStatus.FAILED:
                    logger.error("Task %s failed: %s", task_id, task.error or "no reason given")
                    raise TaskFailedError(task.error)

            if attempt == max_attempts:
                break

            await self._sleep(interval)

        logger.error("Task %s did not finish after %d attempts", task_id, max_attempts)
        raise TaskTimeoutError(max_attempts)

    @staticmethod
    def _parse(task_id: str, payload: Any) -> AsyncTask:
        if not isinstance(payload, dict):
            raise ProtocolError(f"Task {task_id} status is not an object")
        try:
            return AsyncTask.from_status(task_id, payload)
        except SchemaError as e:
            raise ProtocolError(f"Task {task_id} returned an unreadable status") from e
