# tests/test_poller.py
"""Tests for the task polling loop."""

import pytest

from diffmerge.errors import (
    AuthError,
    NetworkError,
    ProtocolError,
    ServiceError,
    TaskCancelledError,
    TaskFailedError,
    TaskTimeoutError,
)
from diffmerge.models import TaskStatus
from diffmerge.tasks import CancellationToken, TaskPoller


class ScriptedSource:
    """Task status source replaying a fixed sequence; the last entry repeats."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = 0

    async def get_task_status(self, task_id: str) -> dict:
        self.requests += 1
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class TestTerminalStatuses:
    @pytest.mark.asyncio
    async def test_completed_returns_task_with_result(self, clock):
        """A completed status resolves with the full task payload."""
        source = ScriptedSource(
            {"status": "pending"},
            {"status": "running", "progress": 50},
            {"status": "completed", "progress": 100, "result": {"merged_content": "x"}},
        )
        task = await TaskPoller(source, sleep=clock.sleep).poll("t1", interval=1.0)

        assert task.status == TaskStatus.COMPLETED
        assert task.result == {"merged_content": "x"}
        assert source.requests == 3
        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_failed_rejects_after_exactly_one_request(self, clock):
        """Failed on the first response is fatal and never re-polled."""
        source = ScriptedSource({"status": "failed", "error": "x"})

        with pytest.raises(TaskFailedError) as exc_info:
            await TaskPoller(source, sleep=clock.sleep).poll("t1")

        assert str(exc_info.value) == "x"
        assert exc_info.value.reason == "x"
        assert source.requests == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_failed_without_reason_uses_generic_message(self, clock):
        source = ScriptedSource({"status": "FAILED"})

        with pytest.raises(TaskFailedError, match="Task failed"):
            await TaskPoller(source, sleep=clock.sleep).poll("t1")

    @pytest.mark.asyncio
    async def test_never_leaving_running_times_out_after_max_attempts(self, clock):
        """Exactly max_attempts requests, with no sleep after the last one."""
        source = ScriptedSource({"status": "running", "progress": 10})

        with pytest.raises(TaskTimeoutError) as exc_info:
            await TaskPoller(source, sleep=clock.sleep).poll("t1", interval=0.5, max_attempts=5)

        assert source.requests == 5
        assert clock.sleeps == [0.5] * 4
        assert exc_info.value.attempts == 5
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_max_attempts_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            await TaskPoller(ScriptedSource({"status": "running"}), sleep=clock.sleep).poll(
                "t1", max_attempts=0
            )


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_reported_in_response_order(self, clock):
        source = ScriptedSource(
            {"status": "running", "progress": 10, "message": "Reading"},
            {"status": "running"},
            {"status": "running", "progress": 60, "message": "Merging"},
            {"status": "completed", "progress": 100, "result": {}},
        )
        seen = []

        await TaskPoller(source, sleep=clock.sleep).poll(
            "t1", on_progress=lambda p, m: seen.append((p, m))
        )

        assert seen == [(10, "Reading"), (60, "Merging"), (100, "")]

    @pytest.mark.asyncio
    async def test_async_progress_callback_is_awaited(self, clock):
        source = ScriptedSource({"status": "completed", "progress": 100, "result": {}})
        seen = []

        async def on_progress(progress, message):
            seen.append(progress)

        await TaskPoller(source, sleep=clock.sleep).poll("t1", on_progress=on_progress)

        assert seen == [100]

    @pytest.mark.asyncio
    async def test_overshooting_progress_does_not_fail_the_poll(self, clock):
        source = ScriptedSource(
            {"status": "running", "progress": 100.5},
            {"status": "completed", "progress": 101, "result": {"merged_content": "x"}},
        )
        seen = []

        task = await TaskPoller(source, sleep=clock.sleep).poll(
            "t1", on_progress=lambda p, m: seen.append(p)
        )

        assert task.status == TaskStatus.COMPLETED
        assert seen == [100, 100]


class TestTransientFailures:
    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, clock):
        source = ScriptedSource(
            NetworkError(),
            NetworkError(),
            {"status": "completed", "result": {}},
        )
        task = await TaskPoller(source, sleep=clock.sleep).poll("t1")

        assert task.status == TaskStatus.COMPLETED
        assert source.requests == 3

    @pytest.mark.asyncio
    async def test_network_errors_share_the_attempt_budget(self, clock):
        """Unreachable service and slow completion draw from the same budget."""
        source = ScriptedSource(NetworkError(), {"status": "running"})

        with pytest.raises(TaskTimeoutError):
            await TaskPoller(source, sleep=clock.sleep).poll("t1", max_attempts=3)

        assert source.requests == 3

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, clock):
        source = ScriptedSource(ServiceError(503), {"status": "completed", "result": {}})
        task = await TaskPoller(source, sleep=clock.sleep).poll("t1")

        assert task.status == TaskStatus.COMPLETED
        assert source.requests == 2

    @pytest.mark.asyncio
    async def test_consecutive_network_failure_limit(self, clock):
        source = ScriptedSource(NetworkError())
        poller = TaskPoller(source, sleep=clock.sleep, max_network_failures=3)

        with pytest.raises(NetworkError):
            await poller.poll("t1", max_attempts=120)

        assert source.requests == 3

    @pytest.mark.asyncio
    async def test_failure_limit_counts_only_consecutive_failures(self, clock):
        source = ScriptedSource(
            NetworkError(),
            {"status": "running"},
            NetworkError(),
            {"status": "completed", "result": {}},
        )
        poller = TaskPoller(source, sleep=clock.sleep, max_network_failures=2)

        task = await poller.poll("t1")

        assert task.status == TaskStatus.COMPLETED


class TestFatalFailures:
    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, clock):
        source = ScriptedSource(ServiceError(404, "Task not found"))

        with pytest.raises(ServiceError, match="Task not found"):
            await TaskPoller(source, sleep=clock.sleep).poll("t1")

        assert source.requests == 1

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retried(self, clock):
        source = ScriptedSource(AuthError())

        with pytest.raises(AuthError):
            await TaskPoller(source, sleep=clock.sleep).poll("t1")

        assert source.requests == 1

    @pytest.mark.asyncio
    async def test_unknown_status_is_protocol_error(self, clock):
        source = ScriptedSource({"status": "exploded"})

        with pytest.raises(ProtocolError):
            await TaskPoller(source, sleep=clock.sleep).poll("t1")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_token_issues_no_request(self, clock):
        source = ScriptedSource({"status": "running"})
        token = CancellationToken()
        token.cancel()

        with pytest.raises(TaskCancelledError):
            await TaskPoller(source, sleep=clock.sleep).poll("t1", cancel_token=token)

        assert source.requests == 0

    @pytest.mark.asyncio
    async def test_cancel_during_sleep_stops_polling(self, clock):
        source = ScriptedSource({"status": "running"})
        token = CancellationToken()
        clock.on_sleep = lambda: token.cancel("Session was reset")

        with pytest.raises(TaskCancelledError, match="Session was reset"):
            await TaskPoller(source, sleep=clock.sleep).poll("t1", cancel_token=token)

        assert source.requests == 1
