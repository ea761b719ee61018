# tests/conftest.py
"""Shared pytest fixtures and test helpers."""

from typing import Any, Dict, List, Tuple

import httpx
import pytest

from diffmerge.client import CredentialStore, DiffMergeClient
from diffmerge.models import DiffResult, MergeGoal, MergePriority, MergeStrategy

# Scripted response that makes the transport raise a connection error
NETWORK_DOWN = object()


class ScriptedService:
    """
    In-memory stand-in for the diff/merge service.

    Each route holds a queue of responses; the last one repeats once the
    queue is down to it. A response is a JSON-able value (200), an
    httpx.Response, NETWORK_DOWN, or a callable taking the request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *responses: Any) -> "ScriptedService":
        self.routes[(method, path)] = list(responses)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not Found"})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(item):
            item = item(request)
        if item is NETWORK_DOWN:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)


class FakeClock:
    """Virtual clock: records requested delays instead of sleeping."""

    def __init__(self):
        self.sleeps: List[float] = []
        self.now = 0.0
        self.on_sleep = None

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep()


@pytest.fixture
def service():
    return ScriptedService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials(tmp_path, monkeypatch):
    """Credential store isolated from the real environment and home directory."""
    monkeypatch.delenv("DIFFMERGE_TEST_TOKEN", raising=False)
    store = CredentialStore(
        credentials_path=str(tmp_path / "credentials.json"),
        token_env_var="DIFFMERGE_TEST_TOKEN",
    )
    store.save("test-token")
    return store


@pytest.fixture
def client(service, credentials):
    return DiffMergeClient(
        "http://testserver",
        timeout=5.0,
        credentials=credentials,
        transport=httpx.MockTransport(service.handler),
    )


@pytest.fixture
def goal():
    return MergeGoal(
        strategy=MergeStrategy.LATEST,
        priorities=[MergePriority.ACCURACY],
        preserve_sections=["Introduction"],
        notes="Keep the tone formal",
    )


@pytest.fixture
def diff_payload():
    """Enhanced diff payload as the service returns it."""
    return {
        "diff_lines": [
            {"type": "unchanged", "line": "bar"},
            {"type": "added", "line": "foo"},
            {"type": "removed", "line": "old"},
        ],
        "stats": {"total_lines": 3, "added_lines": 1, "removed_lines": 1, "unchanged_lines": 1},
        "ai_summary": "One line added, one removed.",
    }


@pytest.fixture
def diff_result(diff_payload):
    return DiffResult.model_validate(diff_payload)
