# diffmerge/client/client.py
"""
Async HTTP client for the diff/merge service.

Every call maps transport failures to NetworkError, 401 to AuthError (after
invalidating the stored credential) and any other non-2xx to ServiceError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import AuthError, NetworkError, ProtocolError, ServiceError
from ..models.diff import DiffResult
from ..models.merge import MergeRequest
from .auth import CredentialStore, get_credential_store

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_SECONDS = 60.0


class DiffMergeClient:
    """Thin async wrapper around the service's REST endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        credentials: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Service root, e.g. ``http://localhost:8000``
            timeout: Per-request timeout in seconds
            credentials: Token store (defaults to the process-wide store)
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials or get_credential_store()
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "DiffMergeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        headers: Dict[str, str] = {}
        if authenticated:
            token = self.credentials.token
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.TransportError as e:
            logger.debug("%s %s: no response (%s)", method, path, e)
            raise NetworkError() from e

        if response.status_code == 401:
            self.credentials.invalidate()
            raise AuthError()
        if response.is_error:
            error = ServiceError.from_response(response)
            logger.debug("%s %s failed: %s", method, path, error)
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON from {method} {path}") from e

    # Authentication

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Log in with form credentials and store the returned token."""
        payload = await self._request(
            "POST",
            "/auth/login",
            data={"username": username, "password": password},
            authenticated=False,
        )
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise ProtocolError("Login response did not include an access token")
        self.credentials.save(token)
        return payload

    async def get_current_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/auth/me")

    # Documents

    async def list_documents(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        return await self._request("GET", "/documents", params={"limit": limit, "offset": offset})

    async def get_document(self, document_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/documents/{document_id}")

    async def upload_document(
        self,
        filename: str,
        content: bytes,
        content_type: str = "text/plain",
    ) -> Dict[str, Any]:
        """Upload one file as multipart form data. Returns ``{id, filename}``."""
        payload = await self._request(
            "POST",
            "/documents/upload",
            files={"file": (filename, content, content_type)},
        )
        if not isinstance(payload, dict) or payload.get("id") is None:
            raise ProtocolError(f"Upload of {filename} returned no document id")
        return payload

    async def delete_document(self, document_id: int) -> None:
        await self._request("DELETE", f"/documents/{document_id}")

    # Diffs

    async def fetch_diff(self, doc_id_a: int, doc_id_b: int, enhanced: bool = True) -> DiffResult:
        """Compare two documents; the basic format is normalized into a DiffResult."""
        payload = await self._request(
            "GET",
            "/diffs",
            params={"doc_id_a": doc_id_a, "doc_id_b": doc_id_b, "enhanced": enhanced},
        )
        try:
            if enhanced:
                return DiffResult.model_validate(payload)
            return DiffResult.from_basic(payload["diff"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError("Unexpected diff payload") from e

    async def create_async_diff(self, doc_id_a: int, doc_id_b: int) -> str:
        payload = await self._request(
            "POST",
            "/diffs/async-diff",
            params={"doc_id_a": doc_id_a, "doc_id_b": doc_id_b},
        )
        return _task_id(payload)

    async def get_task_status(self, task_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/diffs/task-status/{task_id}")

    # Merges

    async def merge_documents(self, request: MergeRequest) -> Dict[str, Any]:
        """Synchronous merge; returns the raw merge payload."""
        return await self._request("POST", "/diffs/merge", json=request.model_dump(mode="json"))

    async def create_async_merge(self, request: MergeRequest) -> str:
        payload = await self._request(
            "POST", "/diffs/async-merge", json=request.model_dump(mode="json")
        )
        return _task_id(payload)

    async def get_merge_result(self, task_id: str, apply_result: bool = False) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"/diffs/merge-result/{task_id}",
            params={"apply_result": apply_result},
        )


def _task_id(payload: Any) -> str:
    task_id = payload.get("task_id") if isinstance(payload, dict) else None
    if not task_id:
        raise ProtocolError("Service did not return a task id")
    return str(task_id)
