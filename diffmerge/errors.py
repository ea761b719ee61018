# diffmerge/errors.py
"""
Error taxonomy for the merge client.

Client-side precondition failures (ValidationError) never reach the service.
Everything else describes how a remote call or a remote task went wrong and
is turned into a single user-facing message by describe_error().
"""

from typing import Any, List, Optional

import httpx


NETWORK_ERROR_MESSAGE = "No response from server. Please check your connection."
AUTH_ERROR_MESSAGE = "Authentication error. Please log in again."


class DiffMergeError(Exception):
    """Base exception for all client errors."""

    pass


class ValidationError(DiffMergeError):
    """Raised when a client-side precondition does not hold."""

    pass


class InvalidTransitionError(ValidationError):
    """Raised when a workflow step change is not allowed."""

    pass


class BusyError(DiffMergeError):
    """Raised when a second remote pipeline is started while one is running."""

    pass


class NetworkError(DiffMergeError):
    """No response was received from the service."""

    def __init__(self, message: str = NETWORK_ERROR_MESSAGE):
        super().__init__(message)


class ServiceError(DiffMergeError):
    """The service answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail or f"Server error: {status_code}")

    @property
    def is_transient(self) -> bool:
        return self.status_code >= 500

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ServiceError":
        """Build an error from a response, keeping the service's detail message."""
        detail: Optional[str] = None
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("detail"):
            raw = body["detail"]
            detail = raw if isinstance(raw, str) else str(raw)
        return cls(response.status_code, detail)


class AuthError(DiffMergeError):
    """The service rejected the credential (401)."""

    def __init__(self, message: str = AUTH_ERROR_MESSAGE):
        super().__init__(message)


class ProtocolError(DiffMergeError):
    """The service answered with a payload the client cannot use."""

    pass


class TaskFailedError(DiffMergeError):
    """The service reported that a task failed."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Task failed"
        super().__init__(self.reason)


class TaskTimeoutError(DiffMergeError, TimeoutError):
    """The polling attempt budget ran out before the task finished."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Maximum polling attempts reached ({attempts})")


class TaskCancelledError(DiffMergeError):
    """Polling was cancelled before the task finished."""

    pass


class MergeSubmissionError(DiffMergeError):
    """A merge job could not be submitted."""

    pass


class PersistenceError(DiffMergeError):
    """The merged document was not persisted by the service."""

    pass


class DocumentUploadError(DiffMergeError):
    """One or more documents failed to upload."""

    def __init__(self, failed: List[str]):
        self.failed = list(failed)
        super().__init__(
            f"Failed to upload {len(self.failed)} document(s). Please try again."
        )


def describe_error(exc: BaseException) -> str:
    """Return the single user-visible message for an exception."""
    if isinstance(exc, ServiceError):
        return exc.detail or f"Server error: {exc.status_code}"
    if isinstance(exc, DiffMergeError):
        return str(exc)
    return f"Error: {exc}"
