# diffmerge/merge/orchestrator.py
"""
Merge job orchestration.

Builds merge requests from the user's goal, submits them as remote tasks,
tracks them through the TaskPoller and persists the final text.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from ..client.client import DiffMergeClient
from ..errors import (
    BusyError,
    MergeSubmissionError,
    NetworkError,
    PersistenceError,
    ProtocolError,
    ServiceError,
    ValidationError,
)
from ..logging_config import log_performance
from ..models.document import DocumentRef
from ..models.goal import MergeGoal
from ..models.merge import FinalizedMerge, MergeReport, MergeRequest, MergeResult
from ..tasks.poller import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    CancellationToken,
    ProgressCallback,
    TaskPoller,
)

logger = logging.getLogger(__name__)


def parse_merge_payload(payload: Any, source: str) -> MergeResult:
    """
    Extract merged content and report from a merge payload.

    Raises:
        ProtocolError: the payload has no merged_content
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("merged_content"), str):
        raise ProtocolError(f"Merge {source} completed but no merged content was returned")

    report: Dict[str, Any] = payload.get("report") or {}
    return MergeResult(
        merged_content=payload["merged_content"],
        report=MergeReport(
            conflicts_resolved=int(report.get("conflicts_resolved") or 0),
            summary=report.get("summary") or "",
        ),
    )


def default_merged_filename(first_document: Optional[DocumentRef]) -> str:
    return f"Merged_{first_document.filename if first_document else 'document'}"


class MergeOrchestrator:
    """Submit, track and finalize merge jobs for one workflow."""

    def __init__(
        self,
        client: DiffMergeClient,
        poller: Optional[TaskPoller] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.client = client
        self.poller = poller or TaskPoller(client)
        self.interval = interval
        self.max_attempts = max_attempts
        # (claim key, description, task id) of the submission or poll in flight
        self._slot: Optional[Tuple[object, str, Optional[str]]] = None

    @property
    def active_task_id(self) -> Optional[str]:
        """Task currently being tracked, if any."""
        return self._slot[2] if self._slot is not None else None

    def _claim(self, description: str, task_id: Optional[str] = None) -> object:
        if self._slot is not None:
            raise BusyError(f"{self._slot[1]} is still running")
        key = object()
        self._slot = (key, description, task_id)
        return key

    def _release(self, key: object) -> None:
        # A slot dropped by cancel() may already belong to a newer merge
        if self._slot is not None and self._slot[0] is key:
            self._slot = None

    def cancel(self) -> None:
        """Forget the submission or poll in flight so a new merge can start."""
        if self._slot is not None:
            logger.info("Abandoning %s", self._slot[1].lower())
            self._slot = None

    @staticmethod
    def build_request(doc_a: DocumentRef, doc_b: DocumentRef, goal: MergeGoal) -> MergeRequest:
        if doc_a.id is None or doc_b.id is None:
            raise ValidationError("Both documents must be uploaded before merging")
        return MergeRequest.from_goal(doc_a.id, doc_b.id, goal)

    @log_performance("merge_submit")
    async def submit(self, doc_a: DocumentRef, doc_b: DocumentRef, goal: MergeGoal) -> str:
        """
        Submit an async merge.

        Returns:
            The task id assigned by the service

        Raises:
            ValidationError: goal or documents are not ready
            BusyError: another merge is being submitted or tracked
            MergeSubmissionError: the service could not be reached or refused
        """
        goal.validate_for_submission()
        request = self.build_request(doc_a, doc_b, goal)

        key = self._claim("Merge submission")
        try:
            task_id = await self.client.create_async_merge(request)
        except (NetworkError, ServiceError) as e:
            raise MergeSubmissionError(f"Failed to start merge: {e}") from e
        finally:
            self._release(key)

        logger.info(
            "Submitted merge task %s for documents %s and %s (%s)",
            task_id, request.doc_id_a, request.doc_id_b, goal.strategy.value,
        )
        return task_id

    async def track(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MergeResult:
        """Poll the task to completion and extract the merge result."""
        key = self._claim(f"Merge task {task_id}", task_id)
        try:
            task = await self.poller.poll(
                task_id,
                on_progress=on_progress,
                interval=self.interval,
                max_attempts=self.max_attempts,
                cancel_token=cancel_token,
            )
        finally:
            self._release(key)

        result = parse_merge_payload(task.result, f"task {task_id}")
        logger.info(
            "Merge task %s finished: %d conflicts resolved",
            task_id, result.report.conflicts_resolved,
        )
        return result

    async def fetch_result(self, task_id: str) -> MergeResult:
        """Re-read the raw result of a finished merge without persisting it."""
        payload = await self.client.get_merge_result(task_id, apply_result=False)
        return parse_merge_payload(payload, f"task {task_id}")

    async def merge_now(self, doc_a: DocumentRef, doc_b: DocumentRef, goal: MergeGoal) -> MergeResult:
        """Merge synchronously, for services without task support."""
        goal.validate_for_submission()
        payload = await self.client.merge_documents(self.build_request(doc_a, doc_b, goal))
        return parse_merge_payload(payload, "request")

    @log_performance("merge_finalize")
    async def finalize(
        self,
        task_id: str,
        content: str,
        original_content: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> FinalizedMerge:
        """
        Persist the merged text as a new document.

        Unedited content is applied server-side from the task result. Edited
        content is uploaded as-is so the text the user last saw is what gets
        stored.

        Raises:
            PersistenceError: the service did not return a document id
            NetworkError, ServiceError: the request itself failed
        """
        edited = original_content is not None and content != original_content

        if edited:
            name = filename or f"Merged_{task_id}.txt"
            try:
                payload = await self.client.upload_document(name, content.encode("utf-8"))
            except ProtocolError as e:
                raise PersistenceError("Failed to save merged document") from e
        else:
            payload = await self.client.get_merge_result(task_id, apply_result=True)

        document_id = payload.get("id") if isinstance(payload, dict) else None
        if document_id is None:
            raise PersistenceError("Failed to save merged document")

        finalized = FinalizedMerge(
            document_id=int(document_id),
            filename=payload.get("filename") or filename or f"Merged_{task_id}",
            edited=edited,
        )
        logger.info(
            "Merge task %s persisted as document %s (%s)%s",
            task_id, finalized.document_id, finalized.filename,
            " with manual edits" if edited else "",
        )
        return finalized
