# diffmerge/workflow/controller.py
"""
Workflow step machine.

Drives one merge session through its steps:
- Goal setting (strategy, priorities, rules)
- Document upload
- Diff review of two uploaded documents
- Final review: run the merge, inspect, edit and finalize it
- Complete, until reset

The controller is the only writer of WorkflowSession. Remote work goes
through the client and MergeOrchestrator, one pipeline at a time.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

import anyio

from ..client.client import DiffMergeClient
from ..config import PollingConfig
from ..errors import (
    AuthError,
    BusyError,
    DiffMergeError,
    DocumentUploadError,
    InvalidTransitionError,
    NetworkError,
    ProtocolError,
    ServiceError,
    TaskCancelledError,
    ValidationError,
    describe_error,
)
from ..highlight.reconciler import HighlightedLine, classify
from ..merge.orchestrator import MergeOrchestrator, default_merged_filename
from ..models.document import DocumentRef
from ..models.goal import MergeGoal
from ..models.merge import FinalizedMerge, MergeResult
from ..models.session import WorkflowSession, WorkflowStep
from ..tasks.poller import CancellationToken, ProgressCallback, TaskPoller

logger = logging.getLogger(__name__)

# A guard returns None when the transition may proceed, else the reason it may not
Guard = Callable[[WorkflowSession], Optional[str]]


def _goal_ready(session: WorkflowSession) -> Optional[str]:
    if session.goal is None:
        return "Please set a merge goal"
    try:
        session.goal.validate_for_submission()
    except ValidationError as e:
        return str(e)
    return None


def _documents_ready(session: WorkflowSession) -> Optional[str]:
    if len(session.durable_documents) < 2:
        return "Please upload at least two documents to compare"
    return None


def _diff_ready(session: WorkflowSession) -> Optional[str]:
    if session.diff_result is None or session.compared_documents is None:
        return "Please compare two documents before continuing"
    return None


def _merge_finalized(session: WorkflowSession) -> Optional[str]:
    if session.finalized is None:
        return "Please finalize the merge before completing"
    return None


TRANSITIONS: Dict[WorkflowStep, Tuple[WorkflowStep, Guard]] = {
    WorkflowStep.GOAL_SETTING: (WorkflowStep.DOCUMENT_UPLOAD, _goal_ready),
    WorkflowStep.DOCUMENT_UPLOAD: (WorkflowStep.DIFF_REVIEW, _documents_ready),
    WorkflowStep.DIFF_REVIEW: (WorkflowStep.FINAL_REVIEW, _diff_ready),
    WorkflowStep.FINAL_REVIEW: (WorkflowStep.COMPLETE, _merge_finalized),
}

PREVIOUS_STEPS: Dict[WorkflowStep, WorkflowStep] = {
    WorkflowStep.DOCUMENT_UPLOAD: WorkflowStep.GOAL_SETTING,
    WorkflowStep.DIFF_REVIEW: WorkflowStep.DOCUMENT_UPLOAD,
    WorkflowStep.FINAL_REVIEW: WorkflowStep.DIFF_REVIEW,
}

# Rejected locally, never recorded as a service failure
_LOCAL_FAILURES = (ValidationError, BusyError)


class WorkflowController:
    """Own a WorkflowSession and move it between steps."""

    def __init__(
        self,
        client: DiffMergeClient,
        orchestrator: Optional[MergeOrchestrator] = None,
    ):
        self.client = client
        self.orchestrator = orchestrator or MergeOrchestrator(client)
        self.session = WorkflowSession()

        self._busy = False
        self._generation = 0
        self._cancel_token: Optional[CancellationToken] = None
        self._cancel_scope: Optional[anyio.CancelScope] = None

    @classmethod
    def from_config(cls, client: DiffMergeClient, polling: PollingConfig) -> "WorkflowController":
        poller = TaskPoller(client, max_network_failures=polling.max_network_failures)
        orchestrator = MergeOrchestrator(
            client,
            poller,
            interval=polling.interval_seconds,
            max_attempts=polling.max_attempts,
        )
        return cls(client, orchestrator)

    @property
    def step(self) -> WorkflowStep:
        return self.session.step

    @property
    def busy(self) -> bool:
        return self._busy

    # Internal helpers

    @asynccontextmanager
    async def _pipeline(self, operation: str) -> AsyncIterator[int]:
        """Hold the busy flag for one remote operation chain."""
        if self._busy:
            raise BusyError(f"Cannot {operation} while another operation is in progress")

        self._busy = True
        generation = self._generation
        self.session.last_error = None
        try:
            yield generation
        except _LOCAL_FAILURES:
            raise
        except DiffMergeError as e:
            if generation == self._generation:
                self.session.last_error = describe_error(e)
                logger.error("%s failed in session %s: %s", operation, self.session.id, e)
            raise
        finally:
            # A reset while in flight already handed the flag to the new session
            if generation == self._generation:
                self._busy = False

    def _ensure_idle(self) -> None:
        if self._busy:
            raise BusyError("Please wait for the current operation to finish")

    def _ensure_step(self, *steps: WorkflowStep) -> None:
        if self.session.step not in steps:
            allowed = ", ".join(step.label for step in steps)
            raise InvalidTransitionError(
                f"Not available in step {self.session.step.label} (requires {allowed})"
            )

    def _ensure_not_complete(self) -> None:
        if self.session.step == WorkflowStep.COMPLETE:
            raise InvalidTransitionError("Merge is complete. Reset to start a new one")

    def _check_generation(self, generation: int) -> None:
        if generation != self._generation:
            raise TaskCancelledError("Session was reset while the operation was running")

    def _clear_merge(self) -> None:
        session = self.session
        if session.task_id or session.merged_content is not None or session.finalized:
            logger.info("Discarding merge result of session %s", session.id)
        session.task_id = None
        session.merged_content = None
        session.original_content = None
        session.merge_report = None
        session.finalized = None
        session.progress = None
        session.progress_message = ""

    def _clear_comparison(self) -> None:
        self.session.diff_result = None
        self.session.compared_documents = None
        self._clear_merge()

    def _forward(self) -> WorkflowStep:
        current = self.session.step
        if current not in TRANSITIONS:
            raise InvalidTransitionError(f"Cannot advance from {current.label}")

        target, guard = TRANSITIONS[current]
        reason = guard(self.session)
        if reason:
            raise InvalidTransitionError(reason)

        self.session.step = target
        if target == WorkflowStep.COMPLETE:
            self.session.complete = True
        logger.info("Session %s: %s -> %s", self.session.id, current.value, target.value)
        return target

    # Navigation

    def advance(self) -> WorkflowStep:
        """
        Move to the next step.

        Raises:
            BusyError: a remote operation is running
            InvalidTransitionError: the current step's precondition does not hold
        """
        self._ensure_idle()
        return self._forward()

    def back(self) -> WorkflowStep:
        """Return to the previous step. Downstream data is kept."""
        self._ensure_idle()
        current = self.session.step
        if current not in PREVIOUS_STEPS:
            raise InvalidTransitionError(f"Cannot go back from {current.label}")

        self.session.step = PREVIOUS_STEPS[current]
        logger.info("Session %s: back to %s", self.session.id, self.session.step.value)
        return self.session.step

    def reset(self) -> WorkflowSession:
        """Start over with a fresh session, cancelling any in-flight merge."""
        if self._cancel_token is not None:
            self._cancel_token.cancel("Session was reset")
            self._cancel_token = None
        if self._cancel_scope is not None:
            # Interrupts a status request that is still waiting for its response
            self._cancel_scope.cancel()
            self._cancel_scope = None
        self.orchestrator.cancel()

        previous = self.session.id
        self._generation += 1
        self._busy = False
        self.session = WorkflowSession()
        logger.info("Session %s reset; new session %s", previous, self.session.id)
        return self.session

    # Goal

    def set_goal(self, goal: MergeGoal) -> None:
        """Replace the goal. A different goal invalidates any merge result."""
        self._ensure_idle()
        self._ensure_not_complete()

        if self.session.goal is not None and self.session.goal == goal:
            return
        if self.session.goal is not None:
            self._clear_merge()
        self.session.goal = goal

    def submit_goal(self, goal: Optional[MergeGoal] = None) -> WorkflowStep:
        """Set (optionally) and validate the goal, then move to document upload."""
        self._ensure_step(WorkflowStep.GOAL_SETTING)
        if goal is not None:
            self.set_goal(goal)
        return self.advance()

    # Documents

    def add_document(self, filename: str, content: bytes) -> DocumentRef:
        """Select a local file for upload."""
        self._ensure_idle()
        self._ensure_step(WorkflowStep.DOCUMENT_UPLOAD, WorkflowStep.DIFF_REVIEW)

        document = DocumentRef(filename=filename, content=content)
        self.session.documents.append(document)
        self._clear_comparison()
        return document

    def add_existing_document(self, document_id: int, filename: str) -> DocumentRef:
        """Select a document the service already stores."""
        self._ensure_idle()
        self._ensure_step(WorkflowStep.DOCUMENT_UPLOAD, WorkflowStep.DIFF_REVIEW)

        if any(doc.id == document_id for doc in self.session.documents):
            raise ValidationError(f"Document {document_id} is already selected")
        document = DocumentRef(id=document_id, filename=filename, uploaded=True)
        self.session.documents.append(document)
        self._clear_comparison()
        return document

    def remove_document(self, index: int) -> DocumentRef:
        self._ensure_idle()
        self._ensure_step(WorkflowStep.DOCUMENT_UPLOAD, WorkflowStep.DIFF_REVIEW)

        if not 0 <= index < len(self.session.documents):
            raise ValidationError(f"No document at position {index}")
        document = self.session.documents.pop(index)
        self._clear_comparison()
        return document

    async def upload_documents(self) -> List[DocumentRef]:
        """
        Upload every selected document that has no id yet.

        Uploads continue past individual failures; successful ones are kept.

        Returns:
            All durable documents of the session

        Raises:
            DocumentUploadError: at least one upload failed
        """
        self._ensure_step(WorkflowStep.DOCUMENT_UPLOAD)

        async with self._pipeline("upload documents") as generation:
            pending = [
                (index, doc) for index, doc in enumerate(self.session.documents)
                if not doc.is_durable
            ]
            failed: List[str] = []
            uploaded = 0

            for index, doc in pending:
                if doc.content is None:
                    failed.append(doc.filename)
                    continue
                try:
                    payload = await self.client.upload_document(doc.filename, doc.content)
                except (NetworkError, ServiceError, ProtocolError) as e:
                    logger.warning("Upload of %s failed: %s", doc.filename, e)
                    failed.append(doc.filename)
                    continue

                self._check_generation(generation)
                self.session.documents[index] = DocumentRef(
                    id=int(payload["id"]),
                    filename=payload.get("filename") or doc.filename,
                    uploaded=True,
                    content=doc.content,
                )
                uploaded += 1

            if uploaded:
                self._clear_comparison()
            logger.info(
                "Uploaded %d of %d documents for session %s",
                uploaded, len(pending), self.session.id,
            )
            if failed:
                raise DocumentUploadError(failed)

        return self.session.durable_documents

    # Diff

    def _select_pair(
        self, doc_a_id: Optional[int], doc_b_id: Optional[int]
    ) -> Tuple[DocumentRef, DocumentRef]:
        durable = self.session.durable_documents
        if len(durable) < 2:
            raise ValidationError("Please upload at least two documents to compare")

        by_id = {doc.id: doc for doc in durable}
        a_id = doc_a_id if doc_a_id is not None else durable[0].id
        b_id = doc_b_id if doc_b_id is not None else durable[1].id
        if a_id == b_id:
            raise ValidationError("Please select two different documents")
        for document_id in (a_id, b_id):
            if document_id not in by_id:
                raise ValidationError(f"Document {document_id} has not been uploaded")
        return by_id[a_id], by_id[b_id]

    async def compare(
        self,
        doc_a_id: Optional[int] = None,
        doc_b_id: Optional[int] = None,
        enhanced: bool = True,
    ):
        """Diff two uploaded documents (the first two by default)."""
        self._ensure_step(WorkflowStep.DIFF_REVIEW)
        doc_a, doc_b = self._select_pair(doc_a_id, doc_b_id)

        async with self._pipeline("compare documents") as generation:
            diff = await self.client.fetch_diff(doc_a.id, doc_b.id, enhanced=enhanced)
            self._check_generation(generation)

            if self.session.compared_documents != (doc_a.id, doc_b.id):
                self._clear_merge()
            self.session.diff_result = diff
            self.session.compared_documents = (doc_a.id, doc_b.id)

        logger.info(
            "Compared documents %s and %s: %d lines",
            doc_a.id, doc_b.id, len(diff.diff_lines),
        )
        return diff

    # Merge

    def _compared_pair(self) -> Tuple[DocumentRef, DocumentRef]:
        if self.session.compared_documents is None:
            raise ValidationError("Please compare two documents before merging")
        a_id, b_id = self.session.compared_documents
        return self._select_pair(a_id, b_id)

    async def run_merge(self, on_progress: Optional[ProgressCallback] = None) -> MergeResult:
        """
        Submit a merge for the compared documents and wait for its result.

        Progress is mirrored onto the session before on_progress is called.
        """
        self._ensure_step(WorkflowStep.FINAL_REVIEW)
        if self.session.goal is None:
            raise ValidationError("Please set a merge goal")
        doc_a, doc_b = self._compared_pair()
        goal = self.session.goal

        async with self._pipeline("run merge") as generation:
            self._clear_merge()
            token = CancellationToken()
            scope = anyio.CancelScope()
            self._cancel_token = token
            self._cancel_scope = scope

            async def progress(value: float, message: str) -> None:
                if generation != self._generation:
                    return
                self.session.progress = value
                self.session.progress_message = message
                if on_progress is not None:
                    outcome = on_progress(value, message)
                    if inspect.isawaitable(outcome):
                        await outcome

            try:
                with scope:
                    task_id = await self.orchestrator.submit(doc_a, doc_b, goal)
                    self._check_generation(generation)
                    self.session.task_id = task_id

                    result = await self.orchestrator.track(
                        task_id, on_progress=progress, cancel_token=token
                    )
                    self._check_generation(generation)
            finally:
                if self._cancel_token is token:
                    self._cancel_token = None
                if self._cancel_scope is scope:
                    self._cancel_scope = None
            if scope.cancel_called:
                raise TaskCancelledError("Session was reset while the merge was running")

            self.session.merged_content = result.merged_content
            self.session.original_content = result.merged_content
            self.session.merge_report = result.report
            self.session.progress = 100.0

        return result

    def edit_merged_content(self, content: str) -> None:
        """Manually override the merged text before finalizing."""
        self._ensure_idle()
        self._ensure_step(WorkflowStep.FINAL_REVIEW)
        if self.session.merged_content is None:
            raise ValidationError("There is no merged content to edit yet")
        self.session.merged_content = content

    async def finalize(self, filename: Optional[str] = None) -> FinalizedMerge:
        """
        Persist the merged content and complete the workflow.

        On failure the session stays in final review so the user can retry
        or save locally with export_merged().
        """
        self._ensure_step(WorkflowStep.FINAL_REVIEW)
        session = self.session
        if session.task_id is None or session.merged_content is None:
            raise ValidationError("Please run the merge before finalizing")

        if filename is None and session.content_edited:
            first = self._compared_pair()[0] if session.compared_documents else None
            filename = default_merged_filename(first)

        async with self._pipeline("finalize merge") as generation:
            finalized = await self.orchestrator.finalize(
                session.task_id,
                session.merged_content,
                original_content=session.original_content,
                filename=filename,
            )
            self._check_generation(generation)
            session.finalized = finalized

        self._forward()
        return finalized

    # Read-only views

    def highlighted_lines(self) -> List[HighlightedLine]:
        return classify(self.session.merged_content or "", self.session.diff_result)

    async def export_merged(self, path: str) -> Path:
        """Save the current merged text to a local file."""
        if self.session.merged_content is None:
            raise ValidationError("There is no merged content to save")

        target = Path(path).expanduser().resolve()
        await anyio.Path(target.parent).mkdir(parents=True, exist_ok=True)
        await anyio.Path(target).write_text(self.session.merged_content, encoding="utf-8")
        logger.info("Saved merged content of session %s to %s", self.session.id, target)
        return target

    async def check_auth(self) -> Optional[dict]:
        """Current user, or None when not logged in (a 401 clears the credential)."""
        if not self.client.credentials.has_token:
            return None
        try:
            return await self.client.get_current_user()
        except AuthError:
            logger.info("Stored credential rejected; logged out")
            return None
