# diffmerge/models/session.py

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from .diff import DiffResult
from .document import DocumentRef
from .goal import MergeGoal
from .merge import FinalizedMerge, MergeReport


class WorkflowStep(str, Enum):
    GOAL_SETTING = "goal_setting"         # choose strategy, priorities, rules
    DOCUMENT_UPLOAD = "document_upload"   # pick and upload documents
    DIFF_REVIEW = "diff_review"           # compare two uploaded documents
    FINAL_REVIEW = "final_review"         # run, inspect, edit and finalize the merge
    COMPLETE = "complete"                 # merged document persisted

    @property
    def label(self) -> str:
        return STEP_LABELS[self]


STEP_LABELS = {
    WorkflowStep.GOAL_SETTING: "Goal Setting",
    WorkflowStep.DOCUMENT_UPLOAD: "Document Upload",
    WorkflowStep.DIFF_REVIEW: "Diff Viewer",
    WorkflowStep.FINAL_REVIEW: "Review",
    WorkflowStep.COMPLETE: "Complete",
}


def _new_session_id() -> str:
    return str(uuid.uuid4())[:8]


class WorkflowSession(BaseModel):
    """
    Everything accumulated during one pass through the merge workflow.

    Owned by the WorkflowController; other components get the slice they
    need as arguments and hand back new values.
    """

    id: str = Field(default_factory=_new_session_id)
    created_at: datetime = Field(default_factory=datetime.now)
    step: WorkflowStep = WorkflowStep.GOAL_SETTING

    goal: Optional[MergeGoal] = None
    documents: List[DocumentRef] = Field(default_factory=list)

    # Comparison
    diff_result: Optional[DiffResult] = None
    compared_documents: Optional[Tuple[int, int]] = None

    # Merge
    task_id: Optional[str] = None
    merged_content: Optional[str] = None
    original_content: Optional[str] = None   # content as returned by the task
    merge_report: Optional[MergeReport] = None
    finalized: Optional[FinalizedMerge] = None
    complete: bool = False

    # Progress and the last user-visible failure
    progress: Optional[float] = None
    progress_message: str = ""
    last_error: Optional[str] = None

    @property
    def durable_documents(self) -> List[DocumentRef]:
        return [doc for doc in self.documents if doc.is_durable]

    @property
    def content_edited(self) -> bool:
        return (
            self.merged_content is not None
            and self.original_content is not None
            and self.merged_content != self.original_content
        )
