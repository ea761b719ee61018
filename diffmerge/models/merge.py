# diffmerge/models/merge.py

from typing import List, Optional

from pydantic import BaseModel, Field

from .goal import MergeGoal, MergePriority, MergeStrategy


class AIGuidance(BaseModel):
    """Goal details forwarded to the AI-assisted merge."""
    priorities: List[MergePriority] = Field(default_factory=list)
    preserve_sections: List[str] = Field(default_factory=list)
    custom_rules: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class MergeRequest(BaseModel):
    """Body of ``POST /diffs/async-merge`` and ``POST /diffs/merge``."""
    doc_id_a: int
    doc_id_b: int
    conflict_resolution: MergeStrategy
    ai_guidance: AIGuidance = Field(default_factory=AIGuidance)

    @classmethod
    def from_goal(cls, doc_id_a: int, doc_id_b: int, goal: MergeGoal) -> "MergeRequest":
        return cls(
            doc_id_a=doc_id_a,
            doc_id_b=doc_id_b,
            conflict_resolution=goal.strategy,
            ai_guidance=AIGuidance(
                priorities=list(goal.priorities),
                preserve_sections=list(goal.preserve_sections),
                custom_rules=goal.effective_rules,
                notes=goal.notes,
            ),
        )


class MergeReport(BaseModel):
    conflicts_resolved: int = 0
    summary: str = ""


class MergeResult(BaseModel):
    """Merged text plus the service's report."""
    merged_content: str
    report: MergeReport = Field(default_factory=MergeReport)


class FinalizedMerge(BaseModel):
    """A merged document the service has persisted."""
    document_id: int
    filename: str
    edited: bool = False                   # True when a manual edit was persisted
