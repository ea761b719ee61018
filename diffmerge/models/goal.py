# diffmerge/models/goal.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import ValidationError


class MergeStrategy(str, Enum):
    """How conflicting content is resolved by the merge service."""
    LATEST = "latest"         # prefer the newer document
    ORIGINAL = "original"     # preserve the original document
    BOTH = "both"             # keep both versions where they conflict
    CUSTOM = "custom"         # follow user-supplied rules


class MergePriority(str, Enum):
    ACCURACY = "accuracy"
    COMPLETENESS = "completeness"
    CONCISENESS = "conciseness"


STRATEGY_DESCRIPTIONS = {
    MergeStrategy.LATEST: "Using latest version for all conflicts",
    MergeStrategy.ORIGINAL: "Preserving original content for all conflicts",
    MergeStrategy.BOTH: "Keeping both versions where conflicts exist",
    MergeStrategy.CUSTOM: "Using custom rules to resolve conflicts",
}


class MergeGoal(BaseModel):
    """
    What the user wants out of a merge.

    Edits are never validated; validate_for_submission() is called once,
    when the goal is submitted.
    """

    strategy: MergeStrategy = MergeStrategy.LATEST
    priorities: List[MergePriority] = Field(default_factory=list)
    preserve_sections: List[str] = Field(default_factory=list)
    custom_rules: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("priorities")
    @classmethod
    def dedupe_priorities(cls, value: List[MergePriority]) -> List[MergePriority]:
        seen: List[MergePriority] = []
        for priority in value:
            if priority not in seen:
                seen.append(priority)
        return seen

    @property
    def effective_rules(self) -> List[str]:
        """Custom rules with blank entries dropped."""
        return [rule.strip() for rule in self.custom_rules if rule.strip()]

    def validate_for_submission(self) -> None:
        """
        Check the goal can be sent to the service.

        Raises:
            ValidationError: custom strategy without rules, or no priorities
        """
        if self.strategy == MergeStrategy.CUSTOM and not self.effective_rules:
            raise ValidationError(
                "Please add at least one custom rule when using the custom strategy"
            )
        if not self.priorities:
            raise ValidationError("Please select at least one priority")

    def describe(self) -> str:
        return STRATEGY_DESCRIPTIONS[self.strategy]
