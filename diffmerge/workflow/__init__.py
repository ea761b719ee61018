"""Step machine for one merge session."""

from .controller import PREVIOUS_STEPS, TRANSITIONS, WorkflowController

__all__ = [
    "PREVIOUS_STEPS",
    "TRANSITIONS",
    "WorkflowController",
]
