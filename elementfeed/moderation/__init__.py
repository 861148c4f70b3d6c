"""Moderation pipeline: decision policy, state machine, review queue."""

from .orchestrator import ModerationOrchestrator, ModerationOutcome
from .policy import LOW_CONFIDENCE_THRESHOLD, ModerationDecision, decide
from .queue import ModerationQueue
from .states import Actor, can_transition, transition

__all__ = [
    "LOW_CONFIDENCE_THRESHOLD",
    "Actor",
    "ModerationDecision",
    "ModerationOrchestrator",
    "ModerationOutcome",
    "ModerationQueue",
    "can_transition",
    "decide",
    "transition",
]
