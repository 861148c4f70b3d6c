"""Automatic moderation decision policy."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from ..models import (
    ContentType,
    ModerationStatus,
    QueuePriority,
    RiskLevel,
    SafetyAssessment,
)

# Videos classified below this confidence go to a human
LOW_CONFIDENCE_THRESHOLD = 0.5


class ModerationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ModerationStatus
    priority: QueuePriority | None = None
    reason: str | None = None

    @property
    def needs_queue_entry(self) -> bool:
        return self.priority is not None


def decide(
    safety: SafetyAssessment,
    confidence: float,
    content_type: ContentType,
) -> ModerationDecision:
    """
    Map analysis results to a status and optional review-queue priority.

    Rules, first match wins:
        1. unsafe and high risk -> rejected, urgent
        2. unsafe -> requires_review, high
        3. video with confidence below 0.5 -> requires_review, normal
        4. otherwise -> auto_approved
    """
    if not safety.is_safe:
        reason = ", ".join(safety.flags)
        if safety.risk_level == RiskLevel.HIGH:
            return ModerationDecision(
                status=ModerationStatus.REJECTED,
                priority=QueuePriority.URGENT,
                reason=reason,
            )
        return ModerationDecision(
            status=ModerationStatus.REQUIRES_REVIEW,
            priority=QueuePriority.HIGH,
            reason=reason,
        )

    if content_type == ContentType.VIDEO and confidence < LOW_CONFIDENCE_THRESHOLD:
        return ModerationDecision(
            status=ModerationStatus.REQUIRES_REVIEW,
            priority=QueuePriority.NORMAL,
            reason=f"Low categorization confidence: {confidence}",
        )

    return ModerationDecision(status=ModerationStatus.AUTO_APPROVED)
