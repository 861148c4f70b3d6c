"""Moderation state machine.

Legal status changes are listed explicitly. The pipeline (``SYSTEM``) may
only move a ``pending`` item to one of the three decided states; a moderator
(``MODERATOR``) may move an item in any state to approved or rejected.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from ..errors import IllegalTransitionError
from ..models import ContentItem, ModerationStatus


class Actor(str, Enum):
    SYSTEM = "system"
    MODERATOR = "moderator"


SYSTEM_TRANSITIONS: dict[ModerationStatus, frozenset[ModerationStatus]] = {
    ModerationStatus.PENDING: frozenset(
        {
            ModerationStatus.AUTO_APPROVED,
            ModerationStatus.REQUIRES_REVIEW,
            ModerationStatus.REJECTED,
        }
    ),
}

MODERATOR_TARGETS: frozenset[ModerationStatus] = frozenset(
    {ModerationStatus.AUTO_APPROVED, ModerationStatus.REJECTED}
)


def can_transition(
    current: ModerationStatus, target: ModerationStatus, actor: Actor
) -> bool:
    if actor == Actor.MODERATOR:
        return target in MODERATOR_TARGETS
    return target in SYSTEM_TRANSITIONS.get(current, frozenset())


def transition(
    item: ContentItem,
    target: ModerationStatus,
    actor: Actor,
    **changes: Any,
) -> ContentItem:
    """
    Return a copy of *item* moved to *target* with *changes* applied.

    Raises:
        IllegalTransitionError: If *actor* may not make this change.
    """
    if not can_transition(item.moderation_status, target, actor):
        raise IllegalTransitionError(
            f"{actor.value} cannot move {item.content_type.value}/{item.id} "
            f"from {item.moderation_status.value} to {target.value}"
        )
    return item.model_copy(update={**changes, "moderation_status": target})
