"""Human review queue."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..errors import ElementFeedError
from ..models import (
    ContentType,
    ModerationQueueEntry,
    QueuePriority,
    QueueStatus,
    utcnow,
)
from ..store import ContentStore

logger = logging.getLogger(__name__)


def queue_sort_key(entry: ModerationQueueEntry) -> tuple[int, float]:
    """Priority rank first, then newest first."""
    return (entry.priority.rank, -entry.created_at.timestamp())


class ModerationQueue:
    def __init__(
        self,
        store: ContentStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._clock = clock

    async def enqueue(
        self,
        content_type: ContentType,
        content_id: int,
        priority: QueuePriority,
        reason: str | None,
    ) -> ModerationQueueEntry:
        entry = await self._store.save_queue_entry(
            ModerationQueueEntry(
                content_id=content_id,
                content_type=content_type,
                priority=priority,
                flagged_reason=reason,
                created_at=self._clock(),
            )
        )
        logger.info(
            f"Queued for review ({priority.value}): {reason}",
            extra={
                "content_id": content_id,
                "content_type": content_type.value,
                "queue_entry_id": entry.id,
            },
        )
        return entry

    async def list_entries(
        self, status: QueueStatus | None = QueueStatus.PENDING
    ) -> list[ModerationQueueEntry]:
        """Entries ordered urgent, high, normal, low, then newest first."""
        entries = await self._store.list_queue_entries(status=status)
        return sorted(entries, key=queue_sort_key)

    async def unresolved_for(
        self, content_type: ContentType, content_id: int
    ) -> list[ModerationQueueEntry]:
        entries = await self._store.list_queue_entries(
            content_type=content_type, content_id=content_id
        )
        return [e for e in entries if e.status != QueueStatus.RESOLVED]

    async def claim(self, entry_id: int, moderator_id: str) -> ModerationQueueEntry:
        """
        Assign a pending entry to a moderator and mark it in review.

        Raises:
            ElementFeedError: If the entry does not exist or is not pending.
        """
        entry = await self._store.get_queue_entry(entry_id)
        if entry is None:
            raise ElementFeedError(f"Queue entry not found: {entry_id}")
        if entry.status != QueueStatus.PENDING:
            raise ElementFeedError(
                f"Queue entry {entry_id} is {entry.status.value}, not pending"
            )
        return await self._store.save_queue_entry(
            entry.model_copy(
                update={"status": QueueStatus.IN_REVIEW, "assigned_to": moderator_id}
            )
        )

    async def resolve_for(self, content_type: ContentType, content_id: int) -> int:
        """Resolve every unresolved entry for one item. Returns the count."""
        now = self._clock()
        entries = await self.unresolved_for(content_type, content_id)
        for entry in entries:
            await self._store.save_queue_entry(
                entry.model_copy(
                    update={"status": QueueStatus.RESOLVED, "resolved_at": now}
                )
            )
        return len(entries)
