"""Tests for the human review queue."""

from datetime import datetime, timedelta, timezone

import pytest

from elementfeed.errors import ElementFeedError
from elementfeed.models import ContentType, QueuePriority, QueueStatus
from elementfeed.moderation.queue import ModerationQueue
from elementfeed.store import MemoryStore

BASE_TIME = datetime(2024, 6, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class TestModerationQueue:
    @pytest.mark.asyncio
    async def test_ordered_by_priority_then_newest(self):
        clock = FakeClock()
        queue = ModerationQueue(MemoryStore(), clock=clock)

        low = await queue.enqueue(ContentType.POST, 1, QueuePriority.LOW, "a")
        clock.advance(1)
        old_high = await queue.enqueue(ContentType.POST, 2, QueuePriority.HIGH, "b")
        clock.advance(1)
        urgent = await queue.enqueue(ContentType.VIDEO, 3, QueuePriority.URGENT, "c")
        clock.advance(1)
        new_high = await queue.enqueue(ContentType.POST, 4, QueuePriority.HIGH, "d")
        clock.advance(1)
        normal = await queue.enqueue(ContentType.VIDEO, 5, QueuePriority.NORMAL, "e")

        entries = await queue.list_entries()

        assert [e.id for e in entries] == [
            urgent.id,
            new_high.id,
            old_high.id,
            normal.id,
            low.id,
        ]

    @pytest.mark.asyncio
    async def test_enqueue_fields(self):
        queue = ModerationQueue(MemoryStore(), clock=FakeClock())

        entry = await queue.enqueue(
            ContentType.VIDEO, 9, QueuePriority.URGENT, "violence/graphic"
        )

        assert entry.id is not None
        assert entry.status == QueueStatus.PENDING
        assert entry.flagged_reason == "violence/graphic"
        assert entry.created_at == BASE_TIME

    @pytest.mark.asyncio
    async def test_claim(self):
        queue = ModerationQueue(MemoryStore(), clock=FakeClock())
        entry = await queue.enqueue(ContentType.POST, 1, QueuePriority.HIGH, "x")

        claimed = await queue.claim(entry.id, "mod-1")

        assert claimed.status == QueueStatus.IN_REVIEW
        assert claimed.assigned_to == "mod-1"
        assert await queue.list_entries() == []
        assert [e.id for e in await queue.list_entries(QueueStatus.IN_REVIEW)] == [
            entry.id
        ]

    @pytest.mark.asyncio
    async def test_claim_twice_fails(self):
        queue = ModerationQueue(MemoryStore(), clock=FakeClock())
        entry = await queue.enqueue(ContentType.POST, 1, QueuePriority.HIGH, "x")
        await queue.claim(entry.id, "mod-1")

        with pytest.raises(ElementFeedError, match="not pending"):
            await queue.claim(entry.id, "mod-2")

    @pytest.mark.asyncio
    async def test_claim_missing(self):
        queue = ModerationQueue(MemoryStore())

        with pytest.raises(ElementFeedError, match="not found"):
            await queue.claim(404, "mod-1")

    @pytest.mark.asyncio
    async def test_resolve_for_item(self):
        clock = FakeClock()
        queue = ModerationQueue(MemoryStore(), clock=clock)
        first = await queue.enqueue(ContentType.POST, 1, QueuePriority.HIGH, "x")
        await queue.claim(first.id, "mod-1")
        await queue.enqueue(ContentType.POST, 1, QueuePriority.NORMAL, "y")
        other = await queue.enqueue(ContentType.VIDEO, 1, QueuePriority.LOW, "z")
        clock.advance(60)

        resolved = await queue.resolve_for(ContentType.POST, 1)

        assert resolved == 2
        assert await queue.unresolved_for(ContentType.POST, 1) == []
        done = await queue.list_entries(QueueStatus.RESOLVED)
        assert {e.resolved_at for e in done} == {clock.now}
        assert [e.id for e in await queue.list_entries()] == [other.id]

    @pytest.mark.asyncio
    async def test_resolve_for_nothing(self):
        queue = ModerationQueue(MemoryStore())
        assert await queue.resolve_for(ContentType.POST, 1) == 0
