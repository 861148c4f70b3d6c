"""Tests for the recommendation engine."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from elementfeed.models import (
    Category,
    ContentItem,
    ContentType,
    ModerationStatus,
    RecommendationBasis,
    ViewSession,
)
from elementfeed.recommendations import RecommendationEngine, recommendation_score
from elementfeed.store import MemoryStore

NOW = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_video(**kwargs) -> ContentItem:
    """Create a published Earth video with defaults."""
    defaults = {
        "content_type": ContentType.VIDEO,
        "creator_id": "creator-1",
        "title": "Forest walk",
        "category": Category.EARTH,
        "moderation_status": ModerationStatus.AUTO_APPROVED,
        "positivity_score": 60,
        "view_count": 100,
        "created_at": NOW - timedelta(days=10),
    }
    defaults.update(kwargs)
    return ContentItem(**defaults)


class TestRecommendationScore:
    def test_base(self):
        assert recommendation_score(make_video(), False, NOW, 1.0) == pytest.approx(30.0)

    def test_positivity_multiplier(self):
        item = make_video(positivity_score=95)
        assert recommendation_score(item, False, NOW, 1.0) == pytest.approx(90.0)

    def test_viewed_penalty(self):
        assert recommendation_score(make_video(), True, NOW, 1.0) == pytest.approx(3.0)

    def test_recency_boosts(self):
        new = make_video(created_at=NOW - timedelta(hours=2))
        recent = make_video(created_at=NOW - timedelta(hours=48))
        assert recommendation_score(new, False, NOW, 1.0) == pytest.approx(45.0)
        assert recommendation_score(recent, False, NOW, 1.0) == pytest.approx(36.0)

    def test_jitter_applied(self):
        assert recommendation_score(make_video(), False, NOW, 0.8) == pytest.approx(24.0)


class TestRecommendationEngine:
    @pytest.mark.asyncio
    async def test_only_published_videos_in_category(self):
        store = MemoryStore()
        video = await store.save_content(make_video())
        await store.save_content(make_video(category=Category.AIR))
        await store.save_content(
            make_video(moderation_status=ModerationStatus.REQUIRES_REVIEW)
        )
        await store.save_content(
            ContentItem(
                content_type=ContentType.POST,
                creator_id="creator-1",
                body="earth post",
                category=Category.EARTH,
                moderation_status=ModerationStatus.AUTO_APPROVED,
            )
        )
        engine = RecommendationEngine(store, rng=random.Random(1), clock=FakeClock())

        items = await engine.get_recommendations("viewer", Category.EARTH)

        assert [(i.content_type, i.id) for i in items] == [
            (ContentType.VIDEO, video.id)
        ]

    @pytest.mark.asyncio
    async def test_viewed_items_sink(self):
        store = MemoryStore()
        watched = await store.save_content(make_video(view_count=100))
        fresh = await store.save_content(make_video(view_count=60))
        await store.add_view_session(
            ViewSession(
                user_id="viewer", content_id=watched.id, content_type=ContentType.VIDEO
            )
        )
        engine = RecommendationEngine(store, rng=random.Random(3), clock=FakeClock())

        items = await engine.get_recommendations("viewer", Category.EARTH)

        # 60 * 0.3 * jitter beats 100 * 0.3 * 0.1 * jitter for any jitter
        assert [i.id for i in items] == [fresh.id, watched.id]

    @pytest.mark.asyncio
    async def test_limit_and_cache_entry(self):
        store = MemoryStore()
        for views in range(10):
            await store.save_content(make_video(view_count=views * 10))
        engine = RecommendationEngine(store, rng=random.Random(5), clock=FakeClock())

        items = await engine.get_recommendations("viewer", Category.EARTH, limit=3)

        assert len(items) == 3
        cached = await store.get_recommendation("viewer", Category.EARTH)
        assert cached.content_ids == [i.id for i in items]
        assert cached.basis == RecommendationBasis.HYBRID
        assert cached.expires_at == NOW + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_second_call_within_window_returns_same_ids(self):
        store = MemoryStore()
        for views in range(8):
            await store.save_content(make_video(view_count=100 + views))
        clock = FakeClock()
        engine = RecommendationEngine(store, rng=random.Random(), clock=clock)

        first = await engine.get_recommendations("viewer", Category.EARTH, limit=5)
        clock.now = NOW + timedelta(hours=3, minutes=59)
        second = await engine.get_recommendations("viewer", Category.EARTH, limit=5)

        assert [i.id for i in first] == [i.id for i in second]

    @pytest.mark.asyncio
    async def test_recomputes_after_expiry(self):
        store = MemoryStore()
        await store.save_content(make_video())
        clock = FakeClock()
        engine = RecommendationEngine(store, rng=random.Random(1), clock=clock)
        await engine.get_recommendations("viewer", Category.EARTH)

        new = await store.save_content(make_video(view_count=10_000))
        clock.now = NOW + timedelta(hours=4, seconds=1)
        items = await engine.get_recommendations("viewer", Category.EARTH)

        assert items[0].id == new.id
        cached = await store.get_recommendation("viewer", Category.EARTH)
        assert cached.calculated_at == clock.now

    @pytest.mark.asyncio
    async def test_cache_hit_excludes_unpublished(self):
        store = MemoryStore()
        keep = await store.save_content(make_video(view_count=200))
        drop = await store.save_content(make_video(view_count=100))
        engine = RecommendationEngine(store, rng=random.Random(1), clock=FakeClock())
        await engine.get_recommendations("viewer", Category.EARTH)

        await store.save_content(
            drop.model_copy(update={"moderation_status": ModerationStatus.REJECTED})
        )
        items = await engine.get_recommendations("viewer", Category.EARTH)

        assert [i.id for i in items] == [keep.id]
