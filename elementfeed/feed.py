"""Feed read paths: category feed, trending, views, random pick."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime

from .cache import TTLCache
from .models import (
    Category,
    ContentType,
    FeedItem,
    PublishStatus,
    TrendingItem,
    ViewSession,
    utcnow,
)
from .ranking import rank_items
from .store import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 20
DEFAULT_TRENDING_LIMIT = 10


def feed_cache_key(category: Category, limit: int, offset: int) -> str:
    return f"feed:{category.value}:{limit}:{offset}"


def trending_cache_key(category: Category, limit: int) -> str:
    return f"trending:{category.value}:{limit}"


class FeedService:
    def __init__(
        self,
        store: ContentStore,
        cache: TTLCache,
        *,
        cache_ttl: float = 300.0,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._rng = rng or random.Random()
        self._clock = clock

    async def get_feed(
        self,
        category: Category,
        limit: int = DEFAULT_FEED_LIMIT,
        offset: int = 0,
    ) -> list[FeedItem]:
        """Published videos and posts in *category*, ranked, one page."""

        async def load() -> list[FeedItem]:
            items = await self._store.list_content(
                category=category, publish_status=PublishStatus.PUBLISHED
            )
            items.sort(key=lambda item: item.created_at, reverse=True)
            ranked = rank_items([FeedItem.from_content(item) for item in items])
            return ranked[offset : offset + limit]

        return await self._cache.get_or_load(
            feed_cache_key(category, limit, offset), load, self._cache_ttl
        )

    async def get_trending(
        self, category: Category, limit: int = DEFAULT_TRENDING_LIMIT
    ) -> list[TrendingItem]:
        """Highest trending scores in *category* that are still published."""

        async def load() -> list[TrendingItem]:
            records = await self._store.list_trending_records(category)
            records.sort(key=lambda r: r.trending_score, reverse=True)

            items: list[TrendingItem] = []
            for record in records:
                if len(items) >= limit:
                    break
                content = await self._store.get_content(
                    record.content_type, record.content_id
                )
                if content is None or content.publish_status != PublishStatus.PUBLISHED:
                    continue
                items.append(
                    TrendingItem(
                        **FeedItem.from_content(content).model_dump(),
                        trending_score=record.trending_score,
                        view_count_24h=record.view_count_24h,
                        engagement_count_24h=record.engagement_count_24h,
                    )
                )
            return items

        return await self._cache.get_or_load(
            trending_cache_key(category, limit), load, self._cache_ttl
        )

    async def record_view(
        self, user_id: str, content_type: ContentType, content_id: int
    ) -> ViewSession:
        await self._store.increment_view_count(content_type, content_id)
        return await self._store.add_view_session(
            ViewSession(
                user_id=user_id,
                content_id=content_id,
                content_type=content_type,
                started_at=self._clock(),
            )
        )

    async def get_random_content(self) -> FeedItem | None:
        """One published item chosen uniformly at random."""
        items = await self._store.list_content(publish_status=PublishStatus.PUBLISHED)
        if not items:
            return None
        return FeedItem.from_content(self._rng.choice(items))
