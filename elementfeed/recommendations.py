"""Hybrid recommendation engine.

Category-curated candidate pool weighted by the user's viewing history,
positivity, recency and a small random jitter. Results are cached per
(user, category) in the store for four hours; a recompute replaces the whole
list.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta

from .models import (
    Category,
    ContentItem,
    ContentType,
    FeedItem,
    ModerationStatus,
    PublishStatus,
    RecommendationBasis,
    RecommendationCacheEntry,
    utcnow,
)
from .store import ContentStore
from .trending import positivity_multiplier

logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDATION_LIMIT = 10
DEFAULT_RECOMMENDATION_TTL = 4 * 60 * 60

POOL_MULTIPLIER = 3
RECENT_VIEW_LIMIT = 50

VIEW_WEIGHT = 0.3
VIEWED_PENALTY = 0.1
NEW_BOOST = 1.5
RECENT_BOOST = 1.2
JITTER_MIN = 0.8
JITTER_SPAN = 0.4


def recommendation_score(
    item: ContentItem,
    viewed: bool,
    now: datetime,
    jitter: float,
) -> float:
    score = item.view_count * VIEW_WEIGHT
    if item.positivity_score is not None:
        score *= positivity_multiplier(item.positivity_score)
    if viewed:
        score *= VIEWED_PENALTY

    age = now - item.created_at
    if age < timedelta(hours=24):
        score *= NEW_BOOST
    elif age < timedelta(hours=72):
        score *= RECENT_BOOST

    return score * jitter


class RecommendationEngine:
    def __init__(
        self,
        store: ContentStore,
        *,
        ttl: float = DEFAULT_RECOMMENDATION_TTL,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._ttl = ttl
        self._rng = rng or random.Random()
        self._clock = clock

    async def get_recommendations(
        self,
        user_id: str,
        category: Category,
        limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    ) -> list[FeedItem]:
        now = self._clock()
        cached = await self._store.get_recommendation(user_id, category)
        if cached is not None and cached.is_fresh(now) and cached.content_ids:
            logger.debug(
                "Recommendation cache hit",
                extra={"user_id": user_id, "element": category.value},
            )
            return await self._rejoin(cached.content_ids)

        ranked = await self._generate(user_id, category, limit, now)
        await self._store.save_recommendation(
            RecommendationCacheEntry(
                user_id=user_id,
                category=category,
                content_ids=[item.id for item in ranked],
                basis=RecommendationBasis.HYBRID,
                calculated_at=now,
                expires_at=now + timedelta(seconds=self._ttl),
            )
        )
        return [FeedItem.from_content(item) for item in ranked]

    async def _generate(
        self,
        user_id: str,
        category: Category,
        limit: int,
        now: datetime,
    ) -> list[ContentItem]:
        candidates = await self._store.list_content(
            content_type=ContentType.VIDEO,
            category=category,
            publish_status=PublishStatus.PUBLISHED,
            moderation_status=ModerationStatus.AUTO_APPROVED,
        )
        candidates.sort(key=lambda item: item.view_count, reverse=True)
        pool = candidates[: limit * POOL_MULTIPLIER]

        recent = await self._store.recent_views(user_id, RECENT_VIEW_LIMIT)
        viewed = {
            v.content_id for v in recent if v.content_type == ContentType.VIDEO
        }

        scored = [
            (
                recommendation_score(
                    item,
                    item.id in viewed,
                    now,
                    JITTER_MIN + self._rng.random() * JITTER_SPAN,
                ),
                item,
            )
            for item in pool
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in scored[:limit]]

    async def _rejoin(self, content_ids: list[int]) -> list[FeedItem]:
        """Cached ids in cached order, minus anything no longer published."""
        items = []
        for content_id in content_ids:
            item = await self._store.get_content(ContentType.VIDEO, content_id)
            if item is not None and item.publish_status == PublishStatus.PUBLISHED:
                items.append(FeedItem.from_content(item))
        return items
