"""Trending score calculator.

``score = views_24h * 0.6 + engagement_24h * 0.4``, weighted by the
positivity multiplier and rounded to two decimals. Total counters stand in
for the 24h counters. One record is kept per (content_id, content_type).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel

from .cache import TTLCache
from .models import (
    CATEGORIES,
    Category,
    ContentItem,
    PublishStatus,
    TrendingRecord,
    utcnow,
)
from .store import ContentStore

logger = logging.getLogger(__name__)

VIEW_WEIGHT = 0.6
ENGAGEMENT_WEIGHT = 0.4

TRENDING_CACHE_PREFIX = "trending:"


def positivity_multiplier(score: int) -> float:
    """90+ = 3x, 70-89 = 1.5x, 50-69 = 1x, below 50 = 0.5x."""
    if score >= 90:
        return 3.0
    if score >= 70:
        return 1.5
    if score >= 50:
        return 1.0
    return 0.5


def trending_score(
    views: int, engagement: int, positivity_score: int | None
) -> float:
    score = views * VIEW_WEIGHT + engagement * ENGAGEMENT_WEIGHT
    if positivity_score is not None:
        score *= positivity_multiplier(positivity_score)
    return round(score, 2)


class TrendingRunSummary(BaseModel):
    records_written: int
    records_pruned: int
    duration_seconds: float


class TrendingCalculator:
    def __init__(
        self,
        store: ContentStore,
        cache: TTLCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._cache = cache
        self._clock = clock

    async def run(self) -> TrendingRunSummary:
        """Recompute every published item's record. Idempotent."""
        started = time.monotonic()
        logger.info("Recalculating trending scores")

        written = 0
        published_keys = set()
        for category in CATEGORIES:
            items = await self._store.list_content(
                category=category, publish_status=PublishStatus.PUBLISHED
            )
            for item in items:
                await self._upsert(item, category)
                published_keys.add((item.content_type, item.id))
                written += 1

        pruned = 0
        for record in await self._store.list_trending_records():
            key = (record.content_type, record.content_id)
            if key not in published_keys:
                await self._store.delete_trending_record(*key)
                pruned += 1

        if self._cache is not None:
            self._cache.invalidate_prefix(TRENDING_CACHE_PREFIX)

        summary = TrendingRunSummary(
            records_written=written,
            records_pruned=pruned,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        logger.info(
            f"Trending scores recalculated: {written} written, {pruned} pruned",
            extra={"duration_seconds": summary.duration_seconds},
        )
        return summary

    async def _upsert(self, item: ContentItem, category: Category) -> TrendingRecord:
        views = item.view_count
        engagement = item.engagement_count
        score = trending_score(views, engagement, item.positivity_score)

        existing = await self._store.get_trending_record(item.content_type, item.id)
        if existing is not None:
            record = existing.model_copy(
                update={
                    "category": category,
                    "trending_score": score,
                    "view_count_24h": views,
                    "engagement_count_24h": engagement,
                    "updated_at": self._clock(),
                }
            )
        else:
            record = TrendingRecord(
                content_id=item.id,
                content_type=item.content_type,
                category=category,
                trending_score=score,
                view_count_24h=views,
                engagement_count_24h=engagement,
                updated_at=self._clock(),
            )
        return await self._store.save_trending_record(record)
