"""Tests for visibility tiers and ranking."""

from datetime import datetime, timedelta, timezone

import pytest

from elementfeed.models import Category, ContentType, FeedItem, VisibilityTier
from elementfeed.ranking import rank_items, visibility_tier

BASE_TIME = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_feed_item(item_id: int, score: int | None, age_hours: int = 0) -> FeedItem:
    return FeedItem(
        id=item_id,
        content_type=ContentType.POST,
        creator_id="u1",
        category=Category.WATER,
        positivity_score=score,
        created_at=BASE_TIME - timedelta(hours=age_hours),
    )


class TestVisibilityTier:
    @pytest.mark.parametrize(
        ("score", "tier"),
        [
            (None, VisibilityTier.STANDARD),
            (100, VisibilityTier.FEATURED),
            (90, VisibilityTier.FEATURED),
            (89, VisibilityTier.STANDARD),
            (50, VisibilityTier.STANDARD),
            (49, VisibilityTier.REDUCED),
            (30, VisibilityTier.REDUCED),
            (29, VisibilityTier.SUPPRESSED),
            (0, VisibilityTier.SUPPRESSED),
        ],
    )
    def test_thresholds(self, score, tier):
        assert visibility_tier(score) == tier

    def test_every_score_has_exactly_one_tier(self):
        for score in range(101):
            assert visibility_tier(score) in set(VisibilityTier)


class TestRankItems:
    def test_suppressed_items_dropped(self):
        ranked = rank_items([make_feed_item(1, 10), make_feed_item(2, 60)])
        assert [item.id for item in ranked] == [2]

    def test_orders_by_tier_then_recency(self):
        items = [
            make_feed_item(1, 40, age_hours=0),  # reduced, newest
            make_feed_item(2, 60, age_hours=5),  # standard, old
            make_feed_item(3, 95, age_hours=10),  # featured, oldest
            make_feed_item(4, None, age_hours=1),  # standard, newer
        ]

        ranked = rank_items(items)

        assert [item.id for item in ranked] == [3, 4, 2, 1]

    def test_deterministic(self):
        items = [make_feed_item(i, (i * 17) % 100, age_hours=i) for i in range(1, 30)]
        assert rank_items(items) == rank_items(list(reversed(items)))

    def test_empty(self):
        assert rank_items([]) == []
