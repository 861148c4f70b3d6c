"""Visibility tiers derived from positivity score."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from .models import FeedItem, VisibilityTier

T = TypeVar("T", bound=FeedItem)

_TIER_ORDER = {tier: index for index, tier in enumerate(VisibilityTier)}


def visibility_tier(positivity_score: int | None) -> VisibilityTier:
    if positivity_score is None:
        return VisibilityTier.STANDARD
    if positivity_score >= 90:
        return VisibilityTier.FEATURED
    if positivity_score >= 50:
        return VisibilityTier.STANDARD
    if positivity_score >= 30:
        return VisibilityTier.REDUCED
    return VisibilityTier.SUPPRESSED


def rank_items(items: Sequence[T]) -> list[T]:
    """Drop suppressed items; order by tier, then newest first."""
    visible = [
        item
        for item in items
        if visibility_tier(item.positivity_score) != VisibilityTier.SUPPRESSED
    ]
    # Two stable sorts: recency within tier, then tier
    visible.sort(key=lambda item: item.created_at, reverse=True)
    visible.sort(key=lambda item: _TIER_ORDER[visibility_tier(item.positivity_score)])
    return visible
