"""elementfeed - content moderation, trending and recommendations.

User-submitted videos and posts are classified into five element categories
(Water, Fire, Earth, Air, Spiritual), screened for safety, scored for
positivity and then published, queued for human review or rejected.
Published content is re-ranked periodically and served through ranked feeds
and per-user recommendations.

Example:
    import asyncio

    from elementfeed import Category, Decision, Platform, PlatformConfig

    async def main():
        async with Platform(PlatformConfig()) as platform:
            ack = await platform.create_video(
                "creator-1", "Ocean breath meditation", "Calm flowing water"
            )
            result = await ack.wait()
            print(result.outcome.status)

            for entry in await platform.get_moderation_queue():
                await platform.resolve(
                    entry.content_type,
                    entry.content_id,
                    Decision.APPROVED,
                    "Looks fine",
                    "moderator-1",
                )

            await platform.run_trending()
            print(await platform.get_trending(Category.WATER))

    asyncio.run(main())
"""

from .cache import TTLCache
from .config import PlatformConfig
from .errors import (
    AnalysisServiceError,
    BudgetExceededError,
    ConfigError,
    ContentNotFoundError,
    ElementFeedError,
    IllegalTransitionError,
    JobFailedError,
    StaleContentError,
    StoreError,
)
from .models import (
    AnalyticsOverview,
    AuditAction,
    AuditLogEntry,
    Category,
    ContentItem,
    ContentType,
    Decision,
    FeedItem,
    ModerationQueueEntry,
    ModerationStatus,
    PublishStatus,
    QueuePriority,
    QueueStatus,
    RiskLevel,
    SafetyAssessment,
    TrendingItem,
    TrendingRecord,
    VisibilityTier,
)
from .ranking import rank_items, visibility_tier
from .service import Platform, SubmissionAck
from .store import ContentStore, MemoryStore

__version__ = "0.1.0"

__all__ = [
    # Service
    "Platform",
    "PlatformConfig",
    "SubmissionAck",
    # Store and cache
    "ContentStore",
    "MemoryStore",
    "TTLCache",
    # Models
    "AnalyticsOverview",
    "AuditAction",
    "AuditLogEntry",
    "Category",
    "ContentItem",
    "ContentType",
    "Decision",
    "FeedItem",
    "ModerationQueueEntry",
    "ModerationStatus",
    "PublishStatus",
    "QueuePriority",
    "QueueStatus",
    "RiskLevel",
    "SafetyAssessment",
    "TrendingItem",
    "TrendingRecord",
    "VisibilityTier",
    # Ranking
    "rank_items",
    "visibility_tier",
    # Errors
    "AnalysisServiceError",
    "BudgetExceededError",
    "ConfigError",
    "ContentNotFoundError",
    "ElementFeedError",
    "IllegalTransitionError",
    "JobFailedError",
    "StaleContentError",
    "StoreError",
]
