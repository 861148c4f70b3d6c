"""Platform facade.

:class:`Platform` wires the store, cache, analysis stages, moderation
pipeline, worker pool and read paths together and exposes the operations
the rest of the application calls.

Example:
    platform = Platform(PlatformConfig())
    async with platform:
        ack = await platform.create_post("user-1", "Morning ocean meditation")
        await ack.wait()
        feed = await platform.get_feed(Category.WATER)
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, PrivateAttr

from .analysis import (
    AnalysisClient,
    ContentClassifier,
    CostMonitor,
    CostStats,
    PositivityScorer,
    SafetyScreener,
)
from .audit import AuditLog
from .cache import TTLCache
from .config import PlatformConfig
from .errors import ElementFeedError
from .feed import DEFAULT_FEED_LIMIT, DEFAULT_TRENDING_LIMIT, FeedService
from .lexicon import load_lexicon
from .metrics import ErrorMetricsHandler
from .models import (
    AnalyticsOverview,
    AuditAction,
    Category,
    ContentItem,
    ContentType,
    Decision,
    FeedItem,
    ModerationQueueEntry,
    ModerationRequest,
    ModerationStatus,
    PublishStatus,
    QueueStatus,
    TrendingItem,
    ViewSession,
    utcnow,
)
from .moderation import ModerationOrchestrator, ModerationQueue
from .recommendations import DEFAULT_RECOMMENDATION_LIMIT, RecommendationEngine
from .store import ContentStore, MemoryStore
from .trending import TrendingCalculator, TrendingRunSummary
from .worker import JobHandle, JobResult, ModerationWorker, PeriodicJob, WorkerManager

logger = logging.getLogger(__name__)


class SubmissionAck(BaseModel):
    """Immediate "accepted, under review" acknowledgment."""

    accepted: bool = True
    content_id: int
    content_type: ContentType
    publish_status: PublishStatus = PublishStatus.UNDER_REVIEW
    job_id: int

    _handle: JobHandle | None = PrivateAttr(default=None)

    async def wait(self, timeout: float | None = None) -> JobResult:
        """Wait for the background moderation job to finish."""
        if self._handle is None:
            raise RuntimeError("Acknowledgment is not bound to a job")
        return await self._handle.wait(timeout)


class Platform:
    def __init__(
        self,
        config: PlatformConfig | None = None,
        *,
        store: ContentStore | None = None,
        client: AnalysisClient | None = None,
        cache: TTLCache | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or PlatformConfig()
        cfg = self.config
        rng = rng or random.Random()
        lexicon = load_lexicon()

        self.store = store or MemoryStore()
        self.cache = cache or TTLCache(default_ttl=cfg.feed_cache_ttl)
        self.metrics = ErrorMetricsHandler()

        self._owns_client = client is None
        self.client = client or AnalysisClient(
            cfg.openai_api_key,
            cfg.openai_base_url,
            cost_monitor=CostMonitor(cfg.budget_limit_usd, cfg.budget_window_hours),
            timeout=cfg.request_timeout,
            max_retries=cfg.request_max_retries,
            retry_base_delay=cfg.request_retry_base_delay,
            retry_max_delay=cfg.request_retry_max_delay,
        )

        self.classifier = ContentClassifier(
            self.client,
            video_model=cfg.video_model,
            text_model=cfg.text_model,
            rng=rng,
            lexicon=lexicon,
            batch_size=cfg.batch_size,
            batch_flush_interval=cfg.batch_flush_interval,
        )
        self.screener = SafetyScreener(
            self.client, set(lexicon.high_risk_safety_categories)
        )
        self.scorer = PositivityScorer(
            self.client, model=cfg.positivity_model, lexicon=lexicon
        )

        self.audit = AuditLog(self.store)
        self.queue = ModerationQueue(self.store, clock)
        self.orchestrator = ModerationOrchestrator(
            self.store,
            self.classifier,
            self.screener,
            self.scorer,
            self.queue,
            self.audit,
            self.cache,
            job_timeout=cfg.job_timeout,
            clock=clock,
        )
        self.trending = TrendingCalculator(self.store, self.cache, clock)
        self.feed = FeedService(
            self.store, self.cache, cache_ttl=cfg.feed_cache_ttl, rng=rng, clock=clock
        )
        self.recommendations = RecommendationEngine(
            self.store, ttl=cfg.recommendation_ttl, rng=rng, clock=clock
        )

        self.worker = ModerationWorker(
            self.orchestrator.process,
            max_concurrent=cfg.max_concurrent_jobs,
            max_retries=cfg.job_max_retries,
            retry_base_delay=cfg.job_retry_base_delay,
            retry_max_delay=cfg.job_retry_max_delay,
            shutdown_grace_period=cfg.shutdown_grace_period,
        )
        self.trending_job = PeriodicJob(
            "trending",
            self.run_trending,
            cfg.trending_interval,
            initial_delay=cfg.trending_initial_delay,
        )
        self.cache_purge_job = PeriodicJob(
            "cache-purge",
            self._purge_cache,
            cfg.cache_purge_interval,
            initial_delay=cfg.cache_purge_interval,
        )
        self.manager = WorkerManager(
            self.worker, [self.trending_job, self.cache_purge_job]
        )

    async def __aenter__(self) -> Platform:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        self.metrics.install()
        self._warn_if_unconfigured()
        await self.manager.start()

    async def stop(self) -> None:
        await self.manager.stop()
        await self.classifier.close()
        if self._owns_client:
            await self.client.close()
        self.metrics.uninstall()

    async def run_until_shutdown(self) -> None:
        self.metrics.install()
        self._warn_if_unconfigured()
        try:
            await self.manager.run_until_shutdown()
        finally:
            await self.classifier.close()
            if self._owns_client:
                await self.client.close()
            self.metrics.uninstall()

    def _warn_if_unconfigured(self) -> None:
        if not self.config.analysis_configured:
            logger.warning(
                "Analysis API key not set: using keyword heuristics, "
                "safety screening trusts all content"
            )

    # -- submission ----------------------------------------------------------

    def submit_for_moderation(
        self,
        content_type: ContentType,
        content_id: int,
        actor_id: str | None,
        *,
        text: str | None = None,
        title: str | None = None,
        description: str | None = None,
        media_url: str | None = None,
    ) -> SubmissionAck:
        """Queue the moderation pipeline for an item and return at once."""
        handle = self.worker.submit(
            ModerationRequest(
                content_type=content_type,
                content_id=content_id,
                actor_id=actor_id,
                text=text,
                title=title,
                description=description,
                media_url=media_url,
            )
        )
        ack = SubmissionAck(
            content_id=content_id, content_type=content_type, job_id=handle.job_id
        )
        ack._handle = handle
        return ack

    async def create_post(self, creator_id: str, body: str) -> SubmissionAck:
        """
        Store a new post and queue it for moderation.

        Raises:
            ElementFeedError: If the platform is shutting down. Nothing is
                stored.
        """
        item = await self._create(
            ContentItem(content_type=ContentType.POST, creator_id=creator_id, body=body)
        )
        return self.submit_for_moderation(
            ContentType.POST, item.id, creator_id, text=body
        )

    async def create_video(
        self,
        creator_id: str,
        title: str,
        description: str | None = None,
        media_url: str | None = None,
    ) -> SubmissionAck:
        item = await self._create(
            ContentItem(
                content_type=ContentType.VIDEO,
                creator_id=creator_id,
                title=title,
                description=description,
                media_url=media_url,
            )
        )
        return self.submit_for_moderation(
            ContentType.VIDEO,
            item.id,
            creator_id,
            title=title,
            description=description,
            media_url=media_url,
        )

    async def _create(self, item: ContentItem) -> ContentItem:
        # An item stored after shutdown would stay pending forever
        if not self.worker.accepting:
            raise ElementFeedError("Moderation worker is shutting down")
        saved = await self.store.save_content(item)
        await self.audit.record(
            AuditAction.UPLOAD,
            saved.creator_id,
            saved.content_type,
            saved.id,
            {"title": saved.title, "mediaUrl": saved.media_url},
        )
        return saved

    # -- moderation ----------------------------------------------------------

    async def resolve(
        self,
        content_type: ContentType,
        content_id: int,
        decision: Decision,
        notes: str | None,
        moderator_id: str,
    ) -> bool:
        return await self.orchestrator.resolve(
            content_type, content_id, decision, notes, moderator_id
        )

    async def get_moderation_queue(
        self, status: QueueStatus | None = QueueStatus.PENDING
    ) -> list[ModerationQueueEntry]:
        return await self.queue.list_entries(status)

    # -- read paths ----------------------------------------------------------

    async def get_feed(
        self,
        category: Category,
        limit: int = DEFAULT_FEED_LIMIT,
        offset: int = 0,
    ) -> list[FeedItem]:
        return await self.feed.get_feed(category, limit, offset)

    async def get_trending(
        self, category: Category, limit: int = DEFAULT_TRENDING_LIMIT
    ) -> list[TrendingItem]:
        return await self.feed.get_trending(category, limit)

    async def get_recommendations(
        self,
        user_id: str,
        category: Category,
        limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    ) -> list[FeedItem]:
        return await self.recommendations.get_recommendations(
            user_id, category, limit
        )

    async def record_view(
        self, user_id: str, content_type: ContentType, content_id: int
    ) -> ViewSession:
        return await self.feed.record_view(user_id, content_type, content_id)

    async def get_random_content(self) -> FeedItem | None:
        return await self.feed.get_random_content()

    async def get_analytics_overview(self) -> AnalyticsOverview:
        videos = await self.store.list_content(content_type=ContentType.VIDEO)
        posts = await self.store.list_content(content_type=ContentType.POST)

        total = len(videos)
        statuses = Counter(v.moderation_status for v in videos)
        approved = statuses[ModerationStatus.AUTO_APPROVED]
        flagged = statuses[ModerationStatus.REQUIRES_REVIEW]

        distribution = Counter(v.category.value for v in videos if v.category)

        topic_scores: Counter[str] = Counter()
        for record in await self.store.list_trending_records():
            topic_scores[record.category.value] += record.trending_score
        trending_topics = [
            topic for topic, score in topic_scores.most_common() if score > 0
        ]

        return AnalyticsOverview(
            total_videos=total,
            total_posts=len(posts),
            approval_rate=_percent(approved, total),
            safety_flag_rate=_percent(flagged, total),
            category_distribution=dict(distribution),
            trending_topics=trending_topics,
        )

    # -- background jobs and observability -----------------------------------

    async def run_trending(self) -> TrendingRunSummary:
        return await self.trending.run()

    async def _purge_cache(self) -> None:
        purged = self.cache.purge_expired()
        if purged:
            logger.debug(f"Purged {purged} expired cache entries")

    def error_metrics(self) -> dict[str, object]:
        return self.metrics.snapshot()

    def cost_stats(self) -> CostStats | None:
        monitor = self.client.cost_monitor
        return monitor.stats() if monitor is not None else None


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0
