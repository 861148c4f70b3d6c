"""Moderation orchestrator.

Runs classify, screen and score for one content item, applies the decision
policy and persists the outcome. Also applies human moderator decisions.

Write order for an automatic decision:

1. review-queue entry (if the decision needs one)
2. content record (category, analysis blobs, positivity, status) in one write
3. audit entry
4. feed and trending cache namespaces cleared

Any exception or timeout while analysing or persisting moves the item to
``requires_review`` with a high-priority queue entry naming the failure.

If the item left ``pending`` while the pipeline ran (a moderator resolved
it), the result is discarded and nothing is written.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel

from ..analysis import ContentClassifier, PositivityScorer, SafetyScreener
from ..audit import AuditLog
from ..cache import TTLCache
from ..errors import ContentNotFoundError, StaleContentError
from ..models import (
    AuditAction,
    Category,
    ClassificationResult,
    ContentItem,
    ContentType,
    Decision,
    ModerationRequest,
    ModerationStatus,
    QueuePriority,
    SafetyAssessment,
    utcnow,
)
from ..store import ContentStore
from .policy import ModerationDecision, decide
from .queue import ModerationQueue
from .states import Actor, transition

logger = logging.getLogger(__name__)

FEED_CACHE_PREFIX = "feed:"
TRENDING_CACHE_PREFIX = "trending:"

DEFAULT_JOB_TIMEOUT = 120.0


class ModerationOutcome(BaseModel):
    """Result of one pipeline run."""

    content_id: int
    content_type: ContentType
    status: ModerationStatus
    priority: QueuePriority | None = None
    reason: str | None = None
    category: Category | None = None
    positivity_score: int | None = None
    skipped: bool = False
    error: str | None = None


class ModerationOrchestrator:
    def __init__(
        self,
        store: ContentStore,
        classifier: ContentClassifier,
        screener: SafetyScreener,
        scorer: PositivityScorer,
        queue: ModerationQueue,
        audit: AuditLog,
        cache: TTLCache,
        *,
        job_timeout: float = DEFAULT_JOB_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._classifier = classifier
        self._screener = screener
        self._scorer = scorer
        self._queue = queue
        self._audit = audit
        self._cache = cache
        self._job_timeout = job_timeout
        self._clock = clock

    async def process(self, request: ModerationRequest) -> ModerationOutcome:
        """
        Run the pipeline for one item and persist the decision.

        Raises:
            ContentNotFoundError: If the item does not exist.
        """
        item = await self._store.get_content(request.content_type, request.content_id)
        if item is None:
            raise ContentNotFoundError(request.content_type.value, request.content_id)

        if item.moderation_status != ModerationStatus.PENDING:
            logger.info(
                f"Skipping moderation, item already {item.moderation_status.value}",
                extra=_item_extra(item),
            )
            return ModerationOutcome(
                content_id=request.content_id,
                content_type=request.content_type,
                status=item.moderation_status,
                skipped=True,
            )

        try:
            return await asyncio.wait_for(
                self._run(request, item), timeout=self._job_timeout
            )
        except asyncio.TimeoutError:
            return await self._fail(
                item, request, f"Pipeline timed out after {self._job_timeout}s"
            )
        except Exception as e:
            return await self._fail(item, request, str(e) or type(e).__name__)

    async def _run(
        self, request: ModerationRequest, item: ContentItem
    ) -> ModerationOutcome:
        analysis, safety, positivity = await self._analyze(request, item)
        decision = decide(safety, analysis.confidence, item.content_type)

        # Analysis can take minutes; moderators and viewers may have touched
        # the item since it was read.
        current = await self._store.get_content(item.content_type, item.id)
        if current is None or current.moderation_status != ModerationStatus.PENDING:
            return await self._superseded(item)

        if decision.priority is not None:
            await self._queue.enqueue(
                item.content_type, item.id, decision.priority, decision.reason
            )

        analysis_blob = analysis.model_dump(mode="json")
        safety_blob = safety.model_dump(mode="json")
        updated = transition(
            current,
            decision.status,
            Actor.SYSTEM,
            category=analysis.category,
            analysis_result=analysis_blob,
            safety_assessment=safety_blob,
            positivity_score=positivity,
        )
        try:
            await self._store.save_content(
                updated, expected_status=ModerationStatus.PENDING
            )
        except StaleContentError:
            return await self._superseded(item)

        action = (
            AuditAction.PUBLISH
            if decision.status == ModerationStatus.AUTO_APPROVED
            else AuditAction.MODERATE
        )
        await self._audit.record(
            action,
            request.actor_id,
            item.content_type,
            item.id,
            {
                "analysis": analysis_blob,
                "safety": safety_blob,
                "moderationStatus": decision.status.value,
                "positivityScore": positivity,
            },
        )
        self._invalidate_caches()

        logger.info(
            f"Moderation decided: {decision.status.value}",
            extra={
                **_item_extra(item),
                "element": analysis.category.value,
                "positivity_score": positivity,
            },
        )
        return _outcome(item, decision, analysis.category, positivity)

    async def _analyze(
        self, request: ModerationRequest, item: ContentItem
    ) -> tuple[ClassificationResult, SafetyAssessment, int]:
        # Stages run one after another for a single item
        if item.content_type == ContentType.VIDEO:
            title = request.title if request.title is not None else item.title or ""
            description = (
                request.description
                if request.description is not None
                else item.description
            )
            media_url = request.media_url or item.media_url
            analysis = await self._classifier.classify_video(
                title, description, media_url
            )
            safety = await self._screener.check_video(title, description, media_url)
            positivity = await self._scorer.score(f"{title} {description or ''}")
        else:
            text = request.analysis_text or item.text
            analysis = await self._classifier.classify_text(text)
            safety = await self._screener.check_content(text)
            positivity = await self._scorer.score(text)
        return analysis, safety, positivity

    async def _fail(
        self, item: ContentItem, request: ModerationRequest, message: str
    ) -> ModerationOutcome:
        logger.error(
            f"Moderation pipeline failed: {message}",
            extra={**_item_extra(item), "category": "moderation"},
        )
        reason = f"Processing error: {message}"

        current = await self._store.get_content(item.content_type, item.id)
        if current is None or current.moderation_status != ModerationStatus.PENDING:
            return await self._superseded(item)

        try:
            await self._store.save_content(
                transition(current, ModerationStatus.REQUIRES_REVIEW, Actor.SYSTEM),
                expected_status=ModerationStatus.PENDING,
            )
        except StaleContentError:
            return await self._superseded(item)
        await self._queue.enqueue(
            item.content_type, item.id, QueuePriority.HIGH, reason
        )
        await self._audit.record(
            AuditAction.MODERATE,
            request.actor_id,
            item.content_type,
            item.id,
            {
                "error": message,
                "moderationStatus": ModerationStatus.REQUIRES_REVIEW.value,
            },
        )
        self._invalidate_caches()

        return ModerationOutcome(
            content_id=item.id,
            content_type=item.content_type,
            status=ModerationStatus.REQUIRES_REVIEW,
            priority=QueuePriority.HIGH,
            reason=reason,
            error=message,
        )

    async def _superseded(self, item: ContentItem) -> ModerationOutcome:
        """Discard a pipeline result for an item that is no longer pending."""
        current = await self._store.get_content(item.content_type, item.id)
        status = current.moderation_status if current else item.moderation_status
        logger.warning(
            f"Discarding pipeline result, item became {status.value} during analysis",
            extra=_item_extra(item),
        )
        return ModerationOutcome(
            content_id=item.id,
            content_type=item.content_type,
            status=status,
            skipped=True,
        )

    async def resolve(
        self,
        content_type: ContentType,
        content_id: int,
        decision: Decision,
        notes: str | None,
        moderator_id: str,
    ) -> bool:
        """
        Apply a moderator decision.

        Returns False, writing nothing, if the item already has the target
        status and no unresolved queue entries.

        Raises:
            ContentNotFoundError: If the item does not exist.
        """
        item = await self._store.get_content(content_type, content_id)
        if item is None:
            raise ContentNotFoundError(content_type.value, content_id)

        target = (
            ModerationStatus.AUTO_APPROVED
            if decision == Decision.APPROVED
            else ModerationStatus.REJECTED
        )
        unresolved = await self._queue.unresolved_for(content_type, content_id)
        if item.moderation_status == target and not unresolved:
            logger.info(
                f"Resolution is a no-op, item already {target.value}",
                extra=_item_extra(item),
            )
            return False

        updated = transition(
            item,
            target,
            Actor.MODERATOR,
            moderation_notes=notes,
            moderated_by=moderator_id,
            moderated_at=self._clock(),
        )
        await self._store.save_content(updated)
        resolved = await self._queue.resolve_for(content_type, content_id)

        action = (
            AuditAction.PUBLISH
            if decision == Decision.APPROVED
            else AuditAction.REJECT
        )
        await self._audit.record(
            action,
            moderator_id,
            content_type,
            content_id,
            {"decision": decision.value, "notes": notes},
        )
        self._invalidate_caches()

        logger.info(
            f"Moderator {moderator_id} {decision.value} item, "
            f"{resolved} queue entries resolved",
            extra=_item_extra(item),
        )
        return True

    def _invalidate_caches(self) -> None:
        self._cache.invalidate_prefix(FEED_CACHE_PREFIX)
        self._cache.invalidate_prefix(TRENDING_CACHE_PREFIX)


def _item_extra(item: ContentItem) -> dict[str, object]:
    return {"content_id": item.id, "content_type": item.content_type.value}


def _outcome(
    item: ContentItem,
    decision: ModerationDecision,
    category: Category,
    positivity: int,
) -> ModerationOutcome:
    return ModerationOutcome(
        content_id=item.id,
        content_type=item.content_type,
        status=decision.status,
        priority=decision.priority,
        reason=decision.reason,
        category=category,
        positivity_score=positivity,
    )
