"""Pydantic models for content, moderation, trending and recommendation records.

This module holds the data model shared by every component: the taxonomy and
status enums, the persisted entities owned by the store, and the read-model
projections returned to feed and recommendation callers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .types import ActorId, Confidence, ContentId, Counter, PositivityScore


def utcnow() -> datetime:
    """Timezone-aware current time, used as the default clock."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enum Classes
# =============================================================================


class Category(str, Enum):
    """Element taxonomy label."""

    WATER = "Water"
    FIRE = "Fire"
    EARTH = "Earth"
    AIR = "Air"
    SPIRITUAL = "Spiritual"


CATEGORIES: tuple[Category, ...] = tuple(Category)


class ContentType(str, Enum):
    VIDEO = "video"
    POST = "post"


class ModerationStatus(str, Enum):
    """Moderation state of a content item.

    ``PENDING`` is the state between creation and the first automatic
    decision.
    """

    PENDING = "pending"
    AUTO_APPROVED = "auto_approved"
    REQUIRES_REVIEW = "requires_review"
    REJECTED = "rejected"


class PublishStatus(str, Enum):
    UNDER_REVIEW = "under_review"
    PUBLISHED = "published"
    FLAGGED = "flagged"


PUBLISH_STATUS_BY_MODERATION: dict[ModerationStatus, PublishStatus] = {
    ModerationStatus.PENDING: PublishStatus.UNDER_REVIEW,
    ModerationStatus.AUTO_APPROVED: PublishStatus.PUBLISHED,
    ModerationStatus.REQUIRES_REVIEW: PublishStatus.UNDER_REVIEW,
    ModerationStatus.REJECTED: PublishStatus.FLAGGED,
}


class QueuePriority(str, Enum):
    """Human review priority. Lower rank is served first."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    QueuePriority.URGENT: 1,
    QueuePriority.HIGH: 2,
    QueuePriority.NORMAL: 3,
    QueuePriority.LOW: 4,
}


class QueueStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"


class RiskLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditAction(str, Enum):
    UPLOAD = "upload"
    CATEGORIZE = "categorize"
    MODERATE = "moderate"
    PUBLISH = "publish"
    REJECT = "reject"


class RecommendationBasis(str, Enum):
    VIEWING_HISTORY = "viewing_history"
    CATEGORY_CURATED = "category_curated"
    HYBRID = "hybrid"


class Decision(str, Enum):
    """Human moderator decision."""

    APPROVED = "approved"
    REJECTED = "rejected"


class VisibilityTier(str, Enum):
    """Feed visibility bucket. Declaration order is display order."""

    FEATURED = "featured"
    STANDARD = "standard"
    REDUCED = "reduced"
    SUPPRESSED = "suppressed"


class AnalysisSource(str, Enum):
    EXTERNAL = "external"
    HEURISTIC = "heuristic"


# =============================================================================
# Analysis value objects
# =============================================================================


class SafetyAssessment(BaseModel):
    """Safety screening result, embedded in the content record."""

    is_safe: bool
    flags: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.NONE


class ClassificationResult(BaseModel):
    """Category assignment with confidence and a short rationale."""

    category: Category
    confidence: Confidence
    reasoning: str
    source: AnalysisSource = AnalysisSource.HEURISTIC


# =============================================================================
# Persisted entities
# =============================================================================


class ContentItem(BaseModel):
    """A video or text post.

    ``publish_status`` is derived from ``moderation_status`` and cannot be
    set independently.
    """

    id: ContentId | None = None
    content_type: ContentType
    creator_id: ActorId
    title: str | None = None
    description: str | None = None
    body: str | None = None
    media_url: str | None = None
    category: Category | None = None
    moderation_status: ModerationStatus = ModerationStatus.PENDING
    positivity_score: PositivityScore | None = None
    view_count: Counter = 0
    engagement_count: Counter = 0
    analysis_result: dict[str, Any] | None = None
    safety_assessment: dict[str, Any] | None = None
    moderation_notes: str | None = None
    moderated_by: str | None = None
    moderated_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def publish_status(self) -> PublishStatus:
        return PUBLISH_STATUS_BY_MODERATION[self.moderation_status]

    @property
    def text(self) -> str:
        """Text the analysis stages look at."""
        if self.content_type == ContentType.POST:
            return self.body or ""
        return f"{self.title or ''} {self.description or ''}".strip()


class ModerationQueueEntry(BaseModel):
    """Pending human review work item."""

    id: int | None = None
    content_id: ContentId
    content_type: ContentType
    priority: QueuePriority = QueuePriority.NORMAL
    status: QueueStatus = QueueStatus.PENDING
    flagged_reason: str | None = None
    assigned_to: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None


class TrendingRecord(BaseModel):
    """Derived trend score, one per (content_id, content_type)."""

    id: int | None = None
    content_id: ContentId
    content_type: ContentType
    category: Category
    trending_score: float = 0.0
    view_count_24h: Counter = 0
    engagement_count_24h: Counter = 0
    updated_at: datetime = Field(default_factory=utcnow)


class RecommendationCacheEntry(BaseModel):
    """Cached recommendation list for a (user, category) pair."""

    user_id: ActorId
    category: Category
    content_ids: list[int] = Field(default_factory=list)
    basis: RecommendationBasis = RecommendationBasis.HYBRID
    calculated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at > now


class AuditLogEntry(BaseModel):
    """Immutable audit record."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    action: AuditAction
    actor_id: str | None = None
    content_id: ContentId
    content_type: ContentType
    changes: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class ViewSession(BaseModel):
    user_id: ActorId
    content_id: ContentId
    content_type: ContentType
    started_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# Requests and read models
# =============================================================================


class ModerationRequest(BaseModel):
    """Input for one run of the moderation pipeline."""

    content_type: ContentType
    content_id: ContentId
    actor_id: str | None = None
    text: str | None = None
    title: str | None = None
    description: str | None = None
    media_url: str | None = None

    @property
    def analysis_text(self) -> str:
        if self.content_type == ContentType.POST:
            return self.text or ""
        return f"{self.title or ''} {self.description or ''}".strip()


class FeedItem(BaseModel):
    """Published content as served to readers."""

    id: ContentId
    content_type: ContentType
    creator_id: str
    category: Category | None = None
    title: str | None = None
    description: str | None = None
    body: str | None = None
    media_url: str | None = None
    view_count: int = 0
    positivity_score: int | None = None
    created_at: datetime

    @classmethod
    def from_content(cls, item: ContentItem) -> FeedItem:
        return cls(
            id=item.id,
            content_type=item.content_type,
            creator_id=item.creator_id,
            category=item.category,
            title=item.title,
            description=item.description,
            body=item.body,
            media_url=item.media_url,
            view_count=item.view_count,
            positivity_score=item.positivity_score,
            created_at=item.created_at,
        )


class TrendingItem(FeedItem):
    trending_score: float
    view_count_24h: int
    engagement_count_24h: int


class AnalyticsOverview(BaseModel):
    total_videos: int
    total_posts: int
    approval_rate: float
    safety_flag_rate: float
    category_distribution: dict[str, int] = Field(default_factory=dict)
    trending_topics: list[str] = Field(default_factory=list)
