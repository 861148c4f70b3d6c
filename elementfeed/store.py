"""Persistent store interface and in-process implementation.

:class:`ContentStore` is the boundary to the persistence collaborator. Every
write replaces one whole record, so a status change is never observable
half-applied. :class:`MemoryStore` implements it in memory for tests, local
runs and single-process deployments.
"""

from __future__ import annotations

import asyncio
import itertools
from abc import ABC, abstractmethod

from .errors import StaleContentError, StoreError
from .models import (
    AuditAction,
    AuditLogEntry,
    Category,
    ContentItem,
    ContentType,
    ModerationQueueEntry,
    ModerationStatus,
    PublishStatus,
    QueueStatus,
    RecommendationCacheEntry,
    TrendingRecord,
    ViewSession,
    utcnow,
)


class ContentStore(ABC):
    """Upsert / read operations over the pipeline's entities."""

    # -- content -------------------------------------------------------------

    @abstractmethod
    async def get_content(
        self, content_type: ContentType, content_id: int
    ) -> ContentItem | None:
        """Return one content item."""

    @abstractmethod
    async def save_content(
        self,
        item: ContentItem,
        *,
        expected_status: ModerationStatus | None = None,
    ) -> ContentItem:
        """
        Insert (``id`` is None) or replace a content item.

        When ``expected_status`` is given the replacement only happens if the
        stored item still has that moderation status.

        Raises:
            StoreError: If ``id`` is set but no such item exists.
            StaleContentError: If the stored status differs from
                ``expected_status``.
        """

    @abstractmethod
    async def list_content(
        self,
        *,
        content_type: ContentType | None = None,
        category: Category | None = None,
        publish_status: PublishStatus | None = None,
        moderation_status: ModerationStatus | None = None,
    ) -> list[ContentItem]:
        """Return items matching every given filter, in insertion order."""

    @abstractmethod
    async def increment_view_count(
        self, content_type: ContentType, content_id: int
    ) -> None:
        """Atomically add one view."""

    # -- moderation queue ----------------------------------------------------

    @abstractmethod
    async def save_queue_entry(
        self, entry: ModerationQueueEntry
    ) -> ModerationQueueEntry:
        """Insert (``id`` is None) or replace a queue entry."""

    @abstractmethod
    async def get_queue_entry(self, entry_id: int) -> ModerationQueueEntry | None:
        """Return one queue entry."""

    @abstractmethod
    async def list_queue_entries(
        self,
        *,
        status: QueueStatus | None = None,
        content_type: ContentType | None = None,
        content_id: int | None = None,
    ) -> list[ModerationQueueEntry]:
        """Return queue entries matching every given filter."""

    # -- trending ------------------------------------------------------------

    @abstractmethod
    async def get_trending_record(
        self, content_type: ContentType, content_id: int
    ) -> TrendingRecord | None:
        """Look up a trending record by its composite key."""

    @abstractmethod
    async def save_trending_record(self, record: TrendingRecord) -> TrendingRecord:
        """Insert or replace the record for ``(content_id, content_type)``."""

    @abstractmethod
    async def delete_trending_record(
        self, content_type: ContentType, content_id: int
    ) -> bool:
        """Remove a trending record. Returns False if absent."""

    @abstractmethod
    async def list_trending_records(
        self, category: Category | None = None
    ) -> list[TrendingRecord]:
        """Return trending records, optionally for one category."""

    # -- recommendations -----------------------------------------------------

    @abstractmethod
    async def get_recommendation(
        self, user_id: str, category: Category
    ) -> RecommendationCacheEntry | None:
        """Return the cached recommendation list for a user and category."""

    @abstractmethod
    async def save_recommendation(
        self, entry: RecommendationCacheEntry
    ) -> RecommendationCacheEntry:
        """Insert or replace the entry for ``(user_id, category)``."""

    # -- audit ---------------------------------------------------------------

    @abstractmethod
    async def append_audit(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an audit entry and return it with its id assigned."""

    @abstractmethod
    async def list_audit(
        self,
        *,
        content_type: ContentType | None = None,
        content_id: int | None = None,
        action: AuditAction | None = None,
    ) -> list[AuditLogEntry]:
        """Return audit entries, oldest first."""

    # -- view sessions -------------------------------------------------------

    @abstractmethod
    async def add_view_session(self, session: ViewSession) -> ViewSession:
        """Record that a user started viewing an item."""

    @abstractmethod
    async def recent_views(self, user_id: str, limit: int = 50) -> list[ViewSession]:
        """Return a user's most recent view sessions, newest first."""


class MemoryStore(ContentStore):
    """
    Dictionary-backed store.

    Records are copied on the way in and out so callers never share mutable
    state with the store.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._content: dict[tuple[ContentType, int], ContentItem] = {}
        self._content_ids = {t: itertools.count(1) for t in ContentType}
        self._queue: dict[int, ModerationQueueEntry] = {}
        self._queue_ids = itertools.count(1)
        self._trending: dict[tuple[ContentType, int], TrendingRecord] = {}
        self._trending_ids = itertools.count(1)
        self._recommendations: dict[tuple[str, Category], RecommendationCacheEntry] = {}
        self._audit: list[AuditLogEntry] = []
        self._audit_ids = itertools.count(1)
        self._views: list[ViewSession] = []

    # -- content -------------------------------------------------------------

    async def get_content(
        self, content_type: ContentType, content_id: int
    ) -> ContentItem | None:
        item = self._content.get((content_type, content_id))
        return item.model_copy(deep=True) if item else None

    async def save_content(
        self,
        item: ContentItem,
        *,
        expected_status: ModerationStatus | None = None,
    ) -> ContentItem:
        async with self._lock:
            if item.id is None:
                item = item.model_copy(
                    update={"id": next(self._content_ids[item.content_type])}
                )
            else:
                current = self._content.get((item.content_type, item.id))
                if current is None:
                    raise StoreError(
                        f"Cannot replace unknown content "
                        f"{item.content_type.value}/{item.id}"
                    )
                if (
                    expected_status is not None
                    and current.moderation_status != expected_status
                ):
                    raise StaleContentError(
                        f"Content {item.content_type.value}/{item.id} is "
                        f"{current.moderation_status.value}, "
                        f"expected {expected_status.value}"
                    )
            stored = item.model_copy(deep=True, update={"updated_at": utcnow()})
            self._content[(stored.content_type, stored.id)] = stored
            return stored.model_copy(deep=True)

    async def list_content(
        self,
        *,
        content_type: ContentType | None = None,
        category: Category | None = None,
        publish_status: PublishStatus | None = None,
        moderation_status: ModerationStatus | None = None,
    ) -> list[ContentItem]:
        return [
            item.model_copy(deep=True)
            for item in self._content.values()
            if (content_type is None or item.content_type == content_type)
            and (category is None or item.category == category)
            and (publish_status is None or item.publish_status == publish_status)
            and (
                moderation_status is None
                or item.moderation_status == moderation_status
            )
        ]

    async def increment_view_count(
        self, content_type: ContentType, content_id: int
    ) -> None:
        async with self._lock:
            key = (content_type, content_id)
            item = self._content.get(key)
            if item is not None:
                self._content[key] = item.model_copy(
                    update={"view_count": item.view_count + 1}
                )

    # -- moderation queue ----------------------------------------------------

    async def save_queue_entry(
        self, entry: ModerationQueueEntry
    ) -> ModerationQueueEntry:
        async with self._lock:
            if entry.id is None:
                entry = entry.model_copy(update={"id": next(self._queue_ids)})
            elif entry.id not in self._queue:
                raise StoreError(f"Cannot replace unknown queue entry {entry.id}")
            self._queue[entry.id] = entry.model_copy(deep=True)
            return entry

    async def get_queue_entry(self, entry_id: int) -> ModerationQueueEntry | None:
        entry = self._queue.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def list_queue_entries(
        self,
        *,
        status: QueueStatus | None = None,
        content_type: ContentType | None = None,
        content_id: int | None = None,
    ) -> list[ModerationQueueEntry]:
        return [
            e.model_copy(deep=True)
            for e in self._queue.values()
            if (status is None or e.status == status)
            and (content_type is None or e.content_type == content_type)
            and (content_id is None or e.content_id == content_id)
        ]

    # -- trending ------------------------------------------------------------

    async def get_trending_record(
        self, content_type: ContentType, content_id: int
    ) -> TrendingRecord | None:
        record = self._trending.get((content_type, content_id))
        return record.model_copy(deep=True) if record else None

    async def save_trending_record(self, record: TrendingRecord) -> TrendingRecord:
        async with self._lock:
            key = (record.content_type, record.content_id)
            if record.id is None:
                existing = self._trending.get(key)
                new_id = existing.id if existing else next(self._trending_ids)
                record = record.model_copy(update={"id": new_id})
            self._trending[key] = record.model_copy(deep=True)
            return record

    async def delete_trending_record(
        self, content_type: ContentType, content_id: int
    ) -> bool:
        async with self._lock:
            return self._trending.pop((content_type, content_id), None) is not None

    async def list_trending_records(
        self, category: Category | None = None
    ) -> list[TrendingRecord]:
        return [
            r.model_copy(deep=True)
            for r in self._trending.values()
            if category is None or r.category == category
        ]

    # -- recommendations -----------------------------------------------------

    async def get_recommendation(
        self, user_id: str, category: Category
    ) -> RecommendationCacheEntry | None:
        entry = self._recommendations.get((user_id, category))
        return entry.model_copy(deep=True) if entry else None

    async def save_recommendation(
        self, entry: RecommendationCacheEntry
    ) -> RecommendationCacheEntry:
        async with self._lock:
            self._recommendations[(entry.user_id, entry.category)] = entry.model_copy(
                deep=True
            )
            return entry

    # -- audit ---------------------------------------------------------------

    async def append_audit(self, entry: AuditLogEntry) -> AuditLogEntry:
        async with self._lock:
            entry = entry.model_copy(update={"id": next(self._audit_ids)})
            self._audit.append(entry)
            return entry

    async def list_audit(
        self,
        *,
        content_type: ContentType | None = None,
        content_id: int | None = None,
        action: AuditAction | None = None,
    ) -> list[AuditLogEntry]:
        return [
            e
            for e in self._audit
            if (content_type is None or e.content_type == content_type)
            and (content_id is None or e.content_id == content_id)
            and (action is None or e.action == action)
        ]

    # -- view sessions -------------------------------------------------------

    async def add_view_session(self, session: ViewSession) -> ViewSession:
        async with self._lock:
            self._views.append(session.model_copy())
            return session

    async def recent_views(self, user_id: str, limit: int = 50) -> list[ViewSession]:
        views = [v for v in self._views if v.user_id == user_id]
        views.sort(key=lambda v: v.started_at, reverse=True)
        return views[:limit]
