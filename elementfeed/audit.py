"""Append-only audit log.

Audit writes are advisory: a failure is retried and then reported through
the error-metrics channel, but it never undoes the state change it describes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .models import AuditAction, AuditLogEntry, ContentType
from .store import ContentStore

logger = logging.getLogger(__name__)

AUDIT_MAX_ATTEMPTS = 3
AUDIT_RETRY_DELAY = 0.05


class AuditLog:
    def __init__(
        self,
        store: ContentStore,
        *,
        max_attempts: int = AUDIT_MAX_ATTEMPTS,
        retry_delay: float = AUDIT_RETRY_DELAY,
    ):
        self._store = store
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    async def record(
        self,
        action: AuditAction,
        actor_id: str | None,
        content_type: ContentType,
        content_id: int,
        changes: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """
        Append one entry.

        Returns the stored entry, or None if every attempt failed.
        """
        entry = AuditLogEntry(
            action=action,
            actor_id=actor_id,
            content_id=content_id,
            content_type=content_type,
            changes=changes or {},
        )

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._store.append_audit(entry)
            except Exception as e:
                if attempt == self._max_attempts:
                    logger.error(
                        f"Audit write failed after {attempt} attempts: {e}",
                        extra={
                            "category": "audit",
                            "action": action.value,
                            "content_id": content_id,
                            "content_type": content_type.value,
                        },
                    )
                    return None
                logger.warning(
                    f"Audit write failed (attempt {attempt}), retrying: {e}",
                    extra={"content_id": content_id},
                )
                await asyncio.sleep(self._retry_delay * attempt)
        return None

    async def entries_for(
        self, content_type: ContentType, content_id: int
    ) -> list[AuditLogEntry]:
        return await self._store.list_audit(
            content_type=content_type, content_id=content_id
        )

    async def list_entries(
        self, action: AuditAction | None = None
    ) -> list[AuditLogEntry]:
        return await self._store.list_audit(action=action)
