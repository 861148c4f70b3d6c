"""Tests for the audit log."""

from unittest import mock

import pytest

from elementfeed.audit import AuditLog
from elementfeed.metrics import ErrorMetricsHandler
from elementfeed.models import AuditAction, ContentType
from elementfeed.store import MemoryStore


class TestAuditLog:
    @pytest.mark.asyncio
    async def test_record_and_read_back(self):
        audit = AuditLog(MemoryStore())

        entry = await audit.record(
            AuditAction.PUBLISH, "user-1", ContentType.POST, 1, {"k": "v"}
        )

        assert entry is not None
        assert entry.id == 1
        entries = await audit.entries_for(ContentType.POST, 1)
        assert [e.action for e in entries] == [AuditAction.PUBLISH]
        assert entries[0].changes == {"k": "v"}
        assert len(await audit.list_entries(AuditAction.PUBLISH)) == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failure(self):
        store = MemoryStore()
        stored = mock.sentinel.entry
        store.append_audit = mock.AsyncMock(
            side_effect=[RuntimeError("db down"), stored]
        )
        audit = AuditLog(store, retry_delay=0)

        result = await audit.record(AuditAction.MODERATE, None, ContentType.VIDEO, 2)

        assert result is stored
        assert store.append_audit.await_count == 2

    @pytest.mark.asyncio
    async def test_final_failure_is_reported_not_raised(self):
        store = MemoryStore()
        store.append_audit = mock.AsyncMock(side_effect=RuntimeError("db down"))
        audit = AuditLog(store, max_attempts=3, retry_delay=0)
        metrics = ErrorMetricsHandler().install()

        try:
            result = await audit.record(
                AuditAction.MODERATE, None, ContentType.VIDEO, 2
            )
        finally:
            metrics.uninstall()

        assert result is None
        assert store.append_audit.await_count == 3
        assert metrics.snapshot()["by_category"] == {"audit": 1}
