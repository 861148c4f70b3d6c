"""Tests for periodic jobs."""

import asyncio
from unittest import mock

import pytest

from elementfeed.worker import PeriodicJob


async def wait_idle(job: PeriodicJob) -> None:
    while job.running:
        await asyncio.sleep(0.001)


class TestPeriodicJob:
    @pytest.mark.asyncio
    async def test_run_once(self):
        func = mock.AsyncMock()
        job = PeriodicJob("trending", func, interval=60)

        assert await job.run_once() is True

        func.assert_awaited_once()
        assert job.run_count == 1
        assert job.last_error is None

    @pytest.mark.asyncio
    async def test_overlapping_tick_skipped(self):
        release = asyncio.Event()
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()

        job = PeriodicJob("trending", slow, interval=60)

        assert job.trigger() is True
        await asyncio.sleep(0)
        assert job.running
        assert job.trigger() is False
        assert await job.run_once() is False

        release.set()
        await asyncio.wait_for(wait_idle(job), timeout=1)

        assert calls == 1
        assert job.skipped_count == 2

    @pytest.mark.asyncio
    async def test_error_logged_and_schedule_continues(self, caplog):
        func = mock.AsyncMock(side_effect=[ValueError("nope"), None])
        job = PeriodicJob("trending", func, interval=60)

        await job.run_once()
        assert job.last_error == "nope"
        assert "Periodic job trending failed: nope" in caplog.text

        await job.run_once()
        assert job.last_error is None
        assert job.run_count == 2

    @pytest.mark.asyncio
    async def test_schedule_runs_repeatedly(self):
        func = mock.AsyncMock()
        job = PeriodicJob("cache-purge", func, interval=0.01)

        job.start()
        assert job.started
        await asyncio.sleep(0.1)
        await job.stop()

        assert job.run_count >= 2
        assert not job.started

    @pytest.mark.asyncio
    async def test_initial_delay(self):
        func = mock.AsyncMock()
        job = PeriodicJob("cache-purge", func, interval=0.01, initial_delay=60)

        job.start()
        await asyncio.sleep(0.05)
        await job.stop()

        func.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        job = PeriodicJob("trending", mock.AsyncMock(), interval=60, initial_delay=60)

        first = job.start()
        second = job.start()
        await job.stop()

        assert first is second

    @pytest.mark.asyncio
    async def test_stop_cancels_active_run(self):
        async def forever():
            await asyncio.sleep(10)

        job = PeriodicJob("trending", forever, interval=60)
        job.trigger()
        await asyncio.sleep(0)

        await job.stop()

        assert not job.running
