"""Periodic jobs that never overlap themselves."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    Run an async callable every ``interval`` seconds.

    A tick that finds the previous run still active is skipped rather than
    queued. Errors raised by the callable are logged and do not stop the
    schedule.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval: float,
        *,
        initial_delay: float = 0.0,
    ):
        self.name = name
        self._func = func
        self._interval = interval
        self._initial_delay = initial_delay
        self._loop_task: asyncio.Task[None] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self.run_count = 0
        self.skipped_count = 0
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        """True while a run is in progress."""
        return self._run_task is not None and not self._run_task.done()

    @property
    def started(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> asyncio.Task[None]:
        if self._loop_task is not None and not self._loop_task.done():
            return self._loop_task
        self._loop_task = asyncio.create_task(self._schedule())
        logger.info(
            f"Scheduled {self.name} every {self._interval}s "
            f"(first run in {self._initial_delay}s)"
        )
        return self._loop_task

    async def stop(self) -> None:
        for task in (self._loop_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._loop_task = None
        self._run_task = None

    def trigger(self) -> bool:
        """Start a run in the background unless one is already active."""
        return self._launch() is not None

    async def run_once(self) -> bool:
        """Run now and wait for it. Returns False if a run was already active."""
        task = self._launch()
        if task is None:
            return False
        await asyncio.shield(task)
        return True

    def _launch(self) -> asyncio.Task[None] | None:
        if self.running:
            self.skipped_count += 1
            logger.info(f"Skipping {self.name}: previous run still active")
            return None
        task = asyncio.create_task(self._run())
        self._run_task = task
        return task

    async def _schedule(self) -> None:
        await asyncio.sleep(self._initial_delay)
        while True:
            self.trigger()
            await asyncio.sleep(self._interval)

    async def _run(self) -> None:
        self.run_count += 1
        try:
            await self._func()
            self.last_error = None
        except Exception as e:
            self.last_error = str(e)
            logger.error(
                f"Periodic job {self.name} failed: {e}",
                extra={"category": "scheduler", "job": self.name},
            )
