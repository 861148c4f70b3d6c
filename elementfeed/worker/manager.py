"""Worker manager - runs the moderation worker and the periodic jobs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Sequence

from .pool import ModerationWorker
from .scheduler import PeriodicJob

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Owns the background side of the platform.

    Starts the moderation worker's dispatch loop and every periodic job, and
    stops them in reverse order.
    """

    def __init__(
        self,
        worker: ModerationWorker,
        jobs: Sequence[PeriodicJob] = (),
    ):
        self._worker = worker
        self._jobs = list(jobs)
        self._worker_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def start(self) -> asyncio.Task[None]:
        """
        Start the worker and the periodic jobs.

        Returns the worker task handle.
        """
        if self._worker_task is not None and not self._worker_task.done():
            return self._worker_task

        logger.info(
            "Starting worker manager",
            extra={"jobs": [job.name for job in self._jobs]},
        )

        self._worker_task = asyncio.create_task(self._worker.run())
        for job in self._jobs:
            job.start()

        logger.info("Worker manager started")
        return self._worker_task

    async def stop(self) -> None:
        """Gracefully stop: periodic jobs first, then drain the worker."""
        logger.info("Stopping worker manager")

        for job in self._jobs:
            await job.stop()

        self._worker.shutdown()
        if self._worker_task:
            self._worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task
            self._worker_task = None

        await self._worker.drain()

        logger.info("Worker manager stopped")

    async def run_until_shutdown(self) -> None:
        """
        Run until SIGINT/SIGTERM.

        Convenience method for standalone worker processes.
        """
        loop = asyncio.get_event_loop()
        stop_event = asyncio.Event()

        def signal_handler() -> None:
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        try:
            await self.start()
            await stop_event.wait()
        finally:
            await self.stop()
