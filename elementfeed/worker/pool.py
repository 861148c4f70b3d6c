"""Moderation worker pool.

Submitted jobs go onto an in-process queue and are executed by a bounded
number of concurrent tasks. Implementation details:

1. Semaphore-based concurrency: a job is only taken off the queue once a
   permit is free
2. A failing job is retried with exponential backoff (base * 2^n, capped)
   while it keeps its permit
3. Jobs that exhaust their retries, or fail with a non-retryable error, are
   dead-lettered
4. Every submission gets a :class:`JobHandle`; its :meth:`JobHandle.wait`
   resolves once the job completed, was dead-lettered or was abandoned at
   shutdown
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from pydantic import BaseModel

from ..errors import (
    ContentNotFoundError,
    ElementFeedError,
    IllegalTransitionError,
    JobFailedError,
)
from ..models import ModerationRequest
from ..moderation import ModerationOutcome

logger = logging.getLogger(__name__)

JobHandler = Callable[[ModerationRequest], Awaitable[ModerationOutcome]]

# Errors that will not go away on retry
NON_RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    ContentNotFoundError,
    IllegalTransitionError,
)


class JobState(str, Enum):
    COMPLETED = "completed"
    DEAD_LETTERED = "dead_lettered"
    ABANDONED = "abandoned"


class JobResult(BaseModel):
    job_id: int
    request: ModerationRequest
    state: JobState
    attempts: int = 0
    outcome: ModerationOutcome | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state == JobState.COMPLETED

    def unwrap(self) -> ModerationOutcome:
        """Return the outcome or raise :class:`JobFailedError`."""
        if self.outcome is None:
            raise JobFailedError(
                f"Job {self.job_id} {self.state.value} after {self.attempts} "
                f"attempts: {self.error}"
            )
        return self.outcome


class JobHandle:
    """Observable completion of one submitted job."""

    def __init__(self, job_id: int, future: asyncio.Future[JobResult]):
        self._job_id = job_id
        self._future = future

    @property
    def job_id(self) -> int:
        return self._job_id

    def done(self) -> bool:
        return self._future.done()

    async def wait(self, timeout: float | None = None) -> JobResult:
        return await asyncio.wait_for(asyncio.shield(self._future), timeout)


class _Job:
    __slots__ = ("job_id", "request", "future", "attempts")

    def __init__(self, job_id: int, request: ModerationRequest):
        self.job_id = job_id
        self.request = request
        self.future: asyncio.Future[JobResult] = (
            asyncio.get_event_loop().create_future()
        )
        self.attempts = 0

    def finish(self, state: JobState, **fields: object) -> JobResult:
        result = JobResult(
            job_id=self.job_id,
            request=self.request,
            state=state,
            attempts=self.attempts,
            **fields,
        )
        if not self.future.done():
            self.future.set_result(result)
        return result


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Delay before retry number *attempt* (1-based)."""
    return min(cap, base * (2 ** (attempt - 1)))


class ModerationWorker:
    """Bounded pool running moderation jobs."""

    def __init__(
        self,
        handler: JobHandler,
        *,
        max_concurrent: int = 4,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        shutdown_grace_period: float = 30.0,
        poll_interval: float = 0.5,
    ):
        self._handler = handler
        self._max_concurrent = max_concurrent
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._shutdown_grace_period = shutdown_grace_period
        self._poll_interval = poll_interval

        self._queue: asyncio.Queue[_Job] = asyncio.Queue()
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._shutdown_event = asyncio.Event()
        self._accepting = True
        self._active_count = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._ids = itertools.count(1)
        self._dead_letters: list[JobResult] = []

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dead_letters(self) -> list[JobResult]:
        return list(self._dead_letters)

    def submit(self, request: ModerationRequest) -> JobHandle:
        """
        Queue a job and return immediately.

        Raises:
            ElementFeedError: If the worker is shutting down.
        """
        if not self._accepting:
            raise ElementFeedError("Moderation worker is shutting down")
        job = _Job(next(self._ids), request)
        self._queue.put_nowait(job)
        logger.debug(
            "Job submitted",
            extra={
                "job_id": job.job_id,
                "content_id": request.content_id,
                "content_type": request.content_type.value,
            },
        )
        return JobHandle(job.job_id, job.future)

    async def run(self) -> None:
        """Run the dispatch loop until :meth:`shutdown`."""
        logger.info(
            "Starting moderation worker",
            extra={"max_concurrent": self._max_concurrent},
        )

        while not self._shutdown_event.is_set():
            # Wait for a free slot before taking work off the queue
            await self._semaphore.acquire()
            try:
                job = await asyncio.wait_for(
                    self._queue.get(), timeout=self._poll_interval
                )
            except asyncio.TimeoutError:
                self._semaphore.release()
                continue
            except BaseException:
                self._semaphore.release()
                raise

            self._active_count += 1
            task = asyncio.create_task(self._execute_with_permit(job))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def shutdown(self) -> None:
        """Stop accepting jobs and signal the dispatch loop to exit."""
        self._accepting = False
        self._shutdown_event.set()

    async def drain(self) -> None:
        """
        Wait for in-flight jobs up to the grace period.

        Jobs still running afterwards are cancelled; jobs still queued are
        abandoned.
        """
        self.shutdown()

        if self._tasks:
            _, still_running = await asyncio.wait(
                set(self._tasks), timeout=self._shutdown_grace_period
            )
            for task in still_running:
                task.cancel()
            for task in still_running:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            if still_running:
                logger.warning(
                    f"Cancelled {len(still_running)} in-flight jobs after "
                    f"{self._shutdown_grace_period}s grace period"
                )

        abandoned = 0
        while not self._queue.empty():
            job = self._queue.get_nowait()
            job.finish(JobState.ABANDONED, error="Worker shut down before start")
            abandoned += 1
        if abandoned:
            logger.warning(f"Abandoned {abandoned} queued jobs at shutdown")

    async def _execute_with_permit(self, job: _Job) -> None:
        """Execute job and release semaphore permit when done."""
        try:
            await self._execute(job)
        except asyncio.CancelledError:
            job.finish(JobState.ABANDONED, error="Cancelled at shutdown")
            raise
        finally:
            self._semaphore.release()
            self._active_count -= 1

    async def _execute(self, job: _Job) -> None:
        extra = {
            "job_id": job.job_id,
            "content_id": job.request.content_id,
            "content_type": job.request.content_type.value,
        }

        while True:
            job.attempts += 1
            try:
                outcome = await self._handler(job.request)
            except NON_RETRYABLE_ERRORS as e:
                self._dead_letter(job, e, extra)
                return
            except Exception as e:
                if job.attempts > self._max_retries:
                    self._dead_letter(job, e, extra)
                    return
                delay = backoff_delay(
                    job.attempts, self._retry_base_delay, self._retry_max_delay
                )
                logger.warning(
                    f"Job attempt {job.attempts} failed, retrying in {delay}s: {e}",
                    extra=extra,
                )
                await asyncio.sleep(delay)
                continue

            job.finish(JobState.COMPLETED, outcome=outcome)
            logger.info(
                f"Job completed: {outcome.status.value}",
                extra={**extra, "attempts": job.attempts},
            )
            return

    def _dead_letter(
        self, job: _Job, error: Exception, extra: dict[str, object]
    ) -> None:
        result = job.finish(JobState.DEAD_LETTERED, error=str(error))
        self._dead_letters.append(result)
        logger.error(
            f"Job dead-lettered after {job.attempts} attempts: {error}",
            extra={**extra, "category": "worker"},
        )
