"""Analysis API cost monitoring and job batching.

Tracks estimated cost per request in a rolling window, exposes warn / block
thresholds, and batches analysis jobs to reduce API overhead. The monitor
never refuses a call itself: callers check :meth:`CostMonitor.should_block`
before a paid request and fall back to local heuristics when it is true.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# USD per 1k tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
}

DEFAULT_PRICING_MODEL = "gpt-4o"

# Fraction of the limit at which a warning is logged
WARN_RATIO = 0.9


class CostRecord(BaseModel):
    timestamp: float
    model: str
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    operation: str


class OperationCost(BaseModel):
    count: int = 0
    cost: float = 0.0


class CostStats(BaseModel):
    total_spent: float
    request_count: int
    avg_cost_per_request: float
    by_operation: dict[str, OperationCost] = Field(default_factory=dict)
    budget_remaining: float
    budget_limit_usd: float


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model, MODEL_PRICING[DEFAULT_PRICING_MODEL])
    return (input_tokens / 1000) * pricing["input"] + (
        output_tokens / 1000
    ) * pricing["output"]


class CostMonitor:
    """
    Rolling-window spend tracker.

    Thread-safe: records may be added from any worker task or thread.
    """

    def __init__(
        self,
        limit_usd: float = 50.0,
        window_hours: float = 24.0,
        clock: Callable[[], float] = time.time,
    ):
        self._limit_usd = limit_usd
        self._window_seconds = window_hours * 60 * 60
        self._clock = clock
        self._records: list[CostRecord] = []
        self._lock = threading.Lock()

    @property
    def limit_usd(self) -> float:
        return self._limit_usd

    def record(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        operation: str,
    ) -> float:
        """Record an API call and return its estimated cost."""
        cost = estimate_cost(model, input_tokens, output_tokens)
        record = CostRecord(
            timestamp=self._clock(),
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost=cost,
            operation=operation,
        )
        with self._lock:
            self._records.append(record)
            self._prune()

        if self.is_over_budget():
            logger.warning(
                "Analysis budget limit approaching",
                extra={
                    "current_spend": round(self.current_spend(), 4),
                    "limit": self._limit_usd,
                    "category": "ai-cost",
                },
            )
        return cost

    def current_spend(self) -> float:
        """Total estimated spend inside the current window."""
        return sum(r.estimated_cost for r in self._window())

    def is_over_budget(self) -> bool:
        """True once spend reaches the warn threshold."""
        return self.current_spend() >= self._limit_usd * WARN_RATIO

    def should_block(self) -> bool:
        """True once spend reaches the hard limit."""
        return self.current_spend() >= self._limit_usd

    def stats(self) -> CostStats:
        recent = self._window()
        total = sum(r.estimated_cost for r in recent)
        by_operation: dict[str, OperationCost] = {}
        for r in recent:
            op = by_operation.setdefault(r.operation, OperationCost())
            op.count += 1
            op.cost += r.estimated_cost
        return CostStats(
            total_spent=total,
            request_count=len(recent),
            avg_cost_per_request=total / len(recent) if recent else 0.0,
            by_operation=by_operation,
            budget_remaining=max(0.0, self._limit_usd - total),
            budget_limit_usd=self._limit_usd,
        )

    def _window(self) -> list[CostRecord]:
        cutoff = self._clock() - self._window_seconds
        with self._lock:
            return [r for r in self._records if r.timestamp >= cutoff]

    def _prune(self) -> None:
        # Caller holds the lock. Keep two windows for stats continuity.
        cutoff = self._clock() - self._window_seconds * 2
        self._records = [r for r in self._records if r.timestamp >= cutoff]


# =============================================================================
# Batching
# =============================================================================

P = TypeVar("P")
R = TypeVar("R")


class BatchJob(Generic[P, R]):
    """One enqueued payload and the future its result is delivered to."""

    def __init__(self, payload: P, future: asyncio.Future[R]):
        self.id = f"job-{uuid4().hex[:12]}"
        self.payload = payload
        self.future = future
        self.enqueued_at = time.monotonic()


BatchProcessor = Callable[[list[P]], Awaitable[list[R]]]


class AnalysisBatcher(Generic[P, R]):
    """
    Collects payloads and hands them to *processor* in batches.

    A batch is flushed when ``batch_size`` jobs are waiting or
    ``flush_interval`` seconds after the first job of a partial batch,
    whichever comes first. The processor returns one result per payload, in
    order. If it raises, every job of that batch fails with the same error.
    """

    def __init__(
        self,
        processor: BatchProcessor[P, R],
        batch_size: int = 5,
        flush_interval: float = 10.0,
    ):
        self._processor = processor
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._queue: list[BatchJob[P, R]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def enqueue(self, payload: P) -> asyncio.Future[R]:
        """Enqueue a payload. Await the returned future for its result."""
        loop = asyncio.get_running_loop()
        job: BatchJob[P, R] = BatchJob(payload, loop.create_future())
        self._queue.append(job)

        if len(self._queue) >= self._batch_size:
            self._schedule_flush()
        elif self._timer is None:
            self._timer = loop.call_later(self._flush_interval, self._schedule_flush)
        return job.future

    async def flush(self) -> None:
        """Process up to one batch immediately."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if not self._queue:
            return

        batch = self._queue[: self._batch_size]
        del self._queue[: self._batch_size]
        logger.info(
            "Processing analysis batch",
            extra={"batch_size": len(batch), "category": "ai-cost"},
        )

        try:
            results = await self._processor([job.payload for job in batch])
            if len(results) != len(batch):
                raise ValueError(
                    f"Batch processor returned {len(results)} results for {len(batch)} jobs"
                )
        except Exception as e:
            logger.error(
                f"Analysis batch failed: {e}",
                extra={"batch_size": len(batch), "category": "ai-cost"},
            )
            for job in batch:
                if not job.future.done():
                    job.future.set_exception(e)
            return

        for job, result in zip(batch, results):
            if not job.future.done():
                job.future.set_result(result)

        # Leftovers form a new partial batch with a fresh timer
        if self._queue and self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._flush_interval, self._schedule_flush)

    async def close(self) -> None:
        """Flush everything still queued."""
        while self._queue:
            await self.flush()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _schedule_flush(self) -> None:
        task = asyncio.get_running_loop().create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
