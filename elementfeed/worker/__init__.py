"""Background execution: moderation worker pool, periodic jobs, manager."""

from .manager import WorkerManager
from .pool import JobHandle, JobResult, JobState, ModerationWorker, backoff_delay
from .scheduler import PeriodicJob

__all__ = [
    "JobHandle",
    "JobResult",
    "JobState",
    "ModerationWorker",
    "PeriodicJob",
    "WorkerManager",
    "backoff_delay",
]
