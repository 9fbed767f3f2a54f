"""Shared API dependencies — single import point for all routers.

Re-exports the database session and authentication dependencies and adds
the ones for the job queue, the clock and the queue monitor, so tests can
swap any of them through ``app.dependency_overrides``::

    from subtrack.api.deps import get_current_user, get_db, get_job_queue
"""

from subtrack.auth.dependencies import get_current_user
from subtrack.clock import Clock, SystemClock
from subtrack.database import get_db
from subtrack.worker.monitor import QueueMonitor, get_monitor
from subtrack.worker.queue import CeleryJobQueue, JobQueue


def get_job_queue() -> JobQueue:
    return CeleryJobQueue()


def get_clock() -> Clock:
    return SystemClock()


def get_queue_monitor() -> QueueMonitor:
    return get_monitor()


__all__ = [
    "get_db",
    "get_current_user",
    "get_job_queue",
    "get_clock",
    "get_queue_monitor",
]
