"""Redis-backed record of what the Celery workers are doing.

Layout, all under the ``queue_monitor:`` prefix:

* ``queue_monitor:{job_id}``: hash with the job's name, queue, status,
  attempts, timestamps and last error;
* ``queue_monitor:active`` / ``completed`` / ``failed``: sets of job ids.

Every job hash expires: active ones after two hours so a worker killed
mid-task cannot pin its id in the active set, completed after an hour and
failed after a day by default. Ids left behind in the sets are pruned when
read.
"""

import enum
import json
import logging
from datetime import datetime
from typing import Any

import redis
from celery import signals

from subtrack.config import settings
from subtrack.database import utcnow

PREFIX = "queue_monitor:"


class JobState(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


# Hash status values; "retrying" jobs stay in the active set.
STATUS_RUNNING = "running"
STATUS_RETRYING = "retrying"


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="seconds")


class QueueMonitor:
    def __init__(
        self,
        client: redis.Redis,
        completed_ttl: int | None = None,
        failed_ttl: int | None = None,
        active_ttl: int | None = None,
        logger: logging.Logger | None = None,
    ):
        self._redis = client
        self.completed_ttl = completed_ttl or settings.queue_monitor_completed_ttl
        self.failed_ttl = failed_ttl or settings.queue_monitor_failed_ttl
        self.active_ttl = active_ttl or settings.queue_monitor_active_ttl
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_url(cls, url: str | None = None) -> "QueueMonitor":
        return cls(redis.Redis.from_url(url or settings.redis_url, decode_responses=True))

    @staticmethod
    def job_key(job_id: str) -> str:
        return f"{PREFIX}{job_id}"

    @staticmethod
    def state_key(state: JobState) -> str:
        return f"{PREFIX}{state.value}"

    # Write side (called from Celery signals) --------------------------------

    def record_started(self, job_id: str, name: str, queue: str | None, attempt: int, kwargs: dict | None) -> None:
        key = self.job_key(job_id)
        fields = {
            "job": name,
            "queue": queue or "default",
            "status": STATUS_RUNNING,
            "attempts": attempt,
            "started_at": _iso(utcnow()),
            "kwargs": json.dumps(kwargs or {}, default=str),
        }
        pipe = self._redis.pipeline()
        pipe.hset(key, mapping=fields)
        pipe.expire(key, self.active_ttl)
        pipe.sadd(self.state_key(JobState.ACTIVE), job_id)
        pipe.execute()

    def record_succeeded(self, job_id: str) -> None:
        self._finish(job_id, JobState.COMPLETED, {"status": JobState.COMPLETED.value}, self.completed_ttl)

    def record_failed(self, job_id: str, error: str, trace: str | None = None) -> None:
        now = _iso(utcnow())
        fields = {"status": JobState.FAILED.value, "error_message": error, "failed_at": now}
        if trace:
            fields["error_trace"] = trace
        self._finish(job_id, JobState.FAILED, fields, self.failed_ttl)

    def record_retry(self, job_id: str, reason: str) -> None:
        key = self.job_key(job_id)
        self._redis.hset(key, mapping={"status": STATUS_RETRYING, "error_message": reason})
        self._redis.expire(key, self.active_ttl)

    def _finish(self, job_id: str, state: JobState, fields: dict[str, Any], ttl: int) -> None:
        key = self.job_key(job_id)
        fields = {**fields, "finished_at": _iso(utcnow())}
        pipe = self._redis.pipeline()
        pipe.hset(key, mapping=fields)
        pipe.expire(key, ttl)
        pipe.srem(self.state_key(JobState.ACTIVE), job_id)
        pipe.sadd(self.state_key(state), job_id)
        pipe.execute()

    # Read side ----------------------------------------------------------------

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        details = self._redis.hgetall(self.job_key(job_id))
        if not details:
            return None
        return self._format(job_id, details)

    def list_jobs(self, state: JobState | None = None, limit: int | None = None) -> list[dict[str, Any]]:
        """Jobs in ``state`` (all states when None), most recently started first."""
        states = [state] if state is not None else list(JobState)
        jobs = []
        for current in states:
            for job_id in self._live_ids(current):
                job = self.get_job(job_id)
                if job is not None:
                    jobs.append(job)
        jobs.sort(key=lambda job: job.get("started_at") or "", reverse=True)
        return jobs[:limit] if limit is not None else jobs

    def metrics(self) -> dict[str, Any]:
        counts = {state: len(self._live_ids(state)) for state in JobState}
        finished = counts[JobState.COMPLETED] + counts[JobState.FAILED]
        return {
            "active_count": counts[JobState.ACTIVE],
            "completed_count": counts[JobState.COMPLETED],
            "failed_count": counts[JobState.FAILED],
            "total_monitored": sum(counts.values()),
            "success_rate": round(counts[JobState.COMPLETED] / finished * 100, 2) if finished else 0.0,
        }

    def clear(self, state: JobState | None = None) -> int:
        """Drop finished job records; both completed and failed when ``state`` is None."""
        if state is JobState.ACTIVE:
            raise ValueError("Active jobs cannot be cleared")
        states = [state] if state is not None else [JobState.COMPLETED, JobState.FAILED]

        deleted = 0
        for current in states:
            job_ids = self._redis.smembers(self.state_key(current))
            for job_id in job_ids:
                self._redis.delete(self.job_key(job_id))
                deleted += 1
            self._redis.delete(self.state_key(current))

        self._logger.info("Queue monitor cleared: states=%s deleted=%s", [s.value for s in states], deleted)
        return deleted

    def _live_ids(self, state: JobState) -> list[str]:
        set_key = self.state_key(state)
        live = []
        for job_id in self._redis.smembers(set_key):
            if self._redis.exists(self.job_key(job_id)):
                live.append(job_id)
            else:
                self._redis.srem(set_key, job_id)
        return live

    @staticmethod
    def _format(job_id: str, details: dict[str, str]) -> dict[str, Any]:
        job: dict[str, Any] = {
            "job_id": job_id,
            "job": details.get("job", "unknown"),
            "queue": details.get("queue", "default"),
            "status": details.get("status", "unknown"),
            "attempts": int(details.get("attempts", 0)),
            "started_at": details.get("started_at"),
            "finished_at": details.get("finished_at"),
            "kwargs": json.loads(details["kwargs"]) if details.get("kwargs") else {},
        }
        if "error_message" in details:
            job["error"] = {"message": details["error_message"], "trace": details.get("error_trace")}
            job["failed_at"] = details.get("failed_at")
        if job["started_at"] and job["finished_at"]:
            started = datetime.fromisoformat(job["started_at"])
            finished = datetime.fromisoformat(job["finished_at"])
            job["duration_seconds"] = int((finished - started).total_seconds())
        return job


# Celery signal wiring ---------------------------------------------------------

_monitor: QueueMonitor | None = None
logger = logging.getLogger(__name__)


def get_monitor() -> QueueMonitor:
    global _monitor
    if _monitor is None:
        _monitor = QueueMonitor.from_url()
    return _monitor


def _delivery_queue(task: Any) -> str | None:
    info = getattr(task.request, "delivery_info", None) or {}
    return info.get("routing_key")


def _on_prerun(sender=None, task_id=None, task=None, kwargs=None, **_extra) -> None:
    try:
        get_monitor().record_started(task_id, task.name, _delivery_queue(task), task.request.retries + 1, kwargs)
    except redis.RedisError:
        logger.warning("Queue monitor unavailable: task_id=%s event=prerun", task_id, exc_info=True)


def _on_success(sender=None, **_extra) -> None:
    task_id = sender.request.id
    try:
        get_monitor().record_succeeded(task_id)
    except redis.RedisError:
        logger.warning("Queue monitor unavailable: task_id=%s event=success", task_id, exc_info=True)


def _on_failure(sender=None, task_id=None, exception=None, einfo=None, **_extra) -> None:
    try:
        get_monitor().record_failed(task_id, str(exception), str(einfo) if einfo else None)
    except redis.RedisError:
        logger.warning("Queue monitor unavailable: task_id=%s event=failure", task_id, exc_info=True)


def _on_retry(sender=None, request=None, reason=None, **_extra) -> None:
    task_id = request.id
    try:
        get_monitor().record_retry(task_id, str(reason))
    except redis.RedisError:
        logger.warning("Queue monitor unavailable: task_id=%s event=retry", task_id, exc_info=True)


def connect_signals() -> None:
    signals.task_prerun.connect(_on_prerun, weak=False)
    signals.task_success.connect(_on_success, weak=False)
    signals.task_failure.connect(_on_failure, weak=False)
    signals.task_retry.connect(_on_retry, weak=False)
