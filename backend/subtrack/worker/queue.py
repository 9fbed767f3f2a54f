"""Job queue port and its Celery implementation."""

import logging
from typing import Any, Protocol

from celery import Celery

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    def enqueue(self, job_name: str, payload: dict[str, Any], queue: str) -> str:
        """Schedule ``job_name`` with ``payload`` on ``queue`` and return the job id."""
        ...


class CeleryJobQueue:
    """Publish jobs by task name so callers never import the task modules."""

    def __init__(self, app: Celery | None = None):
        self._app = app

    @property
    def app(self) -> Celery:
        if self._app is None:
            from subtrack.worker.celery_app import celery_app

            self._app = celery_app
        return self._app

    def enqueue(self, job_name: str, payload: dict[str, Any], queue: str) -> str:
        result = self.app.send_task(job_name, kwargs=payload, queue=queue)
        logger.info("Job enqueued: job_name=%s queue=%s job_id=%s", job_name, queue, result.id)
        return result.id
