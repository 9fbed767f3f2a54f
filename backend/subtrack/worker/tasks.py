"""Celery tasks: thin adapters around the async jobs.

Each task runs its job under ``asyncio.run`` with a throwaway ``NullPool``
engine, then maps the job's result onto Celery's retry machinery.
"""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import date
from typing import Any, NoReturn, TypeVar

from celery import Task
from sqlalchemy.ext.asyncio import AsyncEngine

from subtrack.billing.check import BillingCheckJob
from subtrack.clock import FixedClock, SystemClock
from subtrack.config import settings
from subtrack.database import create_worker_engine, make_session_factory
from subtrack.exceptions import WebhookDeliveryError
from subtrack.webhooks.delivery import DeliveryResult, WebhookDeliveryJob
from subtrack.webhooks.ping import WebhookPingJob
from subtrack.worker.celery_app import celery_app
from subtrack.worker.queue import CeleryJobQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_job(coro: Coroutine[Any, Any, T], engine: AsyncEngine) -> T:
    """Run ``coro`` to completion and dispose ``engine`` on the same loop."""

    async def _main() -> T:
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_main())


DeliveryJob = WebhookDeliveryJob | WebhookPingJob


def resolve_delivery(task: Task, job: DeliveryJob, result: DeliveryResult) -> dict[str, Any]:
    """Turn a job result into a return value or a scheduled retry."""
    if result.should_retry:
        raise task.retry(
            exc=WebhookDeliveryError(result.error or "Webhook delivery failed", result.status_code),
            countdown=result.retry_delay,
            max_retries=job.max_attempts - 1,
        )
    return result.to_dict()


def retry_unexpected(task: Task, job: DeliveryJob, attempt: int, exc: Exception) -> NoReturn:
    """Retry an exception that escaped the job; give up once the budget is spent."""
    if attempt >= job.max_attempts:
        job.on_permanent_failure(attempt, f"{type(exc).__name__}: {exc}")
        raise exc
    countdown = job.retry_delay(attempt)
    logger.warning(
        "Unexpected error in %s, will retry: attempt=%s retry_in=%ss error=%s",
        job.job_name,
        attempt,
        countdown,
        exc,
    )
    raise task.retry(exc=exc, countdown=countdown, max_retries=job.max_attempts - 1)


@celery_app.task(
    bind=True,
    name=BillingCheckJob.job_name,
    max_retries=settings.billing_check_max_attempts - 1,
    default_retry_delay=settings.billing_check_retry_delay_seconds,
    time_limit=settings.billing_check_timeout_seconds,
)
def check_billing(self: Task, day: str | None = None) -> dict[str, Any]:
    """Bill everything due today (or on ``day``, an ISO date, for back-fills)."""
    clock = FixedClock.on(date.fromisoformat(day)) if day else SystemClock()
    engine = create_worker_engine()
    job = BillingCheckJob(make_session_factory(engine), CeleryJobQueue(celery_app), clock=clock)
    try:
        summary = run_job(job.run(), engine)
    except Exception as e:
        logger.exception("Billing check failed: attempt=%s", self.request.retries + 1)
        raise self.retry(exc=e)
    return summary.to_dict()


@celery_app.task(
    bind=True,
    name=WebhookDeliveryJob.job_name,
    max_retries=settings.webhook_max_attempts - 1,
    time_limit=int(settings.webhook_timeout_seconds) * 2,
)
def deliver_webhook(
    self: Task,
    subscription_id: str,
    user_id: str,
    billing_history_id: str,
    event_data: dict[str, Any],
) -> dict[str, Any]:
    attempt = self.request.retries + 1
    engine = create_worker_engine()
    job = WebhookDeliveryJob(
        subscription_id,
        user_id,
        billing_history_id,
        event_data,
        session_factory=make_session_factory(engine),
    )
    try:
        result = run_job(job.run(attempt), engine)
    except Exception as e:
        retry_unexpected(self, job, attempt, e)
    return resolve_delivery(self, job, result)


@celery_app.task(
    bind=True,
    name=WebhookPingJob.job_name,
    max_retries=settings.webhook_test_max_attempts - 1,
    time_limit=int(settings.webhook_timeout_seconds) * 2,
)
def ping_webhook(self: Task, webhook_config_id: str) -> dict[str, Any]:
    attempt = self.request.retries + 1
    engine = create_worker_engine()
    job = WebhookPingJob(
        webhook_config_id,
        job_id=self.request.id,
        session_factory=make_session_factory(engine),
    )
    try:
        result = run_job(job.run(attempt), engine)
    except Exception as e:
        retry_unexpected(self, job, attempt, e)
    return resolve_delivery(self, job, result)
