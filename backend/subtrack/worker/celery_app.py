"""Celery application, routing and beat schedule.

Start a worker and the scheduler with::

    celery -A subtrack.worker.celery_app worker -Q billing,webhook,webhooks -l info
    celery -A subtrack.worker.celery_app beat -l info
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from subtrack.config import settings
from subtrack.logging_config import configure_logging

celery_app = Celery(
    "subtrack",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["subtrack.worker.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.timezone,
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_time_limit=settings.celery_task_time_limit,
    result_expires=86400,
    task_routes={
        "billing.check": {"queue": settings.billing_queue},
        "webhooks.deliver": {"queue": settings.webhook_queue},
        "webhooks.ping": {"queue": settings.webhook_test_queue},
    },
    beat_schedule={
        "check-billing-daily": {
            "task": "billing.check",
            "schedule": crontab(hour=settings.billing_check_hour, minute=settings.billing_check_minute),
            "options": {"queue": settings.billing_queue},
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    """Use the application log format instead of Celery's own."""
    configure_logging()


if settings.queue_monitor_enabled:
    from subtrack.worker.monitor import connect_signals

    connect_signals()
