"""Daily billing check: record, advance, and notify every subscription due today."""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subtrack.billing.advancer import SubscriptionBillingAdvancer
from subtrack.billing.recorder import BillingHistoryRecorder
from subtrack.clock import Clock, SystemClock
from subtrack.config import settings
from subtrack.exceptions import SubscriptionNotFound
from subtrack.models.billing_history import BillingHistory
from subtrack.models.subscription import Subscription
from subtrack.services.subscription_service import find_due_for_billing
from subtrack.webhooks.delivery import WebhookDeliveryJob
from subtrack.webhooks.signer import iso_timestamp
from subtrack.worker.queue import JobQueue


@dataclass
class BillingCheckSummary:
    today: str
    total: int = 0
    processed: int = 0
    failed: int = 0
    enqueued: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class BillingCheckJob:
    """Bill every active subscription whose next billing date is today.

    Each subscription is handled in its own transaction: the history row and
    the advanced date commit together or not at all, and the webhook job is
    only enqueued after that commit. A subscription that fails is logged and
    counted while the rest of the batch carries on. Once advanced, a
    subscription no longer matches the due query, so a second run on the
    same day bills nothing twice.
    """

    job_name = "billing.check"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        clock: Clock | None = None,
        recorder: BillingHistoryRecorder | None = None,
        advancer: SubscriptionBillingAdvancer | None = None,
        logger: logging.Logger | None = None,
    ):
        self._session_factory = session_factory
        self._queue = queue
        self._clock = clock or SystemClock()
        self._logger = logger or logging.getLogger(__name__)
        self._recorder = recorder or BillingHistoryRecorder(logger=self._logger)
        self._advancer = advancer or SubscriptionBillingAdvancer(clock=self._clock, logger=self._logger)

    async def run(self) -> BillingCheckSummary:
        today = self._clock.today()
        summary = BillingCheckSummary(today=today.isoformat())
        self._logger.info("Starting billing check: date=%s", summary.today)

        # A failure here propagates so the queue retries the whole job.
        async with self._session_factory() as db:
            due = await find_due_for_billing(db, today)
            subscription_ids = [subscription.id for subscription in due]

        summary.total = len(subscription_ids)
        self._logger.info("Subscriptions due for billing: date=%s count=%s", summary.today, summary.total)

        for subscription_id in subscription_ids:
            try:
                snapshot = await self._bill(subscription_id, today)
            except Exception:
                summary.failed += 1
                self._logger.exception(
                    "Failed to process subscription billing: subscription_id=%s date=%s",
                    subscription_id,
                    summary.today,
                )
                continue

            if snapshot is None:
                continue
            summary.processed += 1

            if self._enqueue_notification(snapshot):
                summary.enqueued += 1

        self._logger.info(
            "Billing check completed: date=%s total=%s processed=%s failed=%s enqueued=%s",
            summary.today,
            summary.total,
            summary.processed,
            summary.failed,
            summary.enqueued,
        )
        return summary

    async def _bill(self, subscription_id: uuid.UUID, today: date) -> dict[str, Any] | None:
        """Record and advance one subscription in a single transaction.

        Returns the webhook job payload, or None when the subscription is no
        longer due (another run got there first, or it was paused meanwhile).
        """
        now = self._clock.now()
        async with self._session_factory() as db:
            async with db.begin():
                subscription = await db.get(Subscription, subscription_id)
                if subscription is None:
                    raise SubscriptionNotFound(subscription_id)
                if not subscription.is_due_for_billing(today):
                    self._logger.info(
                        "Subscription no longer due, skipping: subscription_id=%s next_billing_date=%s",
                        subscription.id,
                        subscription.next_billing_date.isoformat(),
                    )
                    return None

                billed_date = subscription.next_billing_date
                history = await self._recorder.record(db, subscription.id, subscription.price, paid_at=now)
                advanced_date = await self._advancer.advance(db, subscription)
                payload = self._job_payload(subscription, history, billed_date, advanced_date)

        self._logger.info(
            "Subscription billed: subscription_id=%s billing_history_id=%s amount=%s next_billing_date=%s",
            payload["subscription_id"],
            payload["billing_history_id"],
            history.amount_paid,
            advanced_date.isoformat(),
        )
        return payload

    def _job_payload(
        self,
        subscription: Subscription,
        history: BillingHistory,
        billed_date: date,
        advanced_date: date,
    ) -> dict[str, Any]:
        """Snapshot taken at billing time; the delivery job never reloads it.

        ``next_billing_date`` is the date that was just billed, before the
        advance; ``advanced_billing_date`` is the one now stored.
        """
        event_data = {
            "subscription_id": str(subscription.id),
            "subscription_name": subscription.name,
            "amount": history.amount_paid,
            "currency": subscription.currency.value,
            "billing_cycle": subscription.billing_cycle.value,
            "status": subscription.status.value,
            "billing_history_id": str(history.id),
            "billing_date": iso_timestamp(history.paid_at),
            "next_billing_date": billed_date.isoformat(),
            "advanced_billing_date": advanced_date.isoformat(),
            "user_id": str(subscription.user_id),
            "occurred_at": iso_timestamp(self._clock.now()),
        }
        return {
            "subscription_id": event_data["subscription_id"],
            "user_id": event_data["user_id"],
            "billing_history_id": event_data["billing_history_id"],
            "event_data": event_data,
        }

    def _enqueue_notification(self, payload: dict[str, Any]) -> bool:
        try:
            job_id = self._queue.enqueue(WebhookDeliveryJob.job_name, payload, settings.webhook_queue)
        except Exception:
            # Billing is already committed; a lost notification is not rolled back.
            self._logger.warning(
                "Failed to enqueue webhook delivery: subscription_id=%s billing_history_id=%s",
                payload["subscription_id"],
                payload["billing_history_id"],
                exc_info=True,
            )
            return False

        self._logger.info(
            "Webhook delivery enqueued: subscription_id=%s billing_history_id=%s job_id=%s",
            payload["subscription_id"],
            payload["billing_history_id"],
            job_id,
        )
        return True
