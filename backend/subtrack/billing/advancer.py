"""Move a subscription's next billing date forward by one cycle."""

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from subtrack.clock import Clock, SystemClock
from subtrack.exceptions import SubscriptionNotFound
from subtrack.models.subscription import Subscription


class SubscriptionBillingAdvancer:
    def __init__(self, clock: Clock | None = None, logger: logging.Logger | None = None):
        self._clock = clock or SystemClock()
        self._logger = logger or logging.getLogger(__name__)

    async def advance(self, db: AsyncSession, subscription: Subscription) -> date:
        """Advance ``subscription`` one billing cycle and flush it.

        Returns the new next billing date.

        Raises:
            SubscriptionNotFound: the row was deleted before the update landed.
        """
        previous = subscription.next_billing_date
        new_date = subscription.calculate_next_billing_date()
        subscription.change_next_billing_date(new_date, self._clock.today(), now=self._clock.now())

        try:
            await db.flush()
        except StaleDataError as e:
            raise SubscriptionNotFound(subscription.id) from e

        self._logger.info(
            "Subscription next billing date updated: subscription_id=%s old_billing_date=%s new_billing_date=%s",
            subscription.id,
            previous.isoformat(),
            new_date.isoformat(),
        )
        return new_date
