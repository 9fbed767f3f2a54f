"""Persist completed billing events."""

import logging
import uuid
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.database import utcnow
from subtrack.exceptions import InvalidAmount
from subtrack.models.billing_history import BillingHistory


class BillingHistoryRecorder:
    """Append a :class:`BillingHistory` row for a renewal.

    The row is flushed inside the caller's transaction. Storage errors are
    not retried here; the enclosing job decides.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)

    async def record(
        self,
        db: AsyncSession,
        subscription_id: uuid.UUID,
        amount: int,
        paid_at: datetime,
    ) -> BillingHistory:
        if amount < 0:
            raise InvalidAmount(
                "Amount paid cannot be negative",
                {"subscription_id": str(subscription_id), "amount_paid": amount},
            )

        history = BillingHistory(
            id=uuid.uuid4(),
            subscription_id=subscription_id,
            amount_paid=amount,
            paid_at=paid_at,
            created_at=utcnow(),
        )
        db.add(history)
        await db.flush()

        self._logger.info(
            "Billing history created: billing_history_id=%s subscription_id=%s amount_paid=%s",
            history.id,
            subscription_id,
            amount,
        )
        return history
