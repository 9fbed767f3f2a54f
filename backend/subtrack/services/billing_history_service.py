"""Billing history queries."""

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.models.billing_history import BillingHistory
from subtrack.models.subscription import Subscription


async def list_billing_history(db: AsyncSession, subscription_id: uuid.UUID) -> list[BillingHistory]:
    """All billing events of a subscription, newest first."""
    result = await db.execute(
        select(BillingHistory)
        .where(BillingHistory.subscription_id == subscription_id)
        .order_by(BillingHistory.paid_at.desc())
    )
    return list(result.scalars().all())


async def total_paid_in_period(db: AsyncSession, user_id: uuid.UUID, start: datetime, end: datetime) -> int:
    """Sum in cents of everything a user paid between ``start`` and ``end`` (inclusive)."""
    result = await db.execute(
        select(func.coalesce(func.sum(BillingHistory.amount_paid), 0))
        .select_from(BillingHistory)
        .join(Subscription, Subscription.id == BillingHistory.subscription_id)
        .where(
            Subscription.user_id == user_id,
            BillingHistory.paid_at >= start,
            BillingHistory.paid_at <= end,
        )
    )
    return int(result.scalar_one())
