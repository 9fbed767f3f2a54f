"""Monthly budget — what a user's active subscriptions cost per month."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.enums import Currency
from subtrack.services.subscription_service import list_active_subscriptions

logger = logging.getLogger(__name__)


@dataclass
class MonthlyBudget:
    """Monthly totals in cents for one currency.

    ``total_committed`` covers subscriptions whose billing date has already
    arrived (next date on or before today); ``upcoming_bills`` the rest.
    """

    currency: Currency
    total_committed: int = 0
    upcoming_bills: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def total_monthly(self) -> int:
        return self.total_committed + self.upcoming_bills

    def to_dict(self) -> dict[str, Any]:
        total = self.total_monthly
        breakdown = [
            {
                "category": category,
                "amount": amount,
                "amount_formatted": self.currency.format(amount),
                "percentage": round(amount / total * 100, 2) if total > 0 else 0,
            }
            for category, amount in self.breakdown.items()
        ]
        breakdown.sort(key=lambda item: item["amount"], reverse=True)
        return {
            "total_committed": self.total_committed,
            "total_committed_formatted": self.currency.format(self.total_committed),
            "upcoming_bills": self.upcoming_bills,
            "upcoming_bills_formatted": self.currency.format(self.upcoming_bills),
            "total_monthly": total,
            "total_monthly_formatted": self.currency.format(total),
            "currency": self.currency.value,
            "breakdown": breakdown,
        }


async def calculate_monthly_budget(
    db: AsyncSession,
    user_id: uuid.UUID,
    currency: Currency,
    today: date,
) -> MonthlyBudget:
    """Aggregate a user's active subscriptions in ``currency`` into a monthly budget."""
    budget = MonthlyBudget(currency=currency)

    for subscription in await list_active_subscriptions(db, user_id):
        if subscription.currency is not currency:
            continue

        monthly_price = subscription.normalized_monthly_price()
        budget.breakdown[subscription.category] = budget.breakdown.get(subscription.category, 0) + monthly_price

        if subscription.next_billing_date <= today:
            budget.total_committed += monthly_price
        else:
            budget.upcoming_bills += monthly_price

    logger.info(
        "Monthly budget calculated: user_id=%s currency=%s total_committed=%s upcoming_bills=%s categories=%s",
        user_id,
        currency.value,
        budget.total_committed,
        budget.upcoming_bills,
        len(budget.breakdown),
    )
    return budget
