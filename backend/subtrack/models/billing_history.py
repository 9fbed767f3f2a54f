"""BillingHistory model — one immutable row per completed renewal."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Index
from sqlalchemy.orm import Mapped, mapped_column, validates

from subtrack.database import Base, UUIDPrimaryKeyMixin, utcnow
from subtrack.exceptions import InvalidAmount


class BillingHistory(UUIDPrimaryKeyMixin, Base):
    """Append-only record of a billing event.

    ``subscription_id`` is a plain reference: history outlives the
    subscription and is never cascaded away with it.
    """

    __tablename__ = "billing_histories"

    subscription_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    amount_paid: Mapped[int] = mapped_column(BigInteger, nullable=False)  # cents
    paid_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    __table_args__ = (Index("ix_billing_histories_subscription_paid_at", "subscription_id", "paid_at"),)

    @validates("amount_paid")
    def _validate_amount(self, _key: str, value: int) -> int:
        if value is None or value < 0:
            raise InvalidAmount("Amount paid cannot be negative", {"amount_paid": value})
        return value

    def __repr__(self) -> str:
        return (
            f"<BillingHistory(id={self.id}, subscription_id={self.subscription_id}, "
            f"amount_paid={self.amount_paid}, paid_at={self.paid_at})>"
        )
