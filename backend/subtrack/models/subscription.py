"""Subscription model — a recurring charge tracked for a user."""

import uuid
from datetime import date, datetime

from sqlalchemy import BigInteger, Date, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from subtrack.billing.cycle import next_billing_date
from subtrack.database import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from subtrack.enums import BillingCycle, Currency, SubscriptionStatus
from subtrack.exceptions import InvalidAmount, InvalidBillingDate


def _enum_column(enum_cls: type, length: int = 20) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user's recurring subscription, priced in minor currency units."""

    __tablename__ = "subscriptions"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)  # cents
    currency: Mapped[Currency] = mapped_column(_enum_column(Currency, 3), nullable=False, default=Currency.BRL)
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        _enum_column(BillingCycle), nullable=False, default=BillingCycle.MONTHLY
    )
    next_billing_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[SubscriptionStatus] = mapped_column(
        _enum_column(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
        Index("ix_subscriptions_status_next_billing", "status", "next_billing_date"),
    )

    @classmethod
    def open(
        cls,
        *,
        user_id: uuid.UUID,
        name: str,
        price: int,
        currency: Currency,
        billing_cycle: BillingCycle,
        next_billing_date: date,
        category: str,
        today: date,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        now: datetime | None = None,
    ) -> "Subscription":
        """Build a new subscription, enforcing the creation-time invariants."""
        _ensure_not_past(next_billing_date, today)
        return cls(
            id=uuid.uuid4(),
            user_id=user_id,
            name=name,
            price=price,
            currency=currency,
            billing_cycle=billing_cycle,
            next_billing_date=next_billing_date,
            category=category,
            status=status,
            created_at=now or utcnow(),
        )

    @validates("price")
    def _validate_price(self, _key: str, value: int) -> int:
        if value is None or value < 0:
            raise InvalidAmount("Price cannot be negative", {"price": value})
        return value

    # Commands ---------------------------------------------------------------

    def change_name(self, name: str, now: datetime | None = None) -> None:
        self.name = name
        self._touch(now)

    def change_price(self, price: int, now: datetime | None = None) -> None:
        self.price = price
        self._touch(now)

    def change_currency(self, currency: Currency, now: datetime | None = None) -> None:
        self.currency = currency
        self._touch(now)

    def change_billing_cycle(self, cycle: BillingCycle, now: datetime | None = None) -> None:
        self.billing_cycle = cycle
        self._touch(now)

    def change_category(self, category: str, now: datetime | None = None) -> None:
        self.category = category
        self._touch(now)

    def change_next_billing_date(self, new_date: date, today: date, now: datetime | None = None) -> None:
        _ensure_not_past(new_date, today)
        self.next_billing_date = new_date
        self._touch(now)

    def activate(self, now: datetime | None = None) -> None:
        self.status = SubscriptionStatus.ACTIVE
        self._touch(now)

    def pause(self, now: datetime | None = None) -> None:
        self.status = SubscriptionStatus.PAUSED
        self._touch(now)

    def cancel(self, now: datetime | None = None) -> None:
        self.status = SubscriptionStatus.CANCELLED
        self._touch(now)

    # Queries ----------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status is SubscriptionStatus.ACTIVE

    def is_due_for_billing(self, today: date) -> bool:
        return self.is_active and self.next_billing_date == today

    def calculate_next_billing_date(self) -> date:
        return next_billing_date(self.next_billing_date, self.billing_cycle)

    def normalized_monthly_price(self) -> int:
        """Price per month in cents; yearly prices are spread over 12 months."""
        if self.billing_cycle is BillingCycle.MONTHLY:
            return self.price
        # round half up, integer cents
        return (self.price * 2 + 12) // 24

    def _touch(self, now: datetime | None) -> None:
        self.updated_at = now or utcnow()

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, name={self.name!r}, status={self.status}, "
            f"next_billing_date={self.next_billing_date})>"
        )


def _ensure_not_past(new_date: date, today: date) -> None:
    if new_date < today:
        raise InvalidBillingDate(
            "Next billing date must be today or in the future",
            {"next_billing_date": new_date.isoformat(), "today": today.isoformat()},
        )
