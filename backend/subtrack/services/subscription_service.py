"""Subscription service — CRUD operations and billing queries for subscriptions."""

import logging
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.enums import BillingCycle, Currency, SubscriptionStatus
from subtrack.exceptions import SubscriptionNotFound, ValidationError
from subtrack.models.subscription import Subscription

logger = logging.getLogger(__name__)

# Fields a full (PUT) update must provide, in the order they are applied.
UPDATABLE_FIELDS = ("name", "price", "currency", "billing_cycle", "next_billing_date", "category")


async def create_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: str,
    price: int,
    currency: Currency | str,
    billing_cycle: BillingCycle | str,
    next_billing_date: date,
    category: str,
    today: date,
    status: SubscriptionStatus | str = SubscriptionStatus.ACTIVE,
    now: datetime | None = None,
) -> Subscription:
    """Create a subscription for ``user_id``.

    Raises:
        InvalidAmount: negative price.
        InvalidBillingDate: next billing date before ``today``.
    """
    subscription = Subscription.open(
        user_id=user_id,
        name=name,
        price=price,
        currency=Currency(currency),
        billing_cycle=BillingCycle(billing_cycle),
        next_billing_date=next_billing_date,
        category=category,
        status=SubscriptionStatus(status),
        today=today,
        now=now,
    )
    db.add(subscription)
    await db.flush()
    logger.info(
        "Subscription created: subscription_id=%s user_id=%s price=%s currency=%s billing_cycle=%s",
        subscription.id,
        user_id,
        subscription.price,
        subscription.currency.value,
        subscription.billing_cycle.value,
    )
    return subscription


async def get_subscription(
    db: AsyncSession, subscription_id: uuid.UUID, user_id: uuid.UUID | None = None
) -> Subscription:
    """Load a subscription, optionally scoped to its owner.

    Raises:
        SubscriptionNotFound: no such subscription (or owned by someone else).
    """
    query = select(Subscription).where(Subscription.id == subscription_id)
    if user_id is not None:
        query = query.where(Subscription.user_id == user_id)
    result = await db.execute(query)
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise SubscriptionNotFound(subscription_id)
    return subscription


# Columns the list endpoint may sort by, keyed by query parameter value.
SORTABLE_COLUMNS = {
    "name": Subscription.name,
    "price": Subscription.price,
    "category": Subscription.category,
    "next_billing_date": Subscription.next_billing_date,
    "created_at": Subscription.created_at,
    "updated_at": Subscription.updated_at,
}
SORT_DIRECTIONS = ("asc", "desc")


def parse_sort(sort_by: str | None, sort_direction: str | None = None) -> list[tuple[str, str]]:
    """Turn comma-separated ``sort_by``/``sort_direction`` values into (column, direction) pairs.

    Directions pair with columns by position and default to ``asc``.
    Unknown columns are dropped and unknown directions fall back to ``asc``.
    An empty result means the default order applies.
    """
    if not sort_by:
        return []
    directions = [d.strip().lower() for d in sort_direction.split(",")] if sort_direction else []

    sorts = []
    for index, column in enumerate(c.strip() for c in sort_by.split(",")):
        if column not in SORTABLE_COLUMNS:
            logger.debug("Ignoring unsortable column: column=%s", column)
            continue
        direction = directions[index] if index < len(directions) else "asc"
        sorts.append((column, direction if direction in SORT_DIRECTIONS else "asc"))
    return sorts


def _search_filter(search: str):
    pattern = f"%{search}%"
    return or_(Subscription.name.ilike(pattern), Subscription.category.ilike(pattern))


async def list_subscriptions(
    db: AsyncSession,
    user_id: uuid.UUID,
    status: SubscriptionStatus | None = None,
    skip: int = 0,
    limit: int = 20,
    search: str | None = None,
    sort: list[tuple[str, str]] | None = None,
) -> tuple[list[Subscription], int]:
    """Return one page of a user's subscriptions and the total count.

    ``search`` matches name or category case-insensitively. Without ``sort``
    the page is ordered by next billing date, then name.
    """
    filters = [Subscription.user_id == user_id]
    if status is not None:
        filters.append(Subscription.status == status)
    if search:
        filters.append(_search_filter(search))

    total_result = await db.execute(select(func.count()).select_from(Subscription).where(*filters))
    total = total_result.scalar_one()

    if sort:
        order = [
            SORTABLE_COLUMNS[column].desc() if direction == "desc" else SORTABLE_COLUMNS[column].asc()
            for column, direction in sort
        ]
    else:
        order = [Subscription.next_billing_date, Subscription.name]

    result = await db.execute(
        select(Subscription).where(*filters).order_by(*order, Subscription.id).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def list_subscription_options(
    db: AsyncSession, user_id: uuid.UUID, search: str | None = None
) -> list[Subscription]:
    """All of a user's subscriptions ordered by name, for selects and autocompletes."""
    filters = [Subscription.user_id == user_id]
    if search:
        filters.append(_search_filter(search))
    result = await db.execute(select(Subscription).where(*filters).order_by(Subscription.name, Subscription.id))
    return list(result.scalars().all())


async def list_active_subscriptions(db: AsyncSession, user_id: uuid.UUID) -> list[Subscription]:
    result = await db.execute(
        select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
    )
    return list(result.scalars().all())


async def find_due_for_billing(db: AsyncSession, today: date) -> list[Subscription]:
    """Active subscriptions whose next billing date is ``today``.

    This predicate is what keeps the billing check idempotent: once a
    subscription is advanced it no longer matches.
    """
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.next_billing_date == today,
        )
        .order_by(Subscription.created_at, Subscription.id)
    )
    return list(result.scalars().all())


def _apply_changes(subscription: Subscription, changes: dict[str, Any], today: date, now: datetime | None) -> None:
    for field in UPDATABLE_FIELDS:
        if field not in changes or changes[field] is None:
            continue
        value = changes[field]
        if field == "name":
            subscription.change_name(value, now)
        elif field == "price":
            subscription.change_price(value, now)
        elif field == "currency":
            subscription.change_currency(Currency(value), now)
        elif field == "billing_cycle":
            subscription.change_billing_cycle(BillingCycle(value), now)
        elif field == "next_billing_date":
            subscription.change_next_billing_date(value, today, now)
        elif field == "category":
            subscription.change_category(value, now)

    status = changes.get("status")
    if status is not None:
        _apply_status(subscription, SubscriptionStatus(status), now)


def _apply_status(subscription: Subscription, status: SubscriptionStatus, now: datetime | None) -> None:
    if status is SubscriptionStatus.ACTIVE:
        subscription.activate(now)
    elif status is SubscriptionStatus.PAUSED:
        subscription.pause(now)
    else:
        subscription.cancel(now)


async def update_subscription(
    db: AsyncSession,
    subscription: Subscription,
    changes: dict[str, Any],
    today: date,
    now: datetime | None = None,
) -> Subscription:
    """Full update (PUT): every updatable field must be supplied."""
    missing = [field for field in UPDATABLE_FIELDS if changes.get(field) is None]
    if missing:
        raise ValidationError(
            "All fields are required for a full update",
            {"missing": missing},
        )
    _apply_changes(subscription, changes, today, now)
    await db.flush()
    logger.info("Subscription updated: subscription_id=%s", subscription.id)
    return subscription


async def partial_update_subscription(
    db: AsyncSession,
    subscription: Subscription,
    changes: dict[str, Any],
    today: date,
    now: datetime | None = None,
) -> Subscription:
    """Partial update (PATCH): only supplied, non-null fields change."""
    _apply_changes(subscription, changes, today, now)
    await db.flush()
    logger.info(
        "Subscription partially updated: subscription_id=%s fields=%s",
        subscription.id,
        sorted(k for k, v in changes.items() if v is not None),
    )
    return subscription


async def change_subscription_status(
    db: AsyncSession,
    subscription: Subscription,
    status: SubscriptionStatus,
    now: datetime | None = None,
) -> Subscription:
    _apply_status(subscription, status, now)
    await db.flush()
    logger.info("Subscription status changed: subscription_id=%s status=%s", subscription.id, status.value)
    return subscription


async def delete_subscription(db: AsyncSession, subscription: Subscription) -> None:
    """Delete a subscription. Its billing history is kept."""
    await db.delete(subscription)
    await db.flush()
    logger.info("Subscription deleted: subscription_id=%s user_id=%s", subscription.id, subscription.user_id)
