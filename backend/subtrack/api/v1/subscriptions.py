"""Subscriptions API router.

Subscriptions are isolated per user — each user can only see and manage
their own subscriptions and billing history.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.api.deps import get_clock, get_current_user, get_db
from subtrack.clock import Clock
from subtrack.enums import Currency, SubscriptionStatus
from subtrack.models.billing_history import BillingHistory
from subtrack.models.subscription import Subscription
from subtrack.models.user import User
from subtrack.schemas.subscription import (
    BillingHistoryResponse,
    MonthlyBudgetResponse,
    SubscriptionCreate,
    SubscriptionListResponse,
    SubscriptionOptionsResponse,
    SubscriptionReplace,
    SubscriptionResponse,
    SubscriptionUpdate,
)
from subtrack.schemas.webhook_config import MessageResponse
from subtrack.services import billing_history_service, budget_service, subscription_service

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


@router.post(
    "",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a subscription",
)
async def create_subscription(
    body: SubscriptionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    """Create a subscription owned by the current user.

    Returns 422 if the next billing date is in the past.
    """
    return await subscription_service.create_subscription(
        db,
        current_user.id,
        **body.model_dump(),
        today=clock.today(),
        now=clock.now(),
    )


@router.get(
    "",
    response_model=SubscriptionListResponse,
    summary="List subscriptions",
)
async def list_subscriptions(
    status_filter: SubscriptionStatus | None = Query(None, alias="status", description="Filter by status"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    search: str | None = Query(None, description="Search by name or category (case-insensitive)"),
    sort_by: str | None = Query(None, description="Comma-separated columns, e.g. price,name"),
    sort_direction: str | None = Query(None, description="Comma-separated asc/desc, paired with sort_by"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """List the current user's subscriptions.

    Unknown ``sort_by`` columns are ignored. Without a valid sort the list is
    ordered by next billing date, then name.
    """
    items, total = await subscription_service.list_subscriptions(
        db,
        current_user.id,
        status=status_filter,
        skip=skip,
        limit=limit,
        search=search,
        sort=subscription_service.parse_sort(sort_by, sort_direction),
    )
    return {"items": items, "total": total}


@router.get(
    "/options",
    response_model=SubscriptionOptionsResponse,
    summary="Subscription options for selects",
)
async def list_subscription_options(
    search: str | None = Query(None, description="Search by name or category (case-insensitive)"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    items = await subscription_service.list_subscription_options(db, current_user.id, search=search)
    return {"items": items, "total": len(items)}


@router.get(
    "/budget",
    response_model=MonthlyBudgetResponse,
    summary="Monthly budget of active subscriptions",
)
async def get_monthly_budget(
    currency: Currency = Query(Currency.BRL, description="Only subscriptions in this currency are counted"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> dict:
    budget = await budget_service.calculate_monthly_budget(db, current_user.id, currency, clock.today())
    return budget.to_dict()


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get a subscription by ID",
)
async def get_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Subscription:
    return await subscription_service.get_subscription(db, subscription_id, current_user.id)


@router.put(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Replace a subscription",
)
async def replace_subscription(
    subscription_id: uuid.UUID,
    body: SubscriptionReplace,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    subscription = await subscription_service.get_subscription(db, subscription_id, current_user.id)
    return await subscription_service.update_subscription(
        db, subscription, body.model_dump(), today=clock.today(), now=clock.now()
    )


@router.patch(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Update a subscription",
)
async def update_subscription(
    subscription_id: uuid.UUID,
    body: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    """Partially update a subscription. Only explicitly provided fields are changed."""
    subscription = await subscription_service.get_subscription(db, subscription_id, current_user.id)
    return await subscription_service.partial_update_subscription(
        db, subscription, body.model_dump(exclude_unset=True), today=clock.today(), now=clock.now()
    )


@router.delete(
    "/{subscription_id}",
    response_model=MessageResponse,
    summary="Delete a subscription",
)
async def delete_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """Delete a subscription. Its billing history is kept."""
    subscription = await subscription_service.get_subscription(db, subscription_id, current_user.id)
    await subscription_service.delete_subscription(db, subscription)
    return {"message": "Subscription deleted"}


async def _change_status(
    db: AsyncSession, user: User, subscription_id: uuid.UUID, new_status: SubscriptionStatus, clock: Clock
) -> Subscription:
    subscription = await subscription_service.get_subscription(db, subscription_id, user.id)
    return await subscription_service.change_subscription_status(db, subscription, new_status, now=clock.now())


@router.post("/{subscription_id}/pause", response_model=SubscriptionResponse, summary="Pause a subscription")
async def pause_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    return await _change_status(db, current_user, subscription_id, SubscriptionStatus.PAUSED, clock)


@router.post("/{subscription_id}/activate", response_model=SubscriptionResponse, summary="Activate a subscription")
async def activate_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    return await _change_status(db, current_user, subscription_id, SubscriptionStatus.ACTIVE, clock)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse, summary="Cancel a subscription")
async def cancel_subscription(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> Subscription:
    return await _change_status(db, current_user, subscription_id, SubscriptionStatus.CANCELLED, clock)


@router.get(
    "/{subscription_id}/billing-history",
    response_model=list[BillingHistoryResponse],
    summary="Billing history of a subscription",
)
async def get_billing_history(
    subscription_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BillingHistory]:
    """Billing events for a subscription, newest first."""
    subscription = await subscription_service.get_subscription(db, subscription_id, current_user.id)
    return await billing_history_service.list_billing_history(db, subscription.id)
