"""Pydantic v2 request/response schemas for subscription endpoints."""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from subtrack.enums import BillingCycle, Currency, SubscriptionStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SubscriptionCreate(BaseModel):
    """Schema for creating a subscription. Prices are in cents."""

    name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., ge=0, description="Price in minor currency units (cents)")
    currency: Currency = Currency.BRL
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    next_billing_date: date
    category: str = Field(..., min_length=1, max_length=100)
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE


class SubscriptionReplace(BaseModel):
    """Schema for a full update (PUT). Every field is required."""

    name: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., ge=0)
    currency: Currency
    billing_cycle: BillingCycle
    next_billing_date: date
    category: str = Field(..., min_length=1, max_length=100)
    status: SubscriptionStatus | None = None


class SubscriptionUpdate(BaseModel):
    """Schema for partially updating a subscription. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    price: int | None = Field(None, ge=0)
    currency: Currency | None = None
    billing_cycle: BillingCycle | None = None
    next_billing_date: date | None = None
    category: str | None = Field(None, min_length=1, max_length=100)
    status: SubscriptionStatus | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    name: str
    price: int
    currency: Currency
    billing_cycle: BillingCycle
    next_billing_date: date
    category: str
    status: SubscriptionStatus
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SubscriptionListResponse(BaseModel):
    """Paginated list of subscriptions."""

    items: list[SubscriptionResponse]
    total: int


class SubscriptionOption(BaseModel):
    id: uuid.UUID
    name: str

    model_config = ConfigDict(from_attributes=True)


class SubscriptionOptionsResponse(BaseModel):
    """Id and name pairs for selects and autocompletes."""

    items: list[SubscriptionOption]
    total: int


class BillingHistoryResponse(BaseModel):
    id: uuid.UUID
    subscription_id: uuid.UUID
    amount_paid: int
    paid_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BudgetCategory(BaseModel):
    category: str
    amount: int
    amount_formatted: str
    percentage: float


class MonthlyBudgetResponse(BaseModel):
    """Monthly cost of the user's active subscriptions in one currency."""

    total_committed: int
    total_committed_formatted: str
    upcoming_bills: int
    upcoming_bills_formatted: str
    total_monthly: int
    total_monthly_formatted: str
    currency: Currency
    breakdown: list[BudgetCategory]
