"""SQLAlchemy models for SubTrack.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from subtrack.enums import BillingCycle, Currency, SubscriptionStatus
from subtrack.models.billing_history import BillingHistory
from subtrack.models.subscription import Subscription
from subtrack.models.user import User
from subtrack.models.webhook_config import WebhookConfig

__all__ = [
    "BillingCycle",
    "BillingHistory",
    "Currency",
    "Subscription",
    "SubscriptionStatus",
    "User",
    "WebhookConfig",
]
