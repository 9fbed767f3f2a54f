"""Domain and application exceptions.

Every error raised on purpose by SubTrack derives from :class:`SubTrackError`
so the API layer can turn it into a JSON response with a stable ``code``.
"""

from http import HTTPStatus
from typing import Any


class SubTrackError(Exception):
    """Base exception for all application errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "SUBTRACK_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **({"details": self.details} if self.details else {})}


# --- Validation -------------------------------------------------------------


class ValidationError(SubTrackError):
    """Invalid input at construction or mutation time. Never retried."""

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class InvalidBillingDate(ValidationError):
    code = "INVALID_BILLING_DATE"


class InvalidWebhookUrl(ValidationError):
    code = "INVALID_WEBHOOK_URL"


# --- Authentication ---------------------------------------------------------


class AuthenticationError(SubTrackError):
    """Missing, malformed or expired bearer token."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "INVALID_TOKEN"


class InactiveUser(AuthenticationError):
    code = "USER_INACTIVE"

    def __init__(self):
        super().__init__("User account is inactive")


# --- Not found --------------------------------------------------------------


class NotFoundError(SubTrackError):
    status_code = HTTPStatus.NOT_FOUND
    code = "NOT_FOUND"


class SubscriptionNotFound(NotFoundError):
    code = "SUBSCRIPTION_NOT_FOUND"

    def __init__(self, subscription_id: Any):
        super().__init__(
            f"Subscription not found: {subscription_id}",
            {"subscription_id": str(subscription_id)},
        )


class WebhookConfigNotFound(NotFoundError):
    code = "WEBHOOK_CONFIG_NOT_FOUND"

    def __init__(self, webhook_config_id: Any):
        super().__init__(
            f"Webhook config not found: {webhook_config_id}",
            {"webhook_config_id": str(webhook_config_id)},
        )


# --- Delivery ---------------------------------------------------------------


class WebhookDeliveryError(SubTrackError):
    """Transient delivery failure; handed to the queue as the retry cause."""

    status_code = HTTPStatus.BAD_GATEWAY
    code = "WEBHOOK_DELIVERY_FAILED"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, {"status_code": status_code} if status_code else None)
        self.response_status = status_code
