"""WebhookConfig model — where a user wants renewal notifications sent."""

import uuid
from datetime import datetime

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from subtrack.database import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from subtrack.exceptions import InvalidWebhookUrl

_http_url = TypeAdapter(AnyHttpUrl)


def validate_webhook_url(url: str | None) -> str:
    """Return ``url`` unchanged if it is a usable http(s) endpoint.

    Raises:
        InvalidWebhookUrl: empty, unparseable (bad host or port) or not http(s).
    """
    if not url or not url.strip():
        raise InvalidWebhookUrl("Webhook URL cannot be empty")

    try:
        _http_url.validate_python(url)
    except PydanticValidationError as e:
        if any(err["type"] == "url_scheme" for err in e.errors()):
            raise InvalidWebhookUrl("Webhook URL must use HTTP or HTTPS protocol", {"url": url}) from e
        raise InvalidWebhookUrl("Invalid webhook URL format", {"url": url}) from e
    return url


class WebhookConfig(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Per-user webhook endpoint with an optional HMAC shared secret."""

    __tablename__ = "webhook_configs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    @validates("url")
    def _validate_url(self, _key: str, value: str) -> str:
        return validate_webhook_url(value)

    @property
    def has_secret(self) -> bool:
        return bool(self.secret)

    def change_url(self, url: str, now: datetime | None = None) -> None:
        self.url = url
        self._touch(now)

    def change_secret(self, secret: str | None, now: datetime | None = None) -> None:
        self.secret = secret or None
        self._touch(now)

    def activate(self, now: datetime | None = None) -> None:
        self.is_active = True
        self._touch(now)

    def deactivate(self, now: datetime | None = None) -> None:
        self.is_active = False
        self._touch(now)

    def _touch(self, now: datetime | None) -> None:
        self.updated_at = now or utcnow()

    def __repr__(self) -> str:
        return f"<WebhookConfig(id={self.id}, user_id={self.user_id}, url={self.url!r}, is_active={self.is_active})>"
