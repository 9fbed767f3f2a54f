"""Webhook config service — CRUD and lookups for per-user webhook endpoints."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.database import utcnow
from subtrack.exceptions import WebhookConfigNotFound
from subtrack.models.webhook_config import WebhookConfig

logger = logging.getLogger(__name__)


async def create_webhook_config(
    db: AsyncSession,
    user_id: uuid.UUID,
    url: str,
    secret: str | None = None,
    now: datetime | None = None,
) -> WebhookConfig:
    """Create an active webhook config. The URL is validated by the model."""
    config = WebhookConfig(
        id=uuid.uuid4(),
        user_id=user_id,
        url=url,
        secret=secret or None,
        is_active=True,
        created_at=now or utcnow(),
    )
    db.add(config)
    await db.flush()
    logger.info("Webhook config created: webhook_config_id=%s user_id=%s", config.id, user_id)
    return config


async def get_webhook_config(
    db: AsyncSession, webhook_config_id: uuid.UUID, user_id: uuid.UUID | None = None
) -> WebhookConfig:
    """Load a config, optionally scoped to its owner.

    Raises:
        WebhookConfigNotFound: no such config (or owned by someone else).
    """
    query = select(WebhookConfig).where(WebhookConfig.id == webhook_config_id)
    if user_id is not None:
        query = query.where(WebhookConfig.user_id == user_id)
    result = await db.execute(query)
    config = result.scalar_one_or_none()
    if config is None:
        raise WebhookConfigNotFound(webhook_config_id)
    return config


async def list_webhook_configs(db: AsyncSession, user_id: uuid.UUID) -> list[WebhookConfig]:
    result = await db.execute(
        select(WebhookConfig).where(WebhookConfig.user_id == user_id).order_by(WebhookConfig.created_at.desc())
    )
    return list(result.scalars().all())


async def get_active_webhook_config(db: AsyncSession, user_id: uuid.UUID) -> WebhookConfig | None:
    """Return the user's active config consulted for delivery.

    Several active configs may exist; the most recently created one wins.
    """
    result = await db.execute(
        select(WebhookConfig)
        .where(WebhookConfig.user_id == user_id, WebhookConfig.is_active.is_(True))
        .order_by(WebhookConfig.created_at.desc(), WebhookConfig.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def update_webhook_config(
    db: AsyncSession,
    config: WebhookConfig,
    url: str | None = None,
    secret: str | None = None,
    now: datetime | None = None,
) -> WebhookConfig:
    """Change URL and/or secret. ``None`` leaves a field untouched."""
    if url is not None:
        config.change_url(url, now)
    if secret is not None:
        config.change_secret(secret, now)
    await db.flush()
    logger.info(
        "Webhook config updated: webhook_config_id=%s url_updated=%s secret_updated=%s",
        config.id,
        url is not None,
        secret is not None,
    )
    return config


async def activate_webhook_config(
    db: AsyncSession, config: WebhookConfig, now: datetime | None = None
) -> WebhookConfig:
    config.activate(now)
    await db.flush()
    logger.info("Webhook config activated: webhook_config_id=%s", config.id)
    return config


async def deactivate_webhook_config(
    db: AsyncSession, config: WebhookConfig, now: datetime | None = None
) -> WebhookConfig:
    config.deactivate(now)
    await db.flush()
    logger.info("Webhook config deactivated: webhook_config_id=%s", config.id)
    return config


async def delete_webhook_config(db: AsyncSession, config: WebhookConfig) -> None:
    await db.delete(config)
    await db.flush()
    logger.info("Webhook config deleted: webhook_config_id=%s user_id=%s", config.id, config.user_id)
