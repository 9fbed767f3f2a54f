"""Webhook configuration API router."""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.api.deps import get_clock, get_current_user, get_db, get_job_queue
from subtrack.clock import Clock
from subtrack.models.user import User
from subtrack.models.webhook_config import WebhookConfig
from subtrack.schemas.webhook_config import (
    MessageResponse,
    WebhookConfigCreate,
    WebhookConfigResponse,
    WebhookConfigUpdate,
    WebhookTestResponse,
)
from subtrack.services import webhook_config_service
from subtrack.webhooks.ping import WebhookPingJob
from subtrack.worker.queue import JobQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhook-configs", tags=["webhooks"])


@router.post(
    "",
    response_model=WebhookConfigResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a webhook config",
)
async def create_webhook_config(
    body: WebhookConfigCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> WebhookConfig:
    """Register an endpoint for renewal notifications. Returns 422 for a non-http(s) URL."""
    return await webhook_config_service.create_webhook_config(
        db, current_user.id, body.url, body.secret, now=clock.now()
    )


@router.get("", response_model=list[WebhookConfigResponse], summary="List webhook configs")
async def list_webhook_configs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[WebhookConfig]:
    return await webhook_config_service.list_webhook_configs(db, current_user.id)


@router.get("/{webhook_config_id}", response_model=WebhookConfigResponse, summary="Get a webhook config")
async def get_webhook_config(
    webhook_config_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> WebhookConfig:
    return await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)


@router.patch("/{webhook_config_id}", response_model=WebhookConfigResponse, summary="Update a webhook config")
async def update_webhook_config(
    webhook_config_id: uuid.UUID,
    body: WebhookConfigUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> WebhookConfig:
    config = await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)
    return await webhook_config_service.update_webhook_config(
        db, config, url=body.url, secret=body.secret, now=clock.now()
    )


@router.post(
    "/{webhook_config_id}/activate", response_model=WebhookConfigResponse, summary="Activate a webhook config"
)
async def activate_webhook_config(
    webhook_config_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> WebhookConfig:
    config = await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)
    return await webhook_config_service.activate_webhook_config(db, config, now=clock.now())


@router.post(
    "/{webhook_config_id}/deactivate", response_model=WebhookConfigResponse, summary="Deactivate a webhook config"
)
async def deactivate_webhook_config(
    webhook_config_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> WebhookConfig:
    config = await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)
    return await webhook_config_service.deactivate_webhook_config(db, config, now=clock.now())


@router.delete("/{webhook_config_id}", response_model=MessageResponse, summary="Delete a webhook config")
async def delete_webhook_config(
    webhook_config_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    config = await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)
    await webhook_config_service.delete_webhook_config(db, config)
    return {"message": "Webhook config deleted"}


@router.post(
    "/{webhook_config_id}/test",
    response_model=WebhookTestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a test event to a webhook",
)
async def test_webhook_config(
    webhook_config_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    queue: JobQueue = Depends(get_job_queue),
) -> dict:
    """Queue a ``webhook.test`` delivery; the outcome is visible in the job monitor."""
    config = await webhook_config_service.get_webhook_config(db, webhook_config_id, current_user.id)
    job_queue = WebhookPingJob.queue()
    job_id = queue.enqueue(WebhookPingJob.job_name, {"webhook_config_id": str(config.id)}, job_queue)
    logger.info("Webhook test queued: webhook_config_id=%s job_id=%s", config.id, job_id)
    return {
        "message": "Webhook test queued",
        "webhook_config_id": config.id,
        "job_id": job_id,
        "queue": job_queue,
    }
