"""Pydantic v2 request/response schemas for webhook config endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WebhookConfigCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=500)
    secret: str | None = Field(None, max_length=255)


class WebhookConfigUpdate(BaseModel):
    """Partial update. An empty ``secret`` removes the secret."""

    url: str | None = Field(None, min_length=1, max_length=500)
    secret: str | None = Field(None, max_length=255)


class WebhookConfigResponse(BaseModel):
    """The secret itself is never returned, only whether one is set."""

    id: uuid.UUID
    url: str
    is_active: bool
    has_secret: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class WebhookTestResponse(BaseModel):
    message: str
    webhook_config_id: uuid.UUID
    job_id: str
    queue: str


class MessageResponse(BaseModel):
    message: str
