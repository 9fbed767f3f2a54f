"""Tests for the webhook config API endpoints."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import FakeJobQueue, create_user
from subtrack.services.webhook_config_service import create_webhook_config

pytestmark = pytest.mark.asyncio

HOOK_URL = "https://hooks.example.com/subtrack"


class TestWebhookConfigCrud:
    """Test webhook config CRUD endpoints."""

    async def test_create_hides_secret(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/webhook-configs", json={"url": HOOK_URL, "secret": "s3cret"}, headers=auth_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["url"] == HOOK_URL
        assert data["is_active"] is True
        assert data["has_secret"] is True
        assert "secret" not in data

    async def test_create_rejects_non_http_url(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/webhook-configs", json={"url": "ftp://files.example.com"}, headers=auth_headers
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_WEBHOOK_URL"

    async def test_list_only_own(self, client: AsyncClient, auth_headers: dict, test_user, db_session: AsyncSession):
        await create_webhook_config(db_session, test_user.id, HOOK_URL)
        other = await create_user(db_session)
        await create_webhook_config(db_session, other.id, "https://other.example.com")

        response = await client.get("/api/v1/webhook-configs", headers=auth_headers)

        assert response.status_code == 200
        assert [item["url"] for item in response.json()] == [HOOK_URL]

    async def test_patch_clears_secret(self, client: AsyncClient, auth_headers: dict, test_user, db_session):
        config = await create_webhook_config(db_session, test_user.id, HOOK_URL, "s3cret")

        response = await client.patch(
            f"/api/v1/webhook-configs/{config.id}", json={"secret": ""}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["has_secret"] is False
        assert response.json()["updated_at"] == "2026-03-15T12:00:00"

    async def test_activate_and_deactivate(self, client: AsyncClient, auth_headers: dict, test_user, db_session):
        config = await create_webhook_config(db_session, test_user.id, HOOK_URL)
        base = f"/api/v1/webhook-configs/{config.id}"

        assert (await client.post(f"{base}/deactivate", headers=auth_headers)).json()["is_active"] is False
        assert (await client.post(f"{base}/activate", headers=auth_headers)).json()["is_active"] is True

    async def test_delete(self, client: AsyncClient, auth_headers: dict, test_user, db_session):
        config = await create_webhook_config(db_session, test_user.id, HOOK_URL)

        response = await client.delete(f"/api/v1/webhook-configs/{config.id}", headers=auth_headers)
        assert response.json() == {"message": "Webhook config deleted"}

        response = await client.get(f"/api/v1/webhook-configs/{config.id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "WEBHOOK_CONFIG_NOT_FOUND"


class TestWebhookTestEndpoint:
    """Test queuing a test webhook."""

    async def test_queues_ping_job(
        self, client: AsyncClient, auth_headers: dict, test_user, db_session, job_queue: FakeJobQueue
    ):
        config = await create_webhook_config(db_session, test_user.id, HOOK_URL)

        response = await client.post(f"/api/v1/webhook-configs/{config.id}/test", headers=auth_headers)

        assert response.status_code == 202
        data = response.json()
        assert data["message"] == "Webhook test queued"
        assert data["webhook_config_id"] == str(config.id)
        assert data["job_id"] == "job-1"
        assert data["queue"] == "webhooks"
        assert job_queue.jobs == [
            {
                "id": "job-1",
                "name": "webhooks.ping",
                "payload": {"webhook_config_id": str(config.id)},
                "queue": "webhooks",
            }
        ]

    async def test_unknown_config_queues_nothing(
        self, client: AsyncClient, auth_headers: dict, job_queue: FakeJobQueue
    ):
        response = await client.post(f"/api/v1/webhook-configs/{uuid.uuid4()}/test", headers=auth_headers)

        assert response.status_code == 404
        assert job_queue.jobs == []
