"""Tests for webhook config service and URL validation."""

import uuid
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import create_user
from subtrack.exceptions import InvalidWebhookUrl, WebhookConfigNotFound
from subtrack.models.webhook_config import validate_webhook_url
from subtrack.services import webhook_config_service as service

NOW = datetime(2026, 3, 15, 12, 0, 0)


class TestValidateWebhookUrl:
    """Test webhook URL validation."""

    @pytest.mark.parametrize(
        "url",
        ["https://hooks.example.com/x", "http://localhost:8080/hook", "https://10.0.0.5/cb?token=abc"],
    )
    def test_accepts_http_urls(self, url):
        assert validate_webhook_url(url) == url

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "   ",
            "ftp://example.com/x",
            "example.com/hook",
            "https://",
            "http://host:notaport/x",
            "https://exa mple.com/hook",
            "https://exa<mple.com/hook",
            "http://hooks.example.com:99999/x",
        ],
    )
    def test_rejects_invalid(self, url):
        with pytest.raises(InvalidWebhookUrl):
            validate_webhook_url(url)

    def test_scheme_error_message(self):
        with pytest.raises(InvalidWebhookUrl, match="HTTP or HTTPS"):
            validate_webhook_url("ftp://example.com/x")

    def test_bad_host_error_message(self):
        with pytest.raises(InvalidWebhookUrl, match="Invalid webhook URL format"):
            validate_webhook_url("https://exa mple.com/hook")


class TestWebhookConfigService:
    """Test webhook config service functions."""

    async def test_create_and_get(self, db_session: AsyncSession):
        user = await create_user(db_session)
        config = await service.create_webhook_config(db_session, user.id, "https://h.example.com/x", "k")

        assert config.is_active
        assert config.has_secret
        fetched = await service.get_webhook_config(db_session, config.id, user.id)
        assert fetched.id == config.id

    async def test_create_rejects_bad_url(self, db_session: AsyncSession):
        user = await create_user(db_session)
        with pytest.raises(InvalidWebhookUrl):
            await service.create_webhook_config(db_session, user.id, "mailto:someone@example.com")
        with pytest.raises(InvalidWebhookUrl):
            await service.create_webhook_config(db_session, user.id, "https://exa mple.com/hook", "s")

    async def test_get_other_users_config_not_found(self, db_session: AsyncSession):
        owner = await create_user(db_session)
        other = await create_user(db_session)
        config = await service.create_webhook_config(db_session, owner.id, "https://h.example.com/x")

        with pytest.raises(WebhookConfigNotFound):
            await service.get_webhook_config(db_session, config.id, other.id)
        with pytest.raises(WebhookConfigNotFound):
            await service.get_webhook_config(db_session, uuid.uuid4())

    async def test_update_url_and_clear_secret(self, db_session: AsyncSession):
        user = await create_user(db_session)
        config = await service.create_webhook_config(db_session, user.id, "https://h.example.com/x", "k")

        await service.update_webhook_config(db_session, config, url="https://h2.example.com/y", secret="", now=NOW)

        assert config.url == "https://h2.example.com/y"
        assert config.secret is None
        assert not config.has_secret
        assert config.updated_at == NOW

    async def test_update_keeps_unset_fields(self, db_session: AsyncSession):
        user = await create_user(db_session)
        config = await service.create_webhook_config(db_session, user.id, "https://h.example.com/x", "k")

        await service.update_webhook_config(db_session, config, url="https://h2.example.com/y")

        assert config.secret == "k"

    async def test_active_config_prefers_newest(self, db_session: AsyncSession):
        user = await create_user(db_session)
        older = await service.create_webhook_config(
            db_session, user.id, "https://a.example.com", now=datetime(2026, 1, 1)
        )
        newer = await service.create_webhook_config(
            db_session, user.id, "https://b.example.com", now=datetime(2026, 2, 1)
        )

        assert (await service.get_active_webhook_config(db_session, user.id)).id == newer.id

        await service.deactivate_webhook_config(db_session, newer)
        assert (await service.get_active_webhook_config(db_session, user.id)).id == older.id

        await service.deactivate_webhook_config(db_session, older)
        assert await service.get_active_webhook_config(db_session, user.id) is None

        await service.activate_webhook_config(db_session, older)
        assert (await service.get_active_webhook_config(db_session, user.id)).id == older.id

    async def test_delete(self, db_session: AsyncSession):
        user = await create_user(db_session)
        config = await service.create_webhook_config(db_session, user.id, "https://h.example.com/x")

        await service.delete_webhook_config(db_session, config)

        assert await service.list_webhook_configs(db_session, user.id) == []
