"""Send a ``webhook.test`` event so users can check an endpoint."""

import logging
import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subtrack.clock import Clock, SystemClock
from subtrack.config import settings
from subtrack.exceptions import WebhookConfigNotFound
from subtrack.services.webhook_config_service import get_webhook_config
from subtrack.webhooks.delivery import DeliveryResult, DeliveryStatus, is_success, post_json
from subtrack.webhooks.signer import (
    SIGNATURE_HEADER,
    TEST_EVENT,
    build_test_payload,
    encode_payload,
    sign,
    signature_header,
)


class WebhookPingJob:
    """Test delivery to one config, active or not.

    Any non-2xx answer or transport error is retried immediately until the
    attempt budget is spent. A missing config fails at once.
    """

    job_name = "webhooks.ping"

    def __init__(
        self,
        webhook_config_id: str,
        *,
        job_id: str | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
        max_attempts: int | None = None,
        timeout: float | None = None,
    ):
        if session_factory is None:
            from subtrack.database import async_session_factory

            session_factory = async_session_factory

        self.webhook_config_id = str(webhook_config_id)
        self.job_id = job_id
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._http_client = http_client
        self._logger = logger or logging.getLogger(__name__)
        self.max_attempts = max_attempts or settings.webhook_test_max_attempts
        self.timeout = timeout or settings.webhook_timeout_seconds

    @classmethod
    def queue(cls) -> str:
        return settings.webhook_test_queue

    def retry_delay(self, attempt: int) -> int:
        return 0

    async def run(self, attempt: int = 1) -> DeliveryResult:
        self._logger.info(
            "Starting webhook test job: webhook_config_id=%s attempt=%s", self.webhook_config_id, attempt
        )

        try:
            async with self._session_factory() as db:
                config = await get_webhook_config(db, uuid.UUID(self.webhook_config_id))
        except WebhookConfigNotFound as e:
            self.on_permanent_failure(attempt, e.message)
            return DeliveryResult(DeliveryStatus.FAILED, attempt, error=e.message)

        payload = build_test_payload(self.webhook_config_id, attempt, self.queue(), self.job_id, self._clock.now())
        body = encode_payload(payload)
        headers = {
            "Content-Type": "application/json",
            "X-Event-Type": TEST_EVENT,
            "X-Webhook-Id": self.webhook_config_id,
            "X-Queue-Job": "true",
            "X-Attempt": str(attempt),
        }
        signature = sign(payload, config.secret)
        if signature is not None:
            headers[SIGNATURE_HEADER] = signature_header(signature)

        self._logger.info(
            "Sending test webhook request: webhook_config_id=%s url=%s has_signature=%s",
            self.webhook_config_id,
            config.url,
            signature is not None,
        )

        try:
            response = await post_json(config.url, body, headers, self.timeout, self._http_client)
        except httpx.TransportError as e:
            return self._retry_or_fail(attempt, None, f"{type(e).__name__}: {e}")

        if is_success(response.status_code):
            self._logger.info(
                "Webhook test completed successfully: webhook_config_id=%s status_code=%s attempt=%s",
                self.webhook_config_id,
                response.status_code,
                attempt,
            )
            return DeliveryResult(DeliveryStatus.DELIVERED, attempt, status_code=response.status_code)

        return self._retry_or_fail(
            attempt, response.status_code, f"Webhook returned HTTP {response.status_code}"
        )

    def on_permanent_failure(self, attempt: int, reason: str, status_code: int | None = None) -> None:
        self._logger.error(
            "Webhook test job failed permanently: webhook_config_id=%s attempts=%s status_code=%s error=%s",
            self.webhook_config_id,
            attempt,
            status_code,
            reason,
        )

    def _retry_or_fail(self, attempt: int, code: int | None, reason: str) -> DeliveryResult:
        if attempt >= self.max_attempts:
            self.on_permanent_failure(attempt, reason, code)
            return DeliveryResult(DeliveryStatus.FAILED, attempt, status_code=code, error=reason)

        self._logger.warning(
            "Webhook test returned non-success, will retry: webhook_config_id=%s status_code=%s error=%s attempt=%s",
            self.webhook_config_id,
            code,
            reason,
            attempt,
        )
        return DeliveryResult(
            DeliveryStatus.RETRY, attempt, status_code=code, error=reason, retry_delay=self.retry_delay(attempt)
        )
