"""Deliver ``subscription.renewed`` notifications to a user's webhook.

The job never raises to signal a retry. :meth:`WebhookDeliveryJob.run`
returns a :class:`DeliveryResult`, and the Celery task in
``subtrack.worker.tasks`` turns ``RETRY`` into ``Task.retry``. Exceptions
that do escape ``run`` are unexpected (database down, bad payload) and are
retried by the task under the same schedule.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subtrack.clock import Clock, SystemClock
from subtrack.config import settings
from subtrack.services.webhook_config_service import get_active_webhook_config
from subtrack.webhooks.signer import (
    RENEWAL_EVENT,
    SIGNATURE_HEADER,
    build_renewal_payload,
    encode_payload,
    sign,
    signature_header,
)


class DeliveryStatus(str, enum.Enum):
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt."""

    status: DeliveryStatus
    attempt: int
    status_code: int | None = None
    error: str | None = None
    retry_delay: int | None = None
    request_id: str | None = None

    @property
    def should_retry(self) -> bool:
        return self.status is DeliveryStatus.RETRY

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "attempt": self.attempt,
            "status_code": self.status_code,
            "error": self.error,
            "retry_delay": self.retry_delay,
            "request_id": self.request_id,
        }


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


def is_client_error(status_code: int) -> bool:
    return 400 <= status_code < 500 and status_code != 429


async def post_json(
    url: str,
    body: bytes,
    headers: dict[str, str],
    timeout: float,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """POST pre-encoded JSON bytes, reusing ``client`` when one is given."""
    if client is not None:
        return await client.post(url, content=body, headers=headers, timeout=timeout)
    async with httpx.AsyncClient(timeout=timeout) as owned:
        return await owned.post(url, content=body, headers=headers)


class WebhookDeliveryJob:
    """One renewal notification, built from the snapshot taken at billing time."""

    job_name = "webhooks.deliver"

    def __init__(
        self,
        subscription_id: str,
        user_id: str,
        billing_history_id: str,
        event_data: dict[str, Any],
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
        max_attempts: int | None = None,
        backoff: list[int] | None = None,
        client_error_max_attempts: int | None = None,
        timeout: float | None = None,
    ):
        if session_factory is None:
            from subtrack.database import async_session_factory

            session_factory = async_session_factory

        self.subscription_id = str(subscription_id)
        self.user_id = str(user_id)
        self.billing_history_id = str(billing_history_id)
        self.event_data = event_data
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._http_client = http_client
        self._logger = logger or logging.getLogger(__name__)
        self.max_attempts = max_attempts or settings.webhook_max_attempts
        self.backoff = list(backoff or settings.webhook_backoff_seconds)
        self.client_error_max_attempts = client_error_max_attempts or settings.webhook_client_error_max_attempts
        self.timeout = timeout or settings.webhook_timeout_seconds

    def retry_delay(self, attempt: int) -> int:
        """Seconds to wait after ``attempt`` failed; the last tier repeats."""
        index = min(max(attempt, 1), len(self.backoff)) - 1
        return self.backoff[index]

    async def run(self, attempt: int = 1) -> DeliveryResult:
        self._logger.info(
            "Webhook delivery started: subscription_id=%s user_id=%s billing_history_id=%s attempt=%s",
            self.subscription_id,
            self.user_id,
            self.billing_history_id,
            attempt,
        )

        async with self._session_factory() as db:
            config = await get_active_webhook_config(db, uuid.UUID(self.user_id))

        if config is None:
            self._logger.info(
                "No active webhook config, skipping delivery: subscription_id=%s user_id=%s",
                self.subscription_id,
                self.user_id,
            )
            return DeliveryResult(DeliveryStatus.SKIPPED, attempt)

        payload = build_renewal_payload(self.event_data, attempt, self._clock.now())
        body = encode_payload(payload)
        request_id = str(uuid.uuid4())
        headers = {
            "Content-Type": "application/json",
            "X-Event-Type": RENEWAL_EVENT,
            "X-Subscription-Id": self.subscription_id,
            "X-Request-Id": request_id,
        }
        signature = sign(payload, config.secret)
        if signature is not None:
            headers[SIGNATURE_HEADER] = signature_header(signature)

        self._logger.info(
            "Sending webhook: subscription_id=%s url=%s request_id=%s has_signature=%s attempt=%s",
            self.subscription_id,
            config.url,
            request_id,
            signature is not None,
            attempt,
        )

        try:
            response = await post_json(config.url, body, headers, self.timeout, self._http_client)
        except httpx.TransportError as e:
            return self._retry_or_fail(attempt, None, f"{type(e).__name__}: {e}", request_id)

        code = response.status_code
        if is_success(code):
            self._logger.info(
                "Webhook delivered: subscription_id=%s status_code=%s request_id=%s attempt=%s",
                self.subscription_id,
                code,
                request_id,
                attempt,
            )
            return DeliveryResult(DeliveryStatus.DELIVERED, attempt, status_code=code, request_id=request_id)

        reason = f"Webhook returned HTTP {code}"
        if is_retryable_status(code):
            return self._retry_or_fail(attempt, code, reason, request_id)
        if is_client_error(code):
            if attempt >= self.client_error_max_attempts:
                return self._fail(attempt, code, reason, request_id)
            return self._retry_or_fail(attempt, code, reason, request_id)
        return self._fail(attempt, code, reason, request_id)

    def on_permanent_failure(self, attempt: int, reason: str, status_code: int | None = None) -> None:
        """Terminal handler: the notification is given up on."""
        self._logger.error(
            "Webhook delivery failed permanently: subscription_id=%s user_id=%s billing_history_id=%s "
            "attempts=%s status_code=%s error=%s",
            self.subscription_id,
            self.user_id,
            self.billing_history_id,
            attempt,
            status_code,
            reason,
        )

    def _retry_or_fail(self, attempt: int, code: int | None, reason: str, request_id: str) -> DeliveryResult:
        if attempt >= self.max_attempts:
            return self._fail(attempt, code, reason, request_id)

        delay = self.retry_delay(attempt)
        self._logger.warning(
            "Webhook delivery attempt failed, will retry: subscription_id=%s status_code=%s error=%s "
            "attempt=%s retry_in=%ss",
            self.subscription_id,
            code,
            reason,
            attempt,
            delay,
        )
        return DeliveryResult(
            DeliveryStatus.RETRY,
            attempt,
            status_code=code,
            error=reason,
            retry_delay=delay,
            request_id=request_id,
        )

    def _fail(self, attempt: int, code: int | None, reason: str, request_id: str) -> DeliveryResult:
        self.on_permanent_failure(attempt, reason, code)
        return DeliveryResult(DeliveryStatus.FAILED, attempt, status_code=code, error=reason, request_id=request_id)
