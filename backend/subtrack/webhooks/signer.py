"""Webhook payload construction and HMAC-SHA256 signing.

The signature is computed over the exact bytes returned by
:func:`encode_payload`, and the delivery jobs send those same bytes as the
request body. Receivers must verify against the raw body, never against a
re-serialised copy of the parsed JSON.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any

from subtrack.enums import BillingCycle, Currency

RENEWAL_EVENT = "subscription.renewed"
TEST_EVENT = "webhook.test"
PAYLOAD_SOURCE = "subtrack"
PAYLOAD_VERSION = "1.0"
SIGNATURE_HEADER = "X-Hub-Signature"


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Serialise ``payload`` to canonical JSON bytes.

    Keys keep insertion order, separators are compact, and neither slashes
    nor non-ASCII characters are escaped.
    """
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def sign(payload: dict[str, Any], secret: str | None) -> str | None:
    """HMAC-SHA256 hex digest of the encoded payload, or None without a secret."""
    if not secret:
        return None
    return hmac.new(secret.encode("utf-8"), encode_payload(payload), hashlib.sha256).hexdigest()


def signature_header(signature: str) -> str:
    return f"sha256={signature}"


def iso_timestamp(moment: datetime) -> str:
    """ISO 8601 with an explicit UTC offset; naive values are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat(timespec="seconds")


def _format_amount(amount: int, currency: str) -> str:
    try:
        return Currency(currency.upper()).format(amount)
    except ValueError:
        return f"{amount / 100:.2f} {currency.upper()}"


def build_renewal_payload(event_data: dict[str, Any], attempt: int, now: datetime) -> dict[str, Any]:
    """Build the ``subscription.renewed`` body from an enqueue-time snapshot."""
    currency = event_data["currency"]
    amount = event_data["amount"]
    amount_formatted = _format_amount(amount, currency)
    billing_date = event_data["billing_date"]
    next_date = event_data["next_billing_date"]
    cycle_label = BillingCycle(event_data["billing_cycle"]).label.lower()

    content = (
        f"Subscription {event_data['subscription_name']} renewed.\n\n"
        f"Amount charged: {amount_formatted}\n"
        f"Billing date: {billing_date[:10]}\n"
        f"Billing cycle: {cycle_label}\n"
        f"Next charge: {event_data.get('advanced_billing_date') or next_date}"
    )

    return {
        "content": content,
        "event": RENEWAL_EVENT,
        "timestamp": iso_timestamp(now),
        "data": {
            "subscription": {
                "id": event_data["subscription_id"],
                "name": event_data["subscription_name"],
                "amount": amount,
                "amount_formatted": amount_formatted,
                "currency": currency,
                "billing_cycle": event_data["billing_cycle"],
                "next_billing_date": next_date,
                "status": event_data.get("status", "active"),
            },
            "billing": {
                "id": event_data["billing_history_id"],
                "date": billing_date,
                "amount": amount,
                "amount_formatted": amount_formatted,
                "currency": currency,
            },
            "user_id": event_data["user_id"],
        },
        "metadata": {
            "occurred_at": event_data["occurred_at"],
            "attempt": attempt,
            "source": PAYLOAD_SOURCE,
            "version": PAYLOAD_VERSION,
        },
    }


def build_test_payload(
    webhook_config_id: str, attempt: int, queue: str, job_id: str | None, now: datetime
) -> dict[str, Any]:
    """Build the ``webhook.test`` body used to check an endpoint."""
    return {
        "content": "This is a test webhook payload sent by SubTrack",
        "event": TEST_EVENT,
        "timestamp": iso_timestamp(now),
        "test": True,
        "queue_info": {
            "attempt": attempt,
            "queue": queue,
            "job_id": job_id,
        },
        "data": {
            "message": "This is a test webhook dispatched via the job queue",
            "webhook_id": webhook_config_id,
        },
    }
