"""Tests for BillingHistoryRecorder."""

import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.billing.recorder import BillingHistoryRecorder
from subtrack.exceptions import InvalidAmount
from subtrack.models.billing_history import BillingHistory

PAID_AT = datetime(2026, 3, 15, 12, 0, 0)


class TestRecord:
    """Test billing history recording."""

    async def test_persists_row(self, db_session: AsyncSession):
        subscription_id = uuid.uuid4()
        history = await BillingHistoryRecorder().record(db_session, subscription_id, 4990, PAID_AT)

        result = await db_session.execute(select(BillingHistory).where(BillingHistory.id == history.id))
        stored = result.scalar_one()
        assert stored.subscription_id == subscription_id
        assert stored.amount_paid == 4990
        assert stored.paid_at == PAID_AT
        assert stored.created_at is not None

    async def test_generates_distinct_ids(self, db_session: AsyncSession):
        recorder = BillingHistoryRecorder()
        subscription_id = uuid.uuid4()
        first = await recorder.record(db_session, subscription_id, 100, PAID_AT)
        second = await recorder.record(db_session, subscription_id, 100, PAID_AT)
        assert first.id != second.id

    async def test_zero_amount_allowed(self, db_session: AsyncSession):
        history = await BillingHistoryRecorder().record(db_session, uuid.uuid4(), 0, PAID_AT)
        assert history.amount_paid == 0

    async def test_negative_amount_rejected(self, db_session: AsyncSession):
        with pytest.raises(InvalidAmount):
            await BillingHistoryRecorder().record(db_session, uuid.uuid4(), -1, PAID_AT)

        result = await db_session.execute(select(BillingHistory))
        assert result.scalars().all() == []

    async def test_logs_through_injected_logger(self, db_session: AsyncSession):
        logger = MagicMock()
        await BillingHistoryRecorder(logger=logger).record(db_session, uuid.uuid4(), 4990, PAID_AT)
        logger.info.assert_called_once()
        assert "Billing history created" in logger.info.call_args.args[0]
