"""Tests for the subscription service and the Subscription aggregate."""

import uuid
from datetime import date, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TODAY, create_subscription, create_user
from subtrack.enums import BillingCycle, Currency, SubscriptionStatus
from subtrack.exceptions import InvalidAmount, InvalidBillingDate, SubscriptionNotFound, ValidationError
from subtrack.services import subscription_service

NOW = datetime(2026, 3, 15, 12, 0, 0)


class TestCreateSubscription:
    """Test subscription creation rules."""

    async def test_create_success(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await subscription_service.create_subscription(
            db_session,
            user.id,
            name="Netflix",
            price=4990,
            currency="BRL",
            billing_cycle="monthly",
            next_billing_date=date(2026, 3, 20),
            category="Streaming",
            today=TODAY,
        )
        assert subscription.id is not None
        assert subscription.currency is Currency.BRL
        assert subscription.billing_cycle is BillingCycle.MONTHLY
        assert subscription.status is SubscriptionStatus.ACTIVE
        assert subscription.updated_at is None

    async def test_past_date_rejected(self, db_session: AsyncSession):
        user = await create_user(db_session)
        with pytest.raises(InvalidBillingDate):
            await create_subscription(db_session, user, next_billing_date=date(2026, 3, 14))

    async def test_today_is_allowed(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user, next_billing_date=TODAY)
        assert subscription.is_due_for_billing(TODAY)

    async def test_negative_price_rejected(self, db_session: AsyncSession):
        user = await create_user(db_session)
        with pytest.raises(InvalidAmount):
            await create_subscription(db_session, user, price=-100)


class TestGetAndList:
    """Test subscription lookups and listing."""

    async def test_get_scoped_to_owner(self, db_session: AsyncSession):
        owner = await create_user(db_session)
        other = await create_user(db_session)
        subscription = await create_subscription(db_session, owner)

        found = await subscription_service.get_subscription(db_session, subscription.id, owner.id)
        assert found.id == subscription.id

        with pytest.raises(SubscriptionNotFound):
            await subscription_service.get_subscription(db_session, subscription.id, other.id)

    async def test_get_unknown_raises(self, db_session: AsyncSession):
        with pytest.raises(SubscriptionNotFound) as exc_info:
            await subscription_service.get_subscription(db_session, uuid.uuid4())
        assert exc_info.value.status_code == 404

    async def test_list_filters_and_paginates(self, db_session: AsyncSession):
        user = await create_user(db_session)
        for i in range(3):
            await create_subscription(db_session, user, name=f"Active {i}")
        await create_subscription(db_session, user, name="Paused", status=SubscriptionStatus.PAUSED)

        items, total = await subscription_service.list_subscriptions(db_session, user.id, limit=2)
        assert total == 4
        assert len(items) == 2

        items, total = await subscription_service.list_subscriptions(
            db_session, user.id, status=SubscriptionStatus.PAUSED
        )
        assert total == 1
        assert items[0].name == "Paused"

    async def test_list_search_matches_name_or_category(self, db_session: AsyncSession):
        user = await create_user(db_session)
        await create_subscription(db_session, user, name="Netflix", category="Streaming")
        await create_subscription(db_session, user, name="Spotify", category="Music")
        await create_subscription(db_session, user, name="Gym", category="Health")

        items, total = await subscription_service.list_subscriptions(db_session, user.id, search="NET")
        assert total == 1
        assert items[0].name == "Netflix"

        items, total = await subscription_service.list_subscriptions(db_session, user.id, search="mus")
        assert [s.name for s in items] == ["Spotify"]

    async def test_list_multi_column_sort(self, db_session: AsyncSession):
        user = await create_user(db_session)
        await create_subscription(db_session, user, name="B", price=1000)
        await create_subscription(db_session, user, name="A", price=1000)
        await create_subscription(db_session, user, name="C", price=3000)

        sort = subscription_service.parse_sort("price,name", "desc,asc")
        items, _ = await subscription_service.list_subscriptions(db_session, user.id, sort=sort)

        assert [s.name for s in items] == ["C", "A", "B"]

    async def test_options_ordered_by_name(self, db_session: AsyncSession):
        user = await create_user(db_session)
        other = await create_user(db_session)
        await create_subscription(db_session, user, name="Spotify")
        await create_subscription(db_session, user, name="Apple Music", status=SubscriptionStatus.CANCELLED)
        await create_subscription(db_session, other, name="Hidden")

        options = await subscription_service.list_subscription_options(db_session, user.id)
        assert [s.name for s in options] == ["Apple Music", "Spotify"]

        options = await subscription_service.list_subscription_options(db_session, user.id, search="spot")
        assert [s.name for s in options] == ["Spotify"]

    async def test_find_due_for_billing(self, db_session: AsyncSession):
        user = await create_user(db_session)
        due = await create_subscription(db_session, user, name="Due")
        await create_subscription(db_session, user, name="Later", next_billing_date=date(2026, 4, 1))
        await create_subscription(db_session, user, name="Paused", status=SubscriptionStatus.PAUSED)

        result = await subscription_service.find_due_for_billing(db_session, TODAY)
        assert [s.id for s in result] == [due.id]


class TestParseSort:
    """Test sort parameter parsing."""

    def test_empty_means_default_order(self):
        assert subscription_service.parse_sort(None) == []
        assert subscription_service.parse_sort("") == []

    def test_pairs_columns_with_directions(self):
        assert subscription_service.parse_sort("price,name", "desc,asc") == [("price", "desc"), ("name", "asc")]

    def test_missing_direction_defaults_to_asc(self):
        assert subscription_service.parse_sort("price,name", "DESC") == [("price", "desc"), ("name", "asc")]

    def test_unknown_columns_dropped(self):
        assert subscription_service.parse_sort("user_id,name; drop table,price") == [("price", "asc")]

    def test_invalid_direction_falls_back_to_asc(self):
        assert subscription_service.parse_sort("name", "sideways") == [("name", "asc")]


class TestUpdateSubscription:
    """Test full, partial and status updates."""

    async def test_partial_update_touches_only_given_fields(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        await subscription_service.partial_update_subscription(
            db_session, subscription, {"price": 5990, "name": None}, today=TODAY, now=NOW
        )

        assert subscription.price == 5990
        assert subscription.name == "Netflix"
        assert subscription.updated_at == NOW

    async def test_partial_update_rejects_past_date(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        with pytest.raises(InvalidBillingDate):
            await subscription_service.partial_update_subscription(
                db_session, subscription, {"next_billing_date": date(2026, 1, 1)}, today=TODAY
            )

    async def test_full_update_requires_all_fields(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        with pytest.raises(ValidationError) as exc_info:
            await subscription_service.update_subscription(db_session, subscription, {"name": "X"}, today=TODAY)
        assert "price" in exc_info.value.details["missing"]

    async def test_full_update(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        await subscription_service.update_subscription(
            db_session,
            subscription,
            {
                "name": "Disney+",
                "price": 12000,
                "currency": "USD",
                "billing_cycle": "yearly",
                "next_billing_date": date(2026, 6, 1),
                "category": "Video",
            },
            today=TODAY,
            now=NOW,
        )

        assert subscription.name == "Disney+"
        assert subscription.currency is Currency.USD
        assert subscription.billing_cycle is BillingCycle.YEARLY
        assert subscription.next_billing_date == date(2026, 6, 1)

    async def test_status_changes(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        await subscription_service.change_subscription_status(db_session, subscription, SubscriptionStatus.PAUSED)
        assert subscription.status is SubscriptionStatus.PAUSED
        assert not subscription.is_due_for_billing(TODAY)

        await subscription_service.change_subscription_status(db_session, subscription, SubscriptionStatus.ACTIVE)
        assert subscription.is_active


class TestAggregateQueries:
    """Test derived subscription values."""

    async def test_normalized_monthly_price(self, db_session: AsyncSession):
        user = await create_user(db_session)
        monthly = await create_subscription(db_session, user, price=4990)
        yearly = await create_subscription(db_session, user, price=11990, billing_cycle=BillingCycle.YEARLY)

        assert monthly.normalized_monthly_price() == 4990
        # 11990 / 12 = 999.17 -> 999
        assert yearly.normalized_monthly_price() == 999

    async def test_calculate_next_billing_date_is_pure(self, db_session: AsyncSession):
        user = await create_user(db_session)
        subscription = await create_subscription(db_session, user)

        assert subscription.calculate_next_billing_date() == date(2026, 4, 15)
        assert subscription.next_billing_date == TODAY
