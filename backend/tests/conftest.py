"""Shared test configuration and fixtures.

Each test gets a brand-new in-memory SQLite database (aiosqlite) with all
tables created, so jobs that open their own sessions see exactly what the
test committed. Point ``TEST_DATABASE_URL`` at another async URL to run the
suite against a real server instead.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import date
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import subtrack.models  # noqa: F401  (registers every table on Base.metadata)
from subtrack.api.deps import get_clock, get_job_queue, get_queue_monitor
from subtrack.auth.tokens import create_access_token
from subtrack.clock import FixedClock
from subtrack.database import Base, get_db, make_session_factory
from subtrack.enums import BillingCycle, Currency, SubscriptionStatus
from subtrack.main import app
from subtrack.models.subscription import Subscription
from subtrack.models.user import User
from subtrack.worker.monitor import QueueMonitor

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

# Billing tests run "on" this day unless they say otherwise.
TODAY = date(2026, 3, 15)


class FakeJobQueue:
    """In-memory stand-in for the Celery queue."""

    def __init__(self, fail: bool = False):
        self.jobs: list[dict[str, Any]] = []
        self.fail = fail

    def enqueue(self, job_name: str, payload: dict[str, Any], queue: str) -> str:
        if self.fail:
            raise ConnectionError("broker unavailable")
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs.append({"id": job_id, "name": job_name, "payload": payload, "queue": queue})
        return job_id


async def create_user(db_session: AsyncSession, is_active: bool = True) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(email=f"user-{unique}@test.com", name="Test User", is_active=is_active)
    db_session.add(user)
    await db_session.flush()
    return user


async def create_subscription(
    db_session: AsyncSession,
    user: User,
    *,
    name: str = "Netflix",
    price: int = 4990,
    currency: Currency = Currency.BRL,
    billing_cycle: BillingCycle = BillingCycle.MONTHLY,
    next_billing_date: date = TODAY,
    category: str = "Streaming",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    today: date = TODAY,
) -> Subscription:
    subscription = Subscription.open(
        user_id=user.id,
        name=name,
        price=price,
        currency=currency,
        billing_cycle=billing_cycle,
        next_billing_date=next_billing_date,
        category=category,
        status=status,
        today=today,
    )
    db_session.add(subscription)
    await db_session.flush()
    return subscription


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """Fresh database per test; StaticPool keeps the in-memory SQLite alive."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock.on(TODAY)


@pytest.fixture
def job_queue() -> FakeJobQueue:
    return FakeJobQueue()


@pytest.fixture
def queue_monitor() -> MagicMock:
    return MagicMock(spec=QueueMonitor)


# ---------------------------------------------------------------------------
# API client and authenticated user
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, clock: FixedClock, job_queue: FakeJobQueue, queue_monitor: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test DB session and fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_queue_monitor] = lambda: queue_monitor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_user(db_session)


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    return {"Authorization": f"Bearer {create_access_token(str(test_user.id))}"}
