"""Clock abstraction so "today" can be pinned in jobs and tests."""

from datetime import date, datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

from subtrack.config import settings


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant as a naive UTC datetime."""
        ...

    def today(self) -> date:
        """Current calendar date in the billing timezone."""
        ...


class SystemClock:
    """Wall clock; billing dates are evaluated in ``settings.timezone``."""

    def __init__(self, tz: str | None = None):
        self._tz = ZoneInfo(tz or settings.timezone)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def today(self) -> date:
        return datetime.now(self._tz).date()


class FixedClock:
    """Clock pinned to a given instant (back-fill runs, tests)."""

    def __init__(self, now: datetime, today: date | None = None):
        self._now = now
        self._today = today or now.date()

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._today

    @classmethod
    def on(cls, day: date) -> "FixedClock":
        return cls(datetime(day.year, day.month, day.day, 12, 0, 0), day)
