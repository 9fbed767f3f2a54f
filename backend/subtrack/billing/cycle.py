"""Billing cycle date arithmetic."""

from datetime import date

from dateutil.relativedelta import relativedelta

from subtrack.enums import BillingCycle


def next_billing_date(current: date, cycle: BillingCycle | str) -> date:
    """Return the billing date one cycle after ``current``.

    Uses calendar months, not fixed day offsets. When the target month is
    shorter, the day is clamped to its last day (Jan 31 + 1 month = Feb 28,
    or Feb 29 in a leap year).

    Raises:
        ValueError: ``cycle`` is not a known billing cycle.
    """
    cycle = BillingCycle(cycle)
    return current + relativedelta(months=cycle.months)
