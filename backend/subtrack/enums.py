"""Enumerations shared by the subscription models."""

import enum


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        """Number of calendar months in one cycle."""
        return 12 if self is BillingCycle.YEARLY else 1

    @property
    def label(self) -> str:
        return "Yearly" if self is BillingCycle.YEARLY else "Monthly"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


_CURRENCY_SYMBOLS = {"BRL": "R$", "USD": "$", "EUR": "€"}


class Currency(str, enum.Enum):
    """Supported ISO 4217 currencies. Amounts are always minor units (cents)."""

    BRL = "BRL"
    USD = "USD"
    EUR = "EUR"

    @property
    def symbol(self) -> str:
        return _CURRENCY_SYMBOLS[self.value]

    def format(self, amount_in_cents: int) -> str:
        """Format minor units for display, e.g. ``4990`` -> ``"R$ 49.90"``."""
        return f"{self.symbol} {amount_in_cents / 100:.2f}"
