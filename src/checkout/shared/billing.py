"""Currency and billing-cycle primitives shared by carts, coupons and plans.

Amounts travel as floats (protean ``Float`` fields) but every computation
goes through ``Decimal`` so that rounding to the currency's minor unit is
exact and happens in one place.
"""

import calendar
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class Currency(Enum):
    USD = "USD"
    INR = "INR"


class BillingCycle(Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Display convention: rupees are shown as whole numbers, dollars with cents.
_MINOR_UNIT_DIGITS = {
    Currency.INR: 0,
    Currency.USD: 2,
}


def minor_unit_digits(currency: str) -> int:
    return _MINOR_UNIT_DIGITS[Currency(currency)]


def to_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def round_minor(amount, currency: str) -> float:
    """Round half-up to the currency's minor unit.

    >>> round_minor(399.2, "INR")
    399.0
    >>> round_minor(7.995, "USD")
    8.0
    """
    quantum = Decimal(1).scaleb(-minor_unit_digits(currency))
    return float(to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP))


def half_minor_unit(currency: str) -> float:
    """Half of the smallest displayable unit, the tolerance for total checks."""
    return float(Decimal("0.5").scaleb(-minor_unit_digits(currency)))


def add_billing_period(start: datetime, billing_cycle: str) -> datetime:
    """Return ``start`` advanced by one calendar month or year.

    The day is clamped to the end of the target month, so Jan 31 + 1 month
    is Feb 28 (or 29), and Feb 29 + 1 year is Feb 28.
    """
    cycle = BillingCycle(billing_cycle)
    if cycle == BillingCycle.MONTHLY:
        year = start.year + start.month // 12
        month = start.month % 12 + 1
    else:
        year = start.year + 1
        month = start.month
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def as_utc(moment: datetime | None) -> datetime | None:
    """Normalise a datetime for comparisons; naive values are taken to be UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
