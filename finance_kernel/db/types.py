"""
Module: finance_kernel.db.types
Responsibility: Annotated column aliases and the numeric / temporal helpers
    shared by every service.  Centralizes rounding so that recognition,
    deferral and cost accumulation quantize amounts identically.
Architecture position: Kernel > DB.  May be imported by models, domain,
    services, engines and modules.  Imports nothing from those layers.

Invariants enforced:
    - round_money() is the only sanctioned rounding function for monetary
      values (ROUND_HALF_UP, cents by default).
    - No floats anywhere: percentages and amounts are Decimal end to end.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import String

from finance_kernel.db.base import ExactDecimal


# 38 digits total, 9 decimal places
Money = Annotated[Decimal, ExactDecimal(38, 9)]

# Completion percentage, 0..100 with two decimals
Percentage = Annotated[Decimal, ExactDecimal(7, 2)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return Decimal(value).quantize(Decimal(quantize_str), rounding=rounding)


def round_percentage(value: Decimal) -> Decimal:
    """Quantize a percentage to two decimals."""
    return round_money(value, PERCENT_DECIMAL_PLACES)


def month_start(value: date | datetime) -> date:
    """Normalize a date (or datetime) to the first day of its month."""
    if isinstance(value, datetime):
        value = value.date()
    return date(value.year, value.month, 1)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Return ``value`` as a timezone-aware UTC datetime.

    SQLite drops tzinfo on DateTime(timezone=True) columns; values read back
    from it are naive but were written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
