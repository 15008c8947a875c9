"""
Module: treasury_kernel.db.types
Responsibility: Rounding and period-key helpers shared by models, domain code
    and services.  Centralizes precision so every figure is presented with
    identical rounding.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  All amounts are Decimal, stored as Numeric(38, 9)
      and presented with MONEY_DECIMAL_PLACES via round_money().
    - Period keys are always ``YYYY-MM`` (zero padded), see period_key().

Failure modes:
    - ValueError from parse_period_key() on a malformed key.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places.

    This is the only rounding function used for snapshot and aggregate
    figures.
    """
    quantize_str = "0." + "0" * decimal_places
    return Decimal(value).quantize(Decimal(quantize_str), rounding=rounding)


def period_key(year: int, month: int) -> str:
    """Format a (year, month) pair as ``YYYY-MM``."""
    return f"{year:04d}-{month:02d}"


def period_key_for(value: date) -> str:
    """Owning period key of a calendar date."""
    return period_key(value.year, value.month)


def parse_period_key(key: str) -> tuple[int, int]:
    """
    Split a ``YYYY-MM`` key into (year, month).

    Raises:
        ValueError: If the key is malformed or the month is out of range.
    """
    try:
        year_part, month_part = key.split("-")
        year, month = int(year_part), int(month_part)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Malformed period key: {key!r}") from exc
    if len(year_part) != 4 or not 1 <= month <= 12:
        raise ValueError(f"Malformed period key: {key!r}")
    return year, month
