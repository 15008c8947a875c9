"""
Movement field rules shared by manual entry and historical import.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  MovementService raises on
    the first violation; the import validators turn every violation into an
    ImportRowError value.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

INCOME = "income"
EXPENSE = "expense"
OPENING_BALANCE = "opening_balance"

KIND_VALUES = (INCOME, EXPENSE, OPENING_BALANCE)

MAX_DESCRIPTION_LENGTH = 500

OPENING_BALANCE_DESCRIPTION = "OPENING BALANCE"

# (field, reason)
Violation = tuple[str, str]


def kind_value(kind: Any) -> str | None:
    """Normalize an enum member or string to a known kind value, else None."""
    raw = getattr(kind, "value", kind)
    if not isinstance(raw, str):
        return None
    raw = raw.strip().lower()
    return raw if raw in KIND_VALUES else None


def to_amount(value: Any) -> Decimal | None:
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    return None


def movement_violations(
    movement_date: Any,
    kind: Any,
    amount: Any,
    description: Any,
) -> list[Violation]:
    """
    Check the fields of a movement.

    Rules:
        - movement_date is a calendar date.
        - kind is income, expense or opening_balance.
        - amount is a finite Decimal; strictly positive unless the kind is
          opening_balance.
        - description is non-blank (except for opening balances) and at most
          MAX_DESCRIPTION_LENGTH characters.
    """
    violations: list[Violation] = []

    if not isinstance(movement_date, date):
        violations.append(("movement_date", "a calendar date is required"))

    normalized_kind = kind_value(kind)
    if normalized_kind is None:
        violations.append(("kind", f"unknown movement kind {kind!r}"))

    parsed = to_amount(amount)
    if parsed is None:
        violations.append(("amount", f"not a decimal amount: {amount!r}"))
    elif normalized_kind in (INCOME, EXPENSE) and parsed <= 0:
        violations.append(("amount", "income and expense amounts must be positive"))

    text = description.strip() if isinstance(description, str) else ""
    if not text and normalized_kind != OPENING_BALANCE:
        violations.append(("description", "a description is required"))
    elif len(text) > MAX_DESCRIPTION_LENGTH:
        violations.append(
            ("description", f"longer than {MAX_DESCRIPTION_LENGTH} characters")
        )

    return violations
