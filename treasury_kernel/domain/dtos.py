"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures exchanged between the treasury services and their
    callers: PeriodRef (calendar month identity), LedgerAggregate (computed
    month figures), PeriodSnapshot (frozen close) and MovementInfo (a
    movement as seen by callers).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service layer.

Invariants enforced:
    - PeriodRef.month is always within 1..12.
    - LedgerAggregate.closing == opening + income - expense, exactly.
    - Services return DTOs, never ORM entities.

Failure modes:
    - InvalidPeriodError from PeriodRef on an out-of-range month or year.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from treasury_kernel.db.types import parse_period_key, period_key
from treasury_kernel.exceptions import InvalidPeriodError

if TYPE_CHECKING:
    from treasury_kernel.models.movement import Movement as MovementModel
    from treasury_kernel.models.period_close import PeriodClose as PeriodCloseModel


@dataclass(frozen=True, order=True)
class PeriodRef:
    """
    A calendar month accounting bucket.

    Guarantees:
        - Ordering is chronological.
        - key is ``YYYY-MM``.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or not 1 <= self.year <= 9999:
            raise InvalidPeriodError(self.year, self.month)

    @classmethod
    def from_date(cls, value: date) -> PeriodRef:
        return cls(value.year, value.month)

    @classmethod
    def from_key(cls, key: str) -> PeriodRef:
        try:
            year, month = parse_period_key(key)
        except ValueError:
            raise InvalidPeriodError(0, 0) from None
        return cls(year, month)

    @property
    def key(self) -> str:
        return period_key(self.year, self.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def next_start(self) -> date:
        """First day of the following month (exclusive upper bound)."""
        if self.month == 12:
            return date(self.year + 1, 1, 1)
        return date(self.year, self.month + 1, 1)

    def contains(self, value: date) -> bool:
        return self.start <= value < self.next_start

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class LedgerAggregate:
    """
    Figures of one month computed from movement rows.

    Contract:
        opening_from_entry tells whether the opening balance came from an
        explicit opening-balance movement or from cumulative history.
    """

    period: PeriodRef
    opening: Decimal
    income: Decimal
    expense: Decimal
    closing: Decimal
    opening_from_entry: bool = False

    def to_dict(self) -> dict:
        return {
            "period": self.period.key,
            "opening": self.opening,
            "income": self.income,
            "expense": self.expense,
            "closing": self.closing,
        }


@dataclass(frozen=True)
class PeriodSnapshot:
    """
    Frozen figures of a closed month.

    Contract:
        Returned by close() (the snapshot just written) and by reopen() (the
        snapshot just discarded).

    Guarantees:
        - Immutable (frozen dataclass).
        - closing_balance == opening_balance + total_income - total_expense.
    """

    period: PeriodRef
    opening_balance: Decimal
    total_income: Decimal
    total_expense: Decimal
    closing_balance: Decimal
    closed_at: datetime
    closed_by: str
    notes: str | None = None
    closed: bool = True

    @property
    def year(self) -> int:
        return self.period.year

    @property
    def month(self) -> int:
        return self.period.month

    @classmethod
    def from_model(cls, model: PeriodCloseModel, *, closed: bool = True) -> PeriodSnapshot:
        return cls(
            period=PeriodRef(model.year, model.month),
            opening_balance=model.opening_balance,
            total_income=model.total_income,
            total_expense=model.total_expense,
            closing_balance=model.closing_balance,
            closed_at=model.closed_at,
            closed_by=model.closed_by,
            notes=model.notes,
            closed=closed,
        )


@dataclass(frozen=True)
class MovementInfo:
    """Caller-facing view of a stored movement."""

    id: UUID
    movement_date: date
    kind: str
    amount: Decimal
    description: str
    period_key: str
    content_hash: str
    provenance: str
    status: str
    source_ref: str | None = None
    annul_reason: str | None = None

    @classmethod
    def from_model(cls, model: MovementModel) -> MovementInfo:
        return cls(
            id=model.id,
            movement_date=model.movement_date,
            kind=_value(model.kind),
            amount=model.amount,
            description=model.description,
            period_key=model.period_key,
            content_hash=model.content_hash,
            provenance=_value(model.provenance),
            status=_value(model.status),
            source_ref=model.source_ref,
            annul_reason=model.annul_reason,
        )


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)
