"""
Module: treasury_kernel.selectors.ledger_aggregator
Responsibility: Computes the opening, income, expense and closing figures of
    one calendar month from movement rows.  The ledger has no stored
    balances; closing snapshots are the only persisted figures and they are
    produced from this selector.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    DTOs and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Opening balance resolution order:
        (a) an active OPENING_BALANCE movement owned by the month, verbatim;
        (b) otherwise cumulative income - expense of every active,
            non-opening movement dated strictly before the month start.
    - Income and expense cover [month start, next month start) and never
      include opening-balance movements.
    - Annulled movements are excluded everywhere.
    - closing = opening + income - expense, exact Decimal arithmetic, each
      figure quantized to two places with round_money().

Failure modes:
    - InvalidPeriodError for a month outside 1..12.

Audit relevance:
    ClosingWorkflow freezes exactly what aggregate() returns, and the import
    committer validates imported months against it.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from treasury_kernel.db.types import round_money
from treasury_kernel.domain.dtos import LedgerAggregate, PeriodRef
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.movement import Movement, MovementKind, MovementStatus
from treasury_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger_aggregator")

_ZERO = Decimal("0")


class LedgerAggregator(BaseSelector[Movement]):
    """
    Read-only aggregation of a month's movements.

    Contract:
        aggregate(year, month) is a pure function of the movement table at
        call time.  It performs no writes.

    Guarantees:
        - All figures are Decimal (never float).
        - LedgerAggregate.closing == opening + income - expense.

    Non-goals:
        - Does not consult closing snapshots; a closed month is recomputed
          from movements like any other.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def aggregate(self, year: int, month: int) -> LedgerAggregate:
        period = PeriodRef(year, month)

        explicit_opening = self._opening_entry_amount(period)
        if explicit_opening is not None:
            opening = round_money(explicit_opening)
        else:
            opening = round_money(self._net_before(period.start))

        income, expense = self._month_totals(period)
        income = round_money(income)
        expense = round_money(expense)
        closing = opening + income - expense

        logger.debug(
            "ledger_aggregated",
            extra={
                "period_key": period.key,
                "opening": opening,
                "income": income,
                "expense": expense,
                "closing": closing,
                "opening_from_entry": explicit_opening is not None,
            },
        )

        return LedgerAggregate(
            period=period,
            opening=opening,
            income=income,
            expense=expense,
            closing=closing,
            opening_from_entry=explicit_opening is not None,
        )

    def _opening_entry_amount(self, period: PeriodRef) -> Decimal | None:
        stmt = (
            select(Movement.amount)
            .where(
                Movement.period_key == period.key,
                Movement.kind == MovementKind.OPENING_BALANCE.value,
                Movement.status == MovementStatus.ACTIVE.value,
            )
            .order_by(Movement.movement_date, Movement.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _net_before(self, start: date) -> Decimal:
        signed = case(
            (Movement.kind == MovementKind.INCOME.value, Movement.amount),
            else_=-Movement.amount,
        )
        stmt = select(func.coalesce(func.sum(signed), 0)).where(
            Movement.movement_date < start,
            Movement.kind != MovementKind.OPENING_BALANCE.value,
            Movement.status == MovementStatus.ACTIVE.value,
        )
        return _to_decimal(self.session.execute(stmt).scalar_one())

    def _month_totals(self, period: PeriodRef) -> tuple[Decimal, Decimal]:
        income_sum = func.sum(
            case((Movement.kind == MovementKind.INCOME.value, Movement.amount), else_=0)
        )
        expense_sum = func.sum(
            case((Movement.kind == MovementKind.EXPENSE.value, Movement.amount), else_=0)
        )
        stmt = select(
            func.coalesce(income_sum, 0),
            func.coalesce(expense_sum, 0),
        ).where(
            Movement.movement_date >= period.start,
            Movement.movement_date < period.next_start,
            Movement.kind != MovementKind.OPENING_BALANCE.value,
            Movement.status == MovementStatus.ACTIVE.value,
        )
        income, expense = self.session.execute(stmt).one()
        return _to_decimal(income), _to_decimal(expense)


def _to_decimal(value) -> Decimal:
    # SQLite hands back floats for untyped CASE sums
    if value is None:
        return _ZERO
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)
