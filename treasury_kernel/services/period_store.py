"""
PeriodStore -- the single authority on which months are closed.

Responsibility:
    Persists, looks up and deletes monthly closing snapshots.  Every write
    path (ClosingGuard, ClosingWorkflow, the import committer) asks this
    store, so the "is this month closed" question has exactly one answer.

Architecture position:
    Kernel > Services -- imperative shell.
    Used by ClosingGuard and ClosingWorkflow; owns the period_closes table.

Invariants enforced:
    - A snapshot row exists only while its month is closed.
    - insert() is insert-only: the (year, month) unique constraint, checked
      inside a SAVEPOINT, turns a concurrent duplicate close into
      AlreadyClosedError instead of a second snapshot.
    - Flush-only: never commits or rolls back the caller's transaction.
    - Returns frozen PeriodSnapshot DTOs, never ORM entities.

Failure modes:
    - AlreadyClosedError: insert() for a month that already has a snapshot.
    - NotClosedError: delete() for a month without a snapshot.

Audit relevance:
    The store does not audit; ClosingWorkflow records the close and reopen
    around these calls.
"""

from dataclasses import replace
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_kernel.domain.dtos import LedgerAggregate, PeriodRef, PeriodSnapshot
from treasury_kernel.exceptions import AlreadyClosedError, NotClosedError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.period_close import PeriodClose
from treasury_kernel.services.base import BaseService

logger = get_logger("services.period_store")


class PeriodStore(BaseService[PeriodClose]):
    """
    Persistence of (year, month) closing snapshots.

    Contract:
        Lookups accept a PeriodRef or a date and reflect the caller's
        transaction (including its own un-committed inserts and deletes).

    Guarantees:
        - is_closed(p) is True iff get(p) is not None.
        - Two inserts for the same month never both succeed.

    Non-goals:
        - Does NOT compute figures (LedgerAggregator) or emit audit events
          (ClosingWorkflow).
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, period: PeriodRef) -> PeriodSnapshot | None:
        row = self._get_row(period)
        return PeriodSnapshot.from_model(row) if row is not None else None

    def is_closed(self, period: PeriodRef) -> bool:
        stmt = select(PeriodClose.id).where(
            PeriodClose.year == period.year,
            PeriodClose.month == period.month,
        )
        return self.session.execute(stmt).first() is not None

    def is_date_closed(self, value: date) -> bool:
        return self.is_closed(PeriodRef.from_date(value))

    def list_closed(self, year: int | None = None) -> list[PeriodSnapshot]:
        """Closed months, most recent first."""
        stmt = select(PeriodClose).order_by(
            PeriodClose.year.desc(), PeriodClose.month.desc()
        )
        if year is not None:
            stmt = stmt.where(PeriodClose.year == year)
        return [PeriodSnapshot.from_model(row) for row in self.session.scalars(stmt)]

    def latest_closed(self) -> PeriodSnapshot | None:
        stmt = (
            select(PeriodClose)
            .order_by(PeriodClose.year.desc(), PeriodClose.month.desc())
            .limit(1)
        )
        row = self.session.scalars(stmt).first()
        return PeriodSnapshot.from_model(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(
        self,
        aggregate: LedgerAggregate,
        *,
        closed_at: datetime,
        closed_by: str,
        notes: str | None = None,
    ) -> PeriodSnapshot:
        """
        Persist the snapshot of a month.

        Raises:
            AlreadyClosedError: The month already has a snapshot, including
                one committed by a concurrent transaction after our check.
        """
        period = aggregate.period
        row = PeriodClose(
            year=period.year,
            month=period.month,
            period_key=period.key,
            opening_balance=aggregate.opening,
            total_income=aggregate.income,
            total_expense=aggregate.expense,
            closing_balance=aggregate.closing,
            closed_at=closed_at,
            closed_by=closed_by,
            notes=notes,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "concurrent_period_close_conflict",
                extra={"period_key": period.key},
            )
            raise AlreadyClosedError(period.year, period.month) from None

        return PeriodSnapshot.from_model(row)

    def delete(self, period: PeriodRef) -> PeriodSnapshot:
        """
        Remove the snapshot of a month, reopening it.

        Returns:
            The deleted snapshot with closed=False.

        Raises:
            NotClosedError: The month has no snapshot.
        """
        row = self._get_row(period, for_update=True)
        if row is None:
            raise NotClosedError(period.year, period.month)

        snapshot = PeriodSnapshot.from_model(row)
        self.session.delete(row)
        self.session.flush()
        return replace(snapshot, closed=False)

    def _get_row(self, period: PeriodRef, for_update: bool = False) -> PeriodClose | None:
        stmt = select(PeriodClose).where(
            PeriodClose.year == period.year,
            PeriodClose.month == period.month,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()
