"""
ClosingWorkflow -- Open <-> Closed transitions of a month.

Responsibility:
    Closes a month by freezing the figures LedgerAggregator computes, and
    reopens it by discarding that snapshot after recording why.  Both
    transitions emit an audit record.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes PeriodStore, LedgerAggregator and an AuditSink.  Runs inside the
    caller's transaction (``session_scope()``); flush-only.

Invariants enforced:
    - Only two transitions exist: Open -> Closed (close) and Closed -> Open
      (reopen).  There is no partially closed state.
    - close() fails with AlreadyClosedError when a snapshot exists, including
      one inserted concurrently (unique constraint in PeriodStore.insert).
    - reopen() rejects an empty or whitespace reason with InvalidReasonError
      BEFORE reading or changing any state.
    - Re-closing after a reopen recomputes from current movements; the
      discarded snapshot is never restored.

Failure modes:
    - InvalidPeriodError: month outside 1..12.
    - AlreadyClosedError / NotClosedError: transition misuse.
    - InvalidReasonError: reopen without justification.

Audit relevance:
    PERIOD_CLOSED carries the full snapshot as new values.  PERIOD_REOPENED
    carries the snapshot being discarded as old values and the reason as new
    values.  Audit writes are best effort (AuditSink contract).
"""

from datetime import date

from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.dtos import PeriodRef, PeriodSnapshot
from treasury_kernel.exceptions import (
    AlreadyClosedError,
    InvalidReasonError,
    NotClosedError,
)
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.audit_event import AuditAction
from treasury_kernel.selectors.ledger_aggregator import LedgerAggregator
from treasury_kernel.services.auditor_service import AuditorService, AuditSink
from treasury_kernel.services.period_store import PeriodStore

logger = get_logger("services.closing_workflow")

ENTITY_TYPE = "PeriodClose"


def _snapshot_values(snapshot: PeriodSnapshot) -> dict:
    return {
        "year": snapshot.year,
        "month": snapshot.month,
        "opening_balance": snapshot.opening_balance,
        "total_income": snapshot.total_income,
        "total_expense": snapshot.total_expense,
        "closing_balance": snapshot.closing_balance,
        "closed_at": snapshot.closed_at,
        "closed_by": snapshot.closed_by,
        "notes": snapshot.notes,
        "status": "closed" if snapshot.closed else "open",
    }


class ClosingWorkflow:
    """
    Close and reopen months.

    Contract:
        close() returns the snapshot just written.  reopen() returns the
        snapshot just discarded, with closed=False.

    Guarantees:
        - Two concurrent close() calls for one month never both succeed.
        - Never commits; the caller's transaction makes the transition
          visible atomically with its audit record.

    Non-goals:
        - Does not decide who may reopen; authorization belongs to the
          caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
        period_store: PeriodStore | None = None,
        aggregator: LedgerAggregator | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor if auditor is not None else AuditorService(session, self._clock)
        self._store = period_store or PeriodStore(session)
        self._aggregator = aggregator or LedgerAggregator(session)

    def close(
        self,
        year: int,
        month: int,
        user: str,
        notes: str | None = None,
    ) -> PeriodSnapshot:
        """
        Freeze the figures of a month.

        Raises:
            InvalidPeriodError: month outside 1..12.
            AlreadyClosedError: the month is already closed.
        """
        period = PeriodRef(year, month)

        with LogContext.bind(period_key=period.key, actor=user):
            if self._store.is_closed(period):
                logger.warning("period_close_rejected", extra={"reason": "already_closed"})
                raise AlreadyClosedError(year, month)

            aggregate = self._aggregator.aggregate(year, month)
            snapshot = self._store.insert(
                aggregate,
                closed_at=self._clock.now(),
                closed_by=user,
                notes=notes,
            )

            self._auditor.log(
                ENTITY_TYPE,
                period.key,
                AuditAction.PERIOD_CLOSED,
                user,
                new_values=_snapshot_values(snapshot),
                note=notes,
            )

            logger.info(
                "period_closed",
                extra={
                    "opening_balance": snapshot.opening_balance,
                    "total_income": snapshot.total_income,
                    "total_expense": snapshot.total_expense,
                    "closing_balance": snapshot.closing_balance,
                },
            )
            return snapshot

    def reopen(
        self,
        year: int,
        month: int,
        reason: str,
        admin_user: str,
    ) -> PeriodSnapshot:
        """
        Discard the snapshot of a closed month.

        Raises:
            InvalidReasonError: reason is empty or whitespace.
            InvalidPeriodError: month outside 1..12.
            NotClosedError: the month is not closed.
        """
        if reason is None or not reason.strip():
            raise InvalidReasonError(year, month)
        period = PeriodRef(year, month)
        reason = reason.strip()

        with LogContext.bind(period_key=period.key, actor=admin_user):
            current = self._store.get(period)
            if current is None:
                logger.warning("period_reopen_rejected", extra={"reason": "not_closed"})
                raise NotClosedError(year, month)

            # Old values are captured before the row disappears.
            self._auditor.log(
                ENTITY_TYPE,
                period.key,
                AuditAction.PERIOD_REOPENED,
                admin_user,
                old_values=_snapshot_values(current),
                new_values={"status": "open", "reason": reason},
                note=reason,
            )

            discarded = self._store.delete(period)

            logger.info(
                "period_reopened",
                extra={
                    "reason": reason,
                    "discarded_closing_balance": discarded.closing_balance,
                },
            )
            return discarded

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_status(self, year: int, month: int) -> PeriodSnapshot | None:
        """Snapshot of a closed month, or None when it is open."""
        return self._store.get(PeriodRef(year, month))

    def is_closed(self, year: int, month: int) -> bool:
        return self._store.is_closed(PeriodRef(year, month))

    def is_date_closed(self, value: date) -> bool:
        return self._store.is_date_closed(value)

    def list_closed(self, year: int | None = None) -> list[PeriodSnapshot]:
        return self._store.list_closed(year)

    def latest_closed(self) -> PeriodSnapshot | None:
        return self._store.latest_closed()
