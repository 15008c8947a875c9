"""
ImportBatchCommitter -- idempotent, per-period commit of historical movements.

Responsibility:
    Takes movement candidates grouped by period and inserts the ones the
    ledger does not already hold.  Each period runs in its own session and
    transaction; a failure rolls back that period only.

Architecture position:
    Ingestion > Services.  Owns its transaction boundaries: a session is
    opened from the injected factory per period, committed or rolled back,
    and closed.

Invariants enforced:
    - Idempotency rests on the content hash alone: a candidate whose hash is
      already stored (or repeats within the batch) is a duplicate and is not
      inserted.  The unique index on content_hash is the backstop.
    - An opening-balance candidate is also a duplicate when its period
      already holds an active opening-balance movement.
    - ClosingGuard is consulted for every new candidate inside the period's
      transaction; a closed month yields rejected_closed, not an insert.
    - A period either commits all of its accepted inserts or none.
    - Dry run performs the lookups only and never writes.
    - import_batches() never raises for per-period failures.

Failure modes:
    - Any exception inside a period's transaction: rollback, status FAILED,
      inserted = 0, TransactionFailure recorded; the next period proceeds.
    - Cancellation requested: periods not yet started are CANCELLED; earlier
      commits stand.

Audit relevance:
    One IMPORT_PERIOD_COMMITTED audit event per committed period with the
    counts and the source reference.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Callable, Protocol
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from treasury_kernel.domain.balance import DEFAULT_TOLERANCE, BalanceValidator
from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.domain.movement_rules import OPENING_BALANCE
from treasury_kernel.exceptions import ImportRowError, PeriodClosedError, TransactionFailure
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.audit_event import AuditAction
from treasury_kernel.models.movement import Movement, MovementKind, MovementStatus, Provenance
from treasury_kernel.selectors.ledger_aggregator import LedgerAggregator
from treasury_kernel.services.auditor_service import AuditorService, AuditSink
from treasury_kernel.services.closing_guard import ClosingGuard
from treasury_kernel.services.period_store import PeriodStore
from treasury_kernel.utils.hashing import ContentHasher

from treasury_ingestion.domain.types import (
    ImportReport,
    MovementCandidate,
    PeriodBatch,
    PeriodImportResult,
    PeriodImportStatus,
)
from treasury_ingestion.domain.validators import partition_candidates

logger = get_logger("ingestion.batch_committer")

ENTITY_TYPE = "ImportPeriod"

DEFAULT_IMPORT_ACTOR = "import-system"


class Cancellation(Protocol):
    """Anything with ``is_set()``, e.g. threading.Event."""

    def is_set(self) -> bool: ...


def _as_batches(
    batches: Iterable[PeriodBatch] | Mapping[Any, Iterable[MovementCandidate]],
) -> list[PeriodBatch]:
    """Accept PeriodBatch values or a period -> candidates mapping; sort by period."""
    if isinstance(batches, Mapping):
        normalized = []
        for period, candidates in batches.items():
            ref = period if isinstance(period, PeriodRef) else PeriodRef.from_key(str(period))
            normalized.append(PeriodBatch(period=ref, candidates=tuple(candidates)))
    else:
        normalized = list(batches)
    return sorted(normalized, key=lambda b: b.period)


class ImportBatchCommitter:
    """
    Commit historical movements period by period.

    Contract:
        import_batches() returns an ImportReport with one PeriodImportResult
        per input period, oldest first.

    Guarantees:
        - Re-running with the same input inserts nothing new.
        - A failing period never affects another period's commit.

    Non-goals:
        - Does not parse files; adapters produce the batches.
        - Does not retry failed periods.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        actor: str = DEFAULT_IMPORT_ACTOR,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        auditor_factory: Callable[[Session], AuditSink] | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._actor = actor
        self._validator = BalanceValidator(tolerance)
        self._auditor_factory = auditor_factory or (
            lambda session: AuditorService(session, self._clock)
        )
        self._hasher = ContentHasher()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def import_batches(
        self,
        batches: Iterable[PeriodBatch] | Mapping[Any, Iterable[MovementCandidate]],
        *,
        dry_run: bool = False,
        cancellation: Cancellation | None = None,
        source_hash: str | None = None,
    ) -> ImportReport:
        """
        Import every period independently.

        Args:
            batches: PeriodBatch values, or a mapping of period (PeriodRef or
                ``YYYY-MM``) to candidates.
            dry_run: Report counts only; write nothing.
            cancellation: Checked between periods.
            source_hash: Fingerprint of the source file, echoed in the report
                and the audit trail.
        """
        ordered = _as_batches(batches)
        results: list[PeriodImportResult] = []
        cancelled = False

        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor=self._actor,
            producer="historical_import",
        ):
            logger.info(
                "import_started",
                extra={
                    "periods": [b.period.key for b in ordered],
                    "dry_run": dry_run,
                    "source_hash": source_hash,
                },
            )

            for batch in ordered:
                if cancelled or (cancellation is not None and cancellation.is_set()):
                    if not cancelled:
                        logger.warning(
                            "import_cancelled",
                            extra={"next_period": batch.period.key},
                        )
                    cancelled = True
                    results.append(
                        PeriodImportResult(
                            period=batch.period,
                            status=PeriodImportStatus.CANCELLED,
                            read=len(batch.candidates),
                            row_errors=batch.row_errors,
                        )
                    )
                    continue

                with LogContext.bind(period_key=batch.period.key):
                    results.append(self._import_period(batch, dry_run, source_hash))

            report = ImportReport(
                periods=tuple(results),
                dry_run=dry_run,
                cancelled=cancelled,
                source_hash=source_hash,
            )
            logger.info("import_finished", extra={"totals": report.totals})
            return report

    # -------------------------------------------------------------------------
    # One period
    # -------------------------------------------------------------------------

    def _import_period(
        self,
        batch: PeriodBatch,
        dry_run: bool,
        source_hash: str | None,
    ) -> PeriodImportResult:
        period = batch.period
        valid, validation_errors = partition_candidates(batch.candidates, period)
        row_errors = batch.row_errors + validation_errors
        for error in validation_errors:
            logger.warning("import_row_rejected", extra=error.to_dict())

        hashed = [(self._hasher.hash(c), c) for c in valid]
        read = len(batch.candidates)
        new: list[tuple[str, MovementCandidate]] = []
        duplicate = 0

        session = self._session_factory()
        try:
            new, duplicate, conflicts = self._partition(session, period, hashed)
            for error in conflicts:
                logger.warning("import_row_rejected", extra=error.to_dict())
            row_errors = row_errors + conflicts

            if dry_run:
                session.rollback()
                session.close()
                logger.info(
                    "import_period_dry_run",
                    extra={"read": read, "new": len(new), "duplicate": duplicate},
                )
                return PeriodImportResult(
                    period=period,
                    status=PeriodImportStatus.DRY_RUN,
                    read=read,
                    new=len(new),
                    duplicate=duplicate,
                    row_errors=row_errors,
                )

            inserted, rejected_closed = self._insert(session, new)
            self._auditor_factory(session).log(
                ENTITY_TYPE,
                period.key,
                AuditAction.IMPORT_PERIOD_COMMITTED,
                self._actor,
                new_values={
                    "read": read,
                    "new": len(new),
                    "duplicate": duplicate,
                    "inserted": inserted,
                    "rejected_closed": rejected_closed,
                    "row_errors": len(row_errors),
                    "source": batch.source_name,
                    "source_hash": source_hash,
                },
            )
            session.commit()
        except Exception as exc:
            session.rollback()
            failure = TransactionFailure(period.key, type(exc).__name__, str(exc))
            logger.error("import_period_failed", extra=failure.to_dict(), exc_info=True)
            session.close()
            return PeriodImportResult(
                period=period,
                status=PeriodImportStatus.FAILED,
                read=read,
                new=len(new),
                duplicate=duplicate,
                inserted=0,
                row_errors=row_errors,
                failure=failure,
            )

        aggregate = None
        warning = None
        try:
            aggregate = LedgerAggregator(session).aggregate(period.year, period.month)
            warning = self._validator.validate(aggregate.closing, batch.expected_closing)
        except Exception:
            logger.exception("balance_validation_failed")
        finally:
            session.close()

        if warning is not None:
            logger.warning("balance_discrepancy", extra=warning.to_dict())

        logger.info(
            "import_period_committed",
            extra={
                "read": read,
                "new": len(new),
                "duplicate": duplicate,
                "inserted": inserted,
                "rejected_closed": rejected_closed,
                "row_errors": len(row_errors),
                "closing": aggregate.closing if aggregate else None,
            },
        )
        return PeriodImportResult(
            period=period,
            status=PeriodImportStatus.COMMITTED,
            read=read,
            new=len(new),
            duplicate=duplicate,
            inserted=inserted,
            rejected_closed=rejected_closed,
            row_errors=row_errors,
            balance_warning=warning,
            aggregate=aggregate,
        )

    def _partition(
        self,
        session: Session,
        period: PeriodRef,
        hashed: list[tuple[str, MovementCandidate]],
    ) -> tuple[list[tuple[str, MovementCandidate]], int, tuple[ImportRowError, ...]]:
        """
        Split hashed candidates into (new, duplicate count, row errors).

        One hash lookup decides duplicates.  An opening balance that is not a
        duplicate but meets an existing opening entry for the month is a row
        error.
        """
        hashes = {h for h, _ in hashed}
        existing: set[str] = set()
        if hashes:
            existing = set(
                session.scalars(
                    select(Movement.content_hash).where(Movement.content_hash.in_(hashes))
                )
            )
        has_opening = session.execute(
            select(Movement.id)
            .where(
                Movement.period_key == period.key,
                Movement.kind == MovementKind.OPENING_BALANCE.value,
                Movement.status == MovementStatus.ACTIVE.value,
            )
            .limit(1)
        ).first() is not None

        new: list[tuple[str, MovementCandidate]] = []
        seen: set[str] = set()
        conflicts: list[ImportRowError] = []
        duplicate = 0
        for content_hash, candidate in hashed:
            is_opening = candidate.kind == OPENING_BALANCE
            if content_hash in existing or content_hash in seen:
                duplicate += 1
                continue
            if is_opening and has_opening:
                conflicts.append(
                    ImportRowError(
                        candidate.source_ref,
                        "opening_balance",
                        f"period {period.key} already has an opening balance",
                    )
                )
                continue
            seen.add(content_hash)
            if is_opening:
                has_opening = True
            new.append((content_hash, candidate))
        return new, duplicate, tuple(conflicts)

    def _insert(
        self,
        session: Session,
        new: list[tuple[str, MovementCandidate]],
    ) -> tuple[int, int]:
        guard = ClosingGuard(PeriodStore(session))
        inserted = 0
        rejected_closed = 0
        for content_hash, candidate in new:
            try:
                guard.ensure_mutable(candidate.movement_date, "import")
            except PeriodClosedError:
                rejected_closed += 1
                continue
            session.add(
                Movement(
                    movement_date=candidate.movement_date,
                    kind=candidate.kind,
                    amount=candidate.amount,
                    description=candidate.description,
                    period_key=candidate.period_key,
                    content_hash=content_hash,
                    provenance=Provenance.IMPORT.value,
                    source_ref=candidate.source_ref,
                    status=MovementStatus.ACTIVE.value,
                    created_by=self._actor,
                )
            )
            inserted += 1
        session.flush()
        return inserted, rejected_closed
