"""
treasury_ingestion.domain.types -- Pure frozen dataclasses for the historical import.

ZERO I/O. Imports only from treasury_kernel/domain/ and treasury_kernel/exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from treasury_kernel.domain.balance import BalanceDiscrepancyWarning
from treasury_kernel.domain.dtos import LedgerAggregate, PeriodRef
from treasury_kernel.exceptions import ImportRowError, TransactionFailure


# =============================================================================
# Status enums
# =============================================================================


class PeriodImportStatus(str, Enum):
    """Outcome of one period inside an import call."""

    COMMITTED = "committed"  # Transaction committed (possibly with zero inserts)
    DRY_RUN = "dry_run"  # Counts only, nothing written
    FAILED = "failed"  # Period transaction rolled back
    CANCELLED = "cancelled"  # Not attempted; cancellation requested earlier


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class MovementCandidate:
    """One parsed movement awaiting deduplication and insertion."""

    movement_date: date
    kind: str  # "income" | "expense" | "opening_balance"
    amount: Decimal
    description: str  # The sheet "concept" column
    period_key: str  # YYYY-MM of the owning period
    source_ref: str | None = None  # e.g. "CORTE SEPTIEMBRE!12"


@dataclass(frozen=True)
class PeriodBatch:
    """All candidates of one period, with what the source claims as closing."""

    period: PeriodRef
    candidates: tuple[MovementCandidate, ...] = ()
    expected_closing: Decimal | None = None
    row_errors: tuple[ImportRowError, ...] = ()  # Parse-time rejections
    source_name: str | None = None


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class PeriodImportResult:
    """
    What happened to one period.

    read counts every candidate handed in (valid or not).  new + duplicate
    covers the valid ones.  inserted <= new; the gap is rejected_closed on a
    committed period, or everything on a failed one.
    """

    period: PeriodRef
    status: PeriodImportStatus
    read: int = 0
    new: int = 0
    duplicate: int = 0
    inserted: int = 0
    rejected_closed: int = 0
    row_errors: tuple[ImportRowError, ...] = ()
    failure: TransactionFailure | None = None
    balance_warning: BalanceDiscrepancyWarning | None = None
    aggregate: LedgerAggregate | None = None

    @property
    def ok(self) -> bool:
        return self.status in (PeriodImportStatus.COMMITTED, PeriodImportStatus.DRY_RUN)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.key,
            "status": self.status.value,
            "read": self.read,
            "new": self.new,
            "duplicate": self.duplicate,
            "inserted": self.inserted,
            "rejected_closed": self.rejected_closed,
            "row_errors": [e.to_dict() for e in self.row_errors],
            "failure": self.failure.to_dict() if self.failure else None,
            "balance_warning": (
                self.balance_warning.to_dict() if self.balance_warning else None
            ),
            "aggregate": self.aggregate.to_dict() if self.aggregate else None,
        }


@dataclass(frozen=True)
class ImportReport:
    """Per-period results of one import call, in chronological order."""

    periods: tuple[PeriodImportResult, ...] = ()
    dry_run: bool = False
    cancelled: bool = False
    source_hash: str | None = None
    totals: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.totals:
            keys = ("read", "new", "duplicate", "inserted", "rejected_closed")
            totals = {k: sum(getattr(p, k) for p in self.periods) for k in keys}
            totals["row_errors"] = sum(len(p.row_errors) for p in self.periods)
            totals["failed_periods"] = sum(
                1 for p in self.periods if p.status == PeriodImportStatus.FAILED
            )
            object.__setattr__(self, "totals", totals)

    def get(self, period: PeriodRef | str) -> PeriodImportResult | None:
        key = period.key if isinstance(period, PeriodRef) else period
        for result in self.periods:
            if result.period.key == key:
                return result
        return None

    @property
    def balance_warnings(self) -> tuple[PeriodImportResult, ...]:
        return tuple(p for p in self.periods if p.balance_warning is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "source_hash": self.source_hash,
            "totals": dict(self.totals),
            "periods": [p.to_dict() for p in self.periods],
        }
