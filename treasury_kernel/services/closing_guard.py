"""
ClosingGuard -- pre-flight rejection of writes into closed months.

Responsibility:
    Answers "may a movement dated D be created, re-dated, annulled or
    deleted?" and raises PeriodClosedError when the owning month is closed.

Architecture position:
    Kernel > Services -- imperative shell.
    Called as the FIRST statement of MovementService.create/update/annul/
    delete and by ImportBatchCommitter for every new candidate.  There is no
    batch bypass.

Invariants enforced:
    - For every date d inside a closed month, ensure_mutable(d) raises
      PeriodClosedError regardless of the operation.
    - A date-changing update must pass for BOTH the original and the new
      date (ensure_mutable_change()).
    - Reads go through PeriodStore only; the guard keeps no cache, so a month
      closed after parsing is still caught at insert time.

Failure modes:
    - PeriodClosedError: owning month has a closing snapshot.

Audit relevance:
    Rejections are logged at WARNING with the date, the month and the
    operation so operators can see attempted back-dated writes.
"""

from datetime import date

from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.exceptions import PeriodClosedError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.services.period_store import PeriodStore

logger = get_logger("services.closing_guard")


class ClosingGuard:
    """
    Closed-month check shared by every ledger write path.

    Contract:
        ensure_mutable() returns None for open months and raises otherwise.

    Guarantees:
        - Never writes.
        - Consults the same PeriodStore that ClosingWorkflow writes, within
          the caller's transaction.
    """

    def __init__(self, period_store: PeriodStore):
        self._store = period_store

    def is_mutable(self, value: date) -> bool:
        return not self._store.is_date_closed(value)

    def ensure_mutable(self, value: date, operation: str = "write") -> None:
        """
        Raise if ``value`` falls inside a closed month.

        Raises:
            PeriodClosedError: The owning month is closed.
        """
        period = PeriodRef.from_date(value)
        if self._store.is_closed(period):
            logger.warning(
                "closed_period_mutation_rejected",
                extra={
                    "period_key": period.key,
                    "movement_date": value,
                    "operation": operation,
                },
            )
            raise PeriodClosedError(period.year, period.month, value)

    def ensure_mutable_change(
        self,
        original: date,
        new: date | None,
        operation: str = "update",
    ) -> None:
        """Guard both ends of a date change; both months must be open."""
        self.ensure_mutable(original, operation)
        if new is not None and new != original:
            self.ensure_mutable(new, operation)
