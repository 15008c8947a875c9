"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for audit events.  Uses the
    sequence_counters table with row-level locking (``SELECT ... FOR
    UPDATE``) so concurrent writers never reuse a value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by AuditorService.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of the next
      value.  Aggregate-max-plus-one is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits; a rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic values per sequence name.
        - Does NOT call ``session.commit()``.
    """

    AUDIT_EVENT = "audit_event"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # Another transaction may create the counter at the same time;
            # the savepoint keeps the caller's work if we lose the race.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
