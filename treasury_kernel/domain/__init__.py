"""Pure domain layer: DTOs, clock and balance validation (no I/O)."""

from treasury_kernel.domain.balance import (
    DEFAULT_TOLERANCE,
    BalanceDiscrepancyWarning,
    BalanceValidator,
)
from treasury_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from treasury_kernel.domain.dtos import (
    LedgerAggregate,
    MovementInfo,
    PeriodRef,
    PeriodSnapshot,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "BalanceDiscrepancyWarning",
    "BalanceValidator",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "LedgerAggregate",
    "MovementInfo",
    "PeriodRef",
    "PeriodSnapshot",
]
