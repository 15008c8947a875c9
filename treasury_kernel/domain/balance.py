"""
BalanceValidator -- expected vs computed closing balance.

Responsibility:
    Compares the closing balance the ledger computes for a month with the
    closing balance printed in the source document, and flags the
    difference when it exceeds a rounding tolerance.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A discrepancy is a value, never an exception.  Imports and closes
      proceed regardless of the outcome.
    - delta is signed: computed - expected.

Audit relevance:
    Warnings are surfaced on every PeriodImportResult and logged, so an
    operator can review months whose source totals disagree with the ledger.
"""

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_TOLERANCE = Decimal("0.50")


@dataclass(frozen=True)
class BalanceDiscrepancyWarning:
    """
    Non-fatal mismatch between computed and expected closing balances.

    Guarantees:
        - abs(delta) > tolerance.
        - delta == computed - expected.
    """

    computed: Decimal
    expected: Decimal
    delta: Decimal
    tolerance: Decimal

    code = "BALANCE_DISCREPANCY"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "computed": self.computed,
            "expected": self.expected,
            "delta": self.delta,
            "tolerance": self.tolerance,
        }


class BalanceValidator:
    """
    Validates a computed closing balance against an expected one.

    Contract:
        validate() returns None when |computed - expected| <= tolerance,
        otherwise a BalanceDiscrepancyWarning carrying the signed delta.

    Non-goals:
        - Does not escalate repeated or large discrepancies.
    """

    def __init__(self, tolerance: Decimal = DEFAULT_TOLERANCE):
        tolerance = Decimal(tolerance)
        if tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {tolerance}")
        self.tolerance = tolerance

    def validate(
        self,
        computed: Decimal,
        expected: Decimal | None,
    ) -> BalanceDiscrepancyWarning | None:
        if expected is None:
            return None
        delta = Decimal(computed) - Decimal(expected)
        if abs(delta) <= self.tolerance:
            return None
        return BalanceDiscrepancyWarning(
            computed=Decimal(computed),
            expected=Decimal(expected),
            delta=delta,
            tolerance=self.tolerance,
        )
