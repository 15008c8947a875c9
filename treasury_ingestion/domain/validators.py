"""
Per-candidate validation for the historical import.

Every candidate yields a result value: valid, or a tuple of ImportRowError.
Invalid rows are recorded and skipped; they never abort their period.

Architecture: treasury_ingestion/domain. ZERO I/O. Field rules are shared
with manual entry through treasury_kernel.domain.movement_rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.domain.movement_rules import (
    OPENING_BALANCE,
    OPENING_BALANCE_DESCRIPTION,
    kind_value,
    movement_violations,
    to_amount,
)
from treasury_kernel.exceptions import ImportRowError

from treasury_ingestion.domain.types import MovementCandidate


@dataclass(frozen=True)
class CandidateValidation:
    """Result of validating one candidate."""

    candidate: MovementCandidate
    errors: tuple[ImportRowError, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    @classmethod
    def ok(cls, candidate: MovementCandidate) -> "CandidateValidation":
        return cls(candidate=candidate)

    @classmethod
    def fail(cls, candidate: MovementCandidate, *errors: ImportRowError) -> "CandidateValidation":
        return cls(candidate=candidate, errors=errors)


def validate_candidate(candidate: MovementCandidate, period: PeriodRef) -> CandidateValidation:
    """
    Check field rules and that the candidate belongs to ``period``.

    Belonging means period_key equals the period key and the date falls
    inside the month.
    """
    ref = candidate.source_ref
    errors = [
        ImportRowError(ref, field, reason)
        for field, reason in movement_violations(
            candidate.movement_date,
            candidate.kind,
            candidate.amount,
            candidate.description,
        )
    ]

    if candidate.period_key != period.key:
        errors.append(
            ImportRowError(
                ref,
                "period_key",
                f"period {candidate.period_key!r} does not match batch period {period.key}",
            )
        )
    elif isinstance(candidate.movement_date, date) and not period.contains(candidate.movement_date):
        errors.append(
            ImportRowError(
                ref,
                "movement_date",
                f"{candidate.movement_date.isoformat()} is outside {period.key}",
            )
        )

    if errors:
        return CandidateValidation.fail(candidate, *errors)
    return CandidateValidation.ok(_normalized(candidate))


def _normalized(candidate: MovementCandidate) -> MovementCandidate:
    """Same candidate with kind lower-cased, amount as Decimal and the stored description."""
    kind = kind_value(candidate.kind)
    amount = to_amount(candidate.amount)
    description = (candidate.description or "").strip()
    if not description and kind == OPENING_BALANCE:
        description = OPENING_BALANCE_DESCRIPTION
    if kind == candidate.kind and amount is candidate.amount and description == candidate.description:
        return candidate
    return MovementCandidate(
        movement_date=candidate.movement_date,
        kind=kind,
        amount=amount,
        description=description,
        period_key=candidate.period_key,
        source_ref=candidate.source_ref,
    )


def partition_candidates(
    candidates: Iterable[MovementCandidate],
    period: PeriodRef,
) -> tuple[tuple[MovementCandidate, ...], tuple[ImportRowError, ...]]:
    """Split candidates into (valid, row errors), preserving input order."""
    valid: list[MovementCandidate] = []
    errors: list[ImportRowError] = []
    for candidate in candidates:
        result = validate_candidate(candidate, period)
        if result.valid:
            valid.append(result.candidate)
        else:
            errors.extend(result.errors)
    return tuple(valid), tuple(errors)
