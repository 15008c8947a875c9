"""Candidate validation and import result types."""

from datetime import date
from decimal import Decimal

from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.domain.movement_rules import OPENING_BALANCE_DESCRIPTION
from treasury_kernel.exceptions import ImportRowError, TransactionFailure
from treasury_ingestion.domain import (
    ImportReport,
    MovementCandidate,
    PeriodImportResult,
    PeriodImportStatus,
    partition_candidates,
    validate_candidate,
)

SEPTEMBER = PeriodRef(2025, 9)


def _candidate(**overrides) -> MovementCandidate:
    fields = {
        "movement_date": date(2025, 9, 3),
        "kind": "income",
        "amount": Decimal("10.00"),
        "description": "Gift",
        "period_key": "2025-09",
        "source_ref": "SEP!4",
    }
    fields.update(overrides)
    return MovementCandidate(**fields)


class TestValidateCandidate:

    def test_valid_candidate_passes_unchanged(self):
        candidate = _candidate()

        result = validate_candidate(candidate, SEPTEMBER)

        assert result.valid
        assert result.candidate is candidate

    def test_kind_normalized(self):
        result = validate_candidate(_candidate(kind=" Income "), SEPTEMBER)

        assert result.valid
        assert result.candidate.kind == "income"

    def test_blank_opening_gets_stored_description(self):
        result = validate_candidate(
            _candidate(kind="opening_balance", amount=Decimal("100.00"), description="  "),
            SEPTEMBER,
        )

        assert result.valid
        assert result.candidate.description == OPENING_BALANCE_DESCRIPTION

    def test_field_errors_carry_source_ref(self):
        result = validate_candidate(_candidate(amount=Decimal("0"), description=""), SEPTEMBER)

        assert not result.valid
        assert {e.field for e in result.errors} == {"amount", "description"}
        assert all(e.source_ref == "SEP!4" for e in result.errors)

    def test_period_key_mismatch(self):
        result = validate_candidate(_candidate(period_key="2025-10"), SEPTEMBER)

        assert [e.field for e in result.errors] == ["period_key"]

    def test_date_outside_period(self):
        result = validate_candidate(_candidate(movement_date=date(2025, 10, 1)), SEPTEMBER)

        assert [e.field for e in result.errors] == ["movement_date"]

    def test_partition_preserves_order(self):
        good_a = _candidate(description="A")
        bad = _candidate(description="B", amount=Decimal("-1"), source_ref="SEP!5")
        good_c = _candidate(description="C")

        valid, errors = partition_candidates([good_a, bad, good_c], SEPTEMBER)

        assert [c.description for c in valid] == ["A", "C"]
        assert [e.source_ref for e in errors] == ["SEP!5"]


class TestImportReport:

    def test_totals(self):
        committed = PeriodImportResult(
            period=SEPTEMBER,
            status=PeriodImportStatus.COMMITTED,
            read=5,
            new=3,
            duplicate=1,
            inserted=2,
            rejected_closed=1,
            row_errors=(ImportRowError("SEP!9", "amount", "negative"),),
        )
        failed = PeriodImportResult(
            period=PeriodRef(2025, 10),
            status=PeriodImportStatus.FAILED,
            read=2,
            new=2,
            failure=TransactionFailure("2025-10", "RuntimeError", "boom"),
        )

        report = ImportReport(periods=(committed, failed))

        assert report.totals == {
            "read": 7,
            "new": 5,
            "duplicate": 1,
            "inserted": 2,
            "rejected_closed": 1,
            "row_errors": 1,
            "failed_periods": 1,
        }
        assert committed.ok and not failed.ok
        assert report.get(PeriodRef(2025, 10)) is failed
        assert report.get("2025-12") is None
        assert report.to_dict()["periods"][1]["failure"]["error_type"] == "RuntimeError"

    def test_row_error_equality(self):
        assert ImportRowError("A!1", "amount", "x") == ImportRowError("A!1", "amount", "x")
        assert ImportRowError("A!1", "amount", "x") != ImportRowError("A!2", "amount", "x")
