"""
MovementService tests.

Verifies:
- create/update/annul/delete and their audit records
- Field validation and duplicate detection by content hash
- Closed-month rejection on every write path, on both ends of a date change
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from treasury_kernel.domain.movement_rules import OPENING_BALANCE_DESCRIPTION
from treasury_kernel.exceptions import (
    DuplicateMovementError,
    InvalidMovementError,
    MovementAlreadyAnnulledError,
    MovementNotFoundError,
    PeriodClosedError,
)
from treasury_kernel.models.audit_event import AuditAction
from treasury_kernel.models.movement import MovementKind
from treasury_kernel.services.movement_service import MovementService
from treasury_kernel.utils.hashing import hash_movement

from tests.conftest import TEST_USER


@pytest.fixture
def recorded_service(session, deterministic_clock, recording_audit_sink) -> MovementService:
    return MovementService(session, deterministic_clock, recording_audit_sink)


class TestCreate:

    def test_create_returns_info(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "  Donation Juan ", TEST_USER)

        assert info.kind == "income"
        assert info.amount == Decimal("100")
        assert info.description == "Donation Juan"
        assert info.period_key == "2025-09"
        assert info.provenance == "manual"
        assert info.status == "active"
        assert info.content_hash == hash_movement(
            "income", date(2025, 9, 3), Decimal("100"), "Donation Juan", "2025-09"
        )

    def test_accepts_enum_kind_and_text_amount(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), MovementKind.EXPENSE, "45.10", "Bus fares", TEST_USER)

        assert info.kind == "expense"
        assert info.amount == Decimal("45.10")

    def test_opening_balance_gets_default_description(self, movement_service):
        info = movement_service.create(date(2025, 9, 1), "opening_balance", Decimal("-20"), "", TEST_USER)

        assert info.description == OPENING_BALANCE_DESCRIPTION
        assert info.amount == Decimal("-20")

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"amount": Decimal("0")}, "amount"),
            ({"amount": Decimal("-1")}, "amount"),
            ({"amount": 1.5}, "amount"),
            ({"kind": "transfer"}, "kind"),
            ({"description": "   "}, "description"),
            ({"movement_date": "2025-09-03"}, "movement_date"),
        ],
    )
    def test_invalid_fields(self, movement_service, kwargs, field):
        args = {
            "movement_date": date(2025, 9, 3),
            "kind": "income",
            "amount": Decimal("10"),
            "description": "Gift",
            "user": TEST_USER,
        }
        args.update(kwargs)

        with pytest.raises(InvalidMovementError) as exc_info:
            movement_service.create(**args)

        assert exc_info.value.field == field

    def test_duplicate_content_rejected(self, movement_service):
        first = movement_service.create(date(2025, 9, 3), "income", Decimal("100.00"), "Donation", TEST_USER)

        with pytest.raises(DuplicateMovementError) as exc_info:
            movement_service.create(date(2025, 9, 3), "income", Decimal("100"), " DONATION ", TEST_USER)

        assert exc_info.value.existing_id == str(first.id)

    def test_create_audited(self, recorded_service, recording_audit_sink):
        info = recorded_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        call = recording_audit_sink.calls[-1]
        assert call["action"] == AuditAction.MOVEMENT_CREATED.value
        assert call["entity_id"] == str(info.id)
        assert call["new_values"]["kind"] == "income"

    def test_create_in_closed_month_rejected(self, movement_service, closing_workflow):
        closing_workflow.close(2025, 9, TEST_USER)

        with pytest.raises(PeriodClosedError):
            movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)


class TestUpdate:

    def test_update_recomputes_hash_and_period(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        updated = movement_service.update(info.id, TEST_USER, movement_date=date(2025, 10, 2), amount="150")

        assert updated.period_key == "2025-10"
        assert updated.amount == Decimal("150")
        assert updated.content_hash == hash_movement(
            "income", date(2025, 10, 2), Decimal("150"), "Donation", "2025-10"
        )

    def test_update_audits_old_and_new(self, recorded_service, recording_audit_sink):
        info = recorded_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        recorded_service.update(info.id, "editor", description="Donation Juan")

        call = recording_audit_sink.calls[-1]
        assert call["action"] == AuditAction.MOVEMENT_UPDATED.value
        assert call["user"] == "editor"
        assert call["old_values"]["description"] == "Donation"
        assert call["new_values"]["description"] == "Donation Juan"

    def test_update_into_duplicate_rejected(self, movement_service):
        movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)
        other = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Raffle", TEST_USER)

        with pytest.raises(DuplicateMovementError):
            movement_service.update(other.id, TEST_USER, description="donation")

    def test_update_without_changes_keeps_hash(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        assert movement_service.update(info.id, TEST_USER).content_hash == info.content_hash

    def test_update_missing(self, movement_service):
        with pytest.raises(MovementNotFoundError):
            movement_service.update(uuid4(), TEST_USER, amount="1")

    def test_update_annulled_rejected(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)
        movement_service.annul(info.id, "Bounced cheque", TEST_USER)

        with pytest.raises(MovementAlreadyAnnulledError):
            movement_service.update(info.id, TEST_USER, amount="5")

    def test_moving_out_of_closed_month_rejected(self, movement_service, closing_workflow):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)
        closing_workflow.close(2025, 9, TEST_USER)

        with pytest.raises(PeriodClosedError):
            movement_service.update(info.id, TEST_USER, movement_date=date(2025, 10, 3))

    def test_moving_into_closed_month_rejected(self, movement_service, closing_workflow):
        info = movement_service.create(date(2025, 10, 3), "income", Decimal("100"), "Donation", TEST_USER)
        closing_workflow.close(2025, 9, TEST_USER)

        with pytest.raises(PeriodClosedError):
            movement_service.update(info.id, TEST_USER, movement_date=date(2025, 9, 30))

        assert movement_service.get(info.id).movement_date == date(2025, 10, 3)


class TestAnnulAndDelete:

    def test_annul_keeps_row(self, movement_service, deterministic_clock):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        annulled = movement_service.annul(info.id, " Bounced cheque ", TEST_USER)

        assert annulled.status == "annulled"
        assert annulled.annul_reason == "Bounced cheque"
        assert movement_service.get(info.id).status == "annulled"
        assert [m.id for m in movement_service.list(2025, 9, include_annulled=False)] == []

    def test_annul_requires_reason(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        with pytest.raises(InvalidMovementError) as exc_info:
            movement_service.annul(info.id, "  ", TEST_USER)

        assert exc_info.value.field == "annul_reason"

    def test_annul_twice_rejected(self, movement_service):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)
        movement_service.annul(info.id, "Bounced", TEST_USER)

        with pytest.raises(MovementAlreadyAnnulledError):
            movement_service.annul(info.id, "Again", TEST_USER)

    def test_annul_audited_with_reason_note(self, recorded_service, recording_audit_sink):
        info = recorded_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        recorded_service.annul(info.id, "Bounced", TEST_USER)

        call = recording_audit_sink.calls[-1]
        assert call["action"] == AuditAction.MOVEMENT_ANNULLED.value
        assert call["note"] == "Bounced"
        assert call["old_values"]["status"] == "active"

    def test_delete_removes_row_and_audits(self, recorded_service, recording_audit_sink):
        info = recorded_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)

        deleted = recorded_service.delete(info.id, TEST_USER)

        assert deleted.id == info.id
        with pytest.raises(MovementNotFoundError):
            recorded_service.get(info.id)
        assert recording_audit_sink.actions()[-1] == AuditAction.MOVEMENT_DELETED.value

    def test_delete_missing(self, movement_service):
        with pytest.raises(MovementNotFoundError):
            movement_service.delete(uuid4(), TEST_USER)

    @pytest.mark.parametrize("operation", ["annul", "delete"])
    def test_closed_month_rejects(self, movement_service, closing_workflow, operation):
        info = movement_service.create(date(2025, 9, 3), "income", Decimal("100"), "Donation", TEST_USER)
        closing_workflow.close(2025, 9, TEST_USER)

        with pytest.raises(PeriodClosedError):
            if operation == "annul":
                movement_service.annul(info.id, "Late", TEST_USER)
            else:
                movement_service.delete(info.id, TEST_USER)


class TestQueries:

    def test_list_by_month_and_year(self, movement_service):
        movement_service.create(date(2025, 9, 20), "income", Decimal("2"), "B", TEST_USER)
        movement_service.create(date(2025, 9, 3), "income", Decimal("1"), "A", TEST_USER)
        movement_service.create(date(2025, 10, 1), "expense", Decimal("3"), "C", TEST_USER)
        movement_service.create(date(2024, 12, 1), "expense", Decimal("4"), "D", TEST_USER)

        assert [m.description for m in movement_service.list(2025, 9)] == ["A", "B"]
        assert [m.description for m in movement_service.list(2025)] == ["A", "B", "C"]
        assert len(movement_service.list()) == 4
