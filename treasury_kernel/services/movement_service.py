"""
MovementService -- manual create, update, annul and delete of movements.

Responsibility:
    The interactive write path of the treasury ledger.  Every entry point
    consults ClosingGuard before touching a date, keeps the content hash in
    step with the fields it covers, and records an audit event.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the caller commits.

Invariants enforced:
    - ClosingGuard runs before any mutation: on the movement date for
      create/annul/delete, and on both the original and the new date for a
      date-changing update.
    - content_hash and period_key are recomputed whenever kind, date, amount
      or description change; a clash with another row is a
      DuplicateMovementError, never a second copy.
    - Annulment keeps the row and requires a reason; annulling twice fails.

Failure modes:
    - PeriodClosedError: the original or new date is in a closed month.
    - InvalidMovementError: field rules violated (see domain/movement_rules).
    - DuplicateMovementError: same content hash as an existing movement.
    - MovementNotFoundError / MovementAlreadyAnnulledError.

Audit relevance:
    MOVEMENT_CREATED / UPDATED / ANNULLED / DELETED carry old and new field
    values through the AuditSink.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_kernel.db.types import period_key_for
from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.dtos import MovementInfo, PeriodRef
from treasury_kernel.domain.movement_rules import (
    OPENING_BALANCE,
    OPENING_BALANCE_DESCRIPTION,
    kind_value,
    movement_violations,
    to_amount,
)
from treasury_kernel.exceptions import (
    DuplicateMovementError,
    InvalidMovementError,
    MovementAlreadyAnnulledError,
    MovementNotFoundError,
)
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.audit_event import AuditAction
from treasury_kernel.models.movement import (
    Movement,
    MovementKind,
    MovementStatus,
    Provenance,
)
from treasury_kernel.services.auditor_service import AuditorService, AuditSink
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.closing_guard import ClosingGuard
from treasury_kernel.services.period_store import PeriodStore
from treasury_kernel.utils.hashing import hash_movement

logger = get_logger("services.movement")

ENTITY_TYPE = "Movement"


def _check(movement_date, kind, amount, description) -> None:
    violations = movement_violations(movement_date, kind, amount, description)
    if violations:
        field, reason = violations[0]
        raise InvalidMovementError(field, reason)


class MovementService(BaseService[Movement]):
    """
    Manual movement CRUD guarded by closed months.

    Contract:
        All methods return MovementInfo DTOs.  Writes are flushed, not
        committed.

    Guarantees:
        - No write lands in a closed month through this service.
        - At most one movement per content hash.

    Non-goals:
        - Does not categorize movements or handle attachments.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
        guard: ClosingGuard | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._auditor = auditor if auditor is not None else AuditorService(session, self._clock)
        self._guard = guard or ClosingGuard(PeriodStore(session))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(
        self,
        movement_date: date,
        kind: MovementKind | str,
        amount: Decimal | str | int,
        description: str,
        user: str,
        source_ref: str | None = None,
    ) -> MovementInfo:
        """
        Record a new movement.

        Raises:
            PeriodClosedError, InvalidMovementError, DuplicateMovementError
        """
        if isinstance(movement_date, date):
            self._guard.ensure_mutable(movement_date, "create")
        _check(movement_date, kind, amount, description)

        kind_str = kind_value(kind)
        parsed_amount = to_amount(amount)
        text = (description or "").strip()
        if not text and kind_str == OPENING_BALANCE:
            text = OPENING_BALANCE_DESCRIPTION
        key = period_key_for(movement_date)
        content_hash = hash_movement(kind_str, movement_date, parsed_amount, text, key)

        self._ensure_unique(content_hash)

        movement = Movement(
            movement_date=movement_date,
            kind=kind_str,
            amount=parsed_amount,
            description=text,
            period_key=key,
            content_hash=content_hash,
            provenance=Provenance.MANUAL.value,
            source_ref=source_ref,
            status=MovementStatus.ACTIVE.value,
            created_by=user,
        )
        self._flush_new(movement)

        with LogContext.bind(movement_id=str(movement.id), actor=user):
            self._auditor.log(
                ENTITY_TYPE,
                str(movement.id),
                AuditAction.MOVEMENT_CREATED,
                user,
                new_values=movement.audit_values(),
            )
            logger.info(
                "movement_created",
                extra={"period_key": key, "kind": kind_str, "amount": parsed_amount},
            )
        return MovementInfo.from_model(movement)

    def update(
        self,
        movement_id: UUID,
        user: str,
        *,
        movement_date: date | None = None,
        kind: MovementKind | str | None = None,
        amount: Decimal | str | int | None = None,
        description: str | None = None,
    ) -> MovementInfo:
        """
        Change fields of an active movement.

        Both the original and the new date must be in open months.

        Raises:
            MovementNotFoundError, PeriodClosedError,
            MovementAlreadyAnnulledError, InvalidMovementError,
            DuplicateMovementError
        """
        movement = self._get_for_update(movement_id)
        new_guarded = movement_date if isinstance(movement_date, date) else None
        self._guard.ensure_mutable_change(movement.movement_date, new_guarded, "update")
        if movement.is_annulled:
            raise MovementAlreadyAnnulledError(str(movement_id))

        new_date = movement_date if movement_date is not None else movement.movement_date
        new_kind = kind if kind is not None else movement.kind
        new_amount = amount if amount is not None else movement.amount
        new_description = description if description is not None else movement.description
        _check(new_date, new_kind, new_amount, new_description)

        kind_str = kind_value(new_kind)
        parsed_amount = to_amount(new_amount)
        text = new_description.strip()
        if not text and kind_str == OPENING_BALANCE:
            text = OPENING_BALANCE_DESCRIPTION
        key = period_key_for(new_date)
        content_hash = hash_movement(kind_str, new_date, parsed_amount, text, key)

        if content_hash != movement.content_hash:
            self._ensure_unique(content_hash, exclude_id=movement.id)

        old_values = movement.audit_values()
        movement.movement_date = new_date
        movement.kind = kind_str
        movement.amount = parsed_amount
        movement.description = text
        movement.period_key = key
        movement.content_hash = content_hash
        movement.updated_by = user
        self.session.flush()

        with LogContext.bind(movement_id=str(movement.id), actor=user):
            self._auditor.log(
                ENTITY_TYPE,
                str(movement.id),
                AuditAction.MOVEMENT_UPDATED,
                user,
                old_values=old_values,
                new_values=movement.audit_values(),
            )
            logger.info("movement_updated", extra={"period_key": key})
        return MovementInfo.from_model(movement)

    def annul(self, movement_id: UUID, reason: str, user: str) -> MovementInfo:
        """
        Annul a movement, keeping the row for the trail.

        Raises:
            MovementNotFoundError, PeriodClosedError,
            MovementAlreadyAnnulledError, InvalidMovementError
        """
        movement = self._get_for_update(movement_id)
        self._guard.ensure_mutable(movement.movement_date, "annul")
        if reason is None or not reason.strip():
            raise InvalidMovementError("annul_reason", "a reason is required to annul")
        if movement.is_annulled:
            raise MovementAlreadyAnnulledError(str(movement_id))

        old_values = movement.audit_values()
        movement.status = MovementStatus.ANNULLED.value
        movement.annulled_at = self._clock.now()
        movement.annulled_by = user
        movement.annul_reason = reason.strip()
        movement.updated_by = user
        self.session.flush()

        with LogContext.bind(movement_id=str(movement.id), actor=user):
            self._auditor.log(
                ENTITY_TYPE,
                str(movement.id),
                AuditAction.MOVEMENT_ANNULLED,
                user,
                old_values=old_values,
                new_values={"status": MovementStatus.ANNULLED.value, "reason": reason.strip()},
                note=reason.strip(),
            )
            logger.info("movement_annulled", extra={"period_key": movement.period_key})
        return MovementInfo.from_model(movement)

    def delete(self, movement_id: UUID, user: str) -> MovementInfo:
        """
        Remove a movement.

        Raises:
            MovementNotFoundError, PeriodClosedError
        """
        movement = self._get_for_update(movement_id)
        self._guard.ensure_mutable(movement.movement_date, "delete")

        info = MovementInfo.from_model(movement)
        old_values = movement.audit_values()
        self.session.delete(movement)
        self.session.flush()

        with LogContext.bind(movement_id=str(info.id), actor=user):
            self._auditor.log(
                ENTITY_TYPE,
                str(info.id),
                AuditAction.MOVEMENT_DELETED,
                user,
                old_values=old_values,
            )
            logger.info("movement_deleted", extra={"period_key": info.period_key})
        return info

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, movement_id: UUID) -> MovementInfo:
        movement = self.session.get(Movement, movement_id)
        if movement is None:
            raise MovementNotFoundError(str(movement_id))
        return MovementInfo.from_model(movement)

    def list(
        self,
        year: int | None = None,
        month: int | None = None,
        include_annulled: bool = True,
    ) -> list[MovementInfo]:
        """Movements ordered by date; filtered to a month when both given."""
        stmt = select(Movement).order_by(Movement.movement_date, Movement.created_at)
        if year is not None and month is not None:
            stmt = stmt.where(Movement.period_key == PeriodRef(year, month).key)
        elif year is not None:
            stmt = stmt.where(
                Movement.movement_date >= date(year, 1, 1),
                Movement.movement_date < date(year + 1, 1, 1),
            )
        if not include_annulled:
            stmt = stmt.where(Movement.status == MovementStatus.ACTIVE.value)
        return [MovementInfo.from_model(m) for m in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_for_update(self, movement_id: UUID) -> Movement:
        movement = self.session.execute(
            select(Movement).where(Movement.id == movement_id).with_for_update()
        ).scalar_one_or_none()
        if movement is None:
            raise MovementNotFoundError(str(movement_id))
        return movement

    def _ensure_unique(self, content_hash: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Movement.id).where(Movement.content_hash == content_hash)
        if exclude_id is not None:
            stmt = stmt.where(Movement.id != exclude_id)
        existing = self.session.execute(stmt).scalar_one_or_none()
        if existing is not None:
            raise DuplicateMovementError(content_hash, str(existing))

    def _flush_new(self, movement: Movement) -> None:
        savepoint = self.session.begin_nested()
        try:
            self.session.add(movement)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateMovementError(movement.content_hash) from None
