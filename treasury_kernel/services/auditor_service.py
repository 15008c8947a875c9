"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Implements the AuditSink interface the closing workflow and the movement
    service call.  Each call appends an AuditEvent carrying old values, new
    values and a note, linked to its predecessor by hash.  Provides chain
    validation and per-entity trails.

Architecture position:
    Kernel > Services -- imperative shell, called by ClosingWorkflow,
    MovementService and ImportBatchCommitter through the AuditSink protocol.

Invariants enforced:
    - Sequence monotonicity via SequenceService.
    - Chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).
    - Append-only: AuditEvent rows are protected by ORM listeners.
    - Best effort: log() never raises.  A failed audit write is rolled back
      to its own SAVEPOINT and logged at ERROR; the financial operation in
      the surrounding transaction goes on.

Failure modes:
    - AuditChainBrokenError from validate_chain() on a hash mismatch.
    - record() raises whatever the write raised; log() swallows and logs it.

Audit relevance:
    This IS the audit service.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.exceptions import AuditChainBrokenError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.audit_event import AuditAction, AuditEvent
from treasury_kernel.services.sequence_service import SequenceService
from treasury_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


@runtime_checkable
class AuditSink(Protocol):
    """
    Destination of audit records.

    Contract:
        Fire-and-forget from the caller's perspective.  Implementations
        must not raise; a failure to audit never blocks the underlying
        financial operation.
    """

    def log(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction | str,
        user: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
        note: str | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class AuditTrailEntry:
    """A single entry in an entity's audit trail."""

    seq: int
    action: str
    actor: str
    occurred_at: datetime
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    note: str | None
    hash: str


def _json_safe(value: Any) -> Any:
    """Convert Decimal/date/UUID/Enum leaves so values fit a JSON column."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _action_value(action: AuditAction | str) -> str:
    return action.value if isinstance(action, AuditAction) else str(action)


class AuditorService:
    """
    Database-backed, hash-chained AuditSink.

    Guarantees:
        - Every event's hash is a deterministic function of
          (entity_type, entity_id, action, payload_hash, prev_hash).
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

        return last_event.hash if last_event else None

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction | str,
        user: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
        note: str | None = None,
    ) -> AuditEvent:
        """
        Append an audit event with hash chain linkage.

        Postconditions:
            - A new AuditEvent row is flushed with the next seq.
            - event.hash == H(entity_type, entity_id, action, payload_hash,
              prev_hash).
        """
        action_value = _action_value(action)
        old_json = _json_safe(old_values) if old_values is not None else None
        new_json = _json_safe(new_values) if new_values is not None else None

        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()
        payload_hash = hash_payload(
            {"old_values": old_json, "new_values": new_json, "note": note}
        )
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action_value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action_value,
            actor=user,
            occurred_at=self._clock.now(),
            old_values=old_json,
            new_values=new_json,
            note=note,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_recorded",
            extra={
                "seq": seq,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action_value,
            },
        )
        return audit_event

    def log(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction | str,
        user: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
        note: str | None = None,
    ) -> None:
        """Best-effort record(); failures are rolled back and logged."""
        try:
            with self._session.begin_nested():
                self.record(
                    entity_type,
                    entity_id,
                    action,
                    user,
                    old_values=old_values,
                    new_values=new_values,
                    note=note,
                )
        except Exception:
            logger.error(
                "audit_write_failed",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "action": _action_value(action),
                },
                exc_info=True,
            )

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Raises:
            AuditChainBrokenError: If a stored payload hash, event hash or
                prev_hash link does not match its recomputed value.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(str(events[0].id), "None", events[0].prev_hash)

        for i, event in enumerate(events):
            expected_payload = hash_payload(
                {"old_values": event.old_values, "new_values": event.new_values, "note": event.note}
            )
            if event.payload_hash != expected_payload:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected_payload, event.payload_hash)

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                action=_action_value(event.action),
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            if i > 0 and event.prev_hash != events[i - 1].hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id),
                    events[i - 1].hash,
                    event.prev_hash or "None",
                )

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    def get_trail(self, entity_type: str, entity_id: str) -> tuple[AuditTrailEntry, ...]:
        """All audit entries of one entity, oldest first."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == str(entity_id),
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return tuple(
            AuditTrailEntry(
                seq=event.seq,
                action=_action_value(event.action),
                actor=event.actor,
                occurred_at=event.occurred_at,
                old_values=event.old_values,
                new_values=event.new_values,
                note=event.note,
                hash=event.hash,
            )
            for event in events
        )
