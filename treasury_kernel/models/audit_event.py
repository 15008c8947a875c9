"""
Module: treasury_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners).
    - Hash chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditorService.
    - seq is monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.

Audit relevance:
    AuditEvent IS the audit trail.  Period close and reopen, and every manual
    movement write, produce an AuditEvent carrying old and new values.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import Base


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Period lifecycle
    PERIOD_CLOSED = "period_closed"
    PERIOD_REOPENED = "period_reopened"

    # Movement lifecycle
    MOVEMENT_CREATED = "movement_created"
    MOVEMENT_UPDATED = "movement_updated"
    MOVEMENT_ANNULLED = "movement_annulled"
    MOVEMENT_DELETED = "movement_deleted"

    # Historical import
    IMPORT_PERIOD_COMMITTED = "import_period_committed"


class AuditEvent(Base):
    """
    Audit event with hash chain for tamper evidence.

    Contract:
        AuditEvent rows are append-only, never updated or deleted.  Each
        row's hash includes the previous row's hash.

    Guarantees:
        - seq is unique and monotonically increasing.
        - prev_hash is None only for the genesis event.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # "PeriodClose", "Movement", ...
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Movement UUID or period key "YYYY-MM"
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    note: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Hash of {old_values, new_values, note}
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # hash = H(entity_type + entity_id + action + payload_hash + prev_hash)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"
