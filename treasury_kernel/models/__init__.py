"""ORM models for the treasury kernel."""

from treasury_kernel.models.audit_event import AuditAction, AuditEvent
from treasury_kernel.models.movement import (
    Movement,
    MovementKind,
    MovementStatus,
    Provenance,
)
from treasury_kernel.models.period_close import PeriodClose
from treasury_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "AuditAction",
    "AuditEvent",
    "Movement",
    "MovementKind",
    "MovementStatus",
    "PeriodClose",
    "Provenance",
    "SequenceCounter",
]
