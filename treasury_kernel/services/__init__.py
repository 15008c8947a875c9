"""Services for the treasury kernel (write side)."""

from treasury_kernel.services.auditor_service import (
    AuditorService,
    AuditSink,
    AuditTrailEntry,
)
from treasury_kernel.services.closing_guard import ClosingGuard
from treasury_kernel.services.closing_workflow import ClosingWorkflow
from treasury_kernel.services.movement_service import MovementService
from treasury_kernel.services.period_store import PeriodStore
from treasury_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditSink",
    "AuditTrailEntry",
    "AuditorService",
    "ClosingGuard",
    "ClosingWorkflow",
    "MovementService",
    "PeriodStore",
    "SequenceService",
]
