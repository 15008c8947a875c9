"""
treasury_ingestion.domain -- Pure types and value objects for the import.

ZERO I/O. Imports only from treasury_kernel/domain/ and treasury_kernel/exceptions.
"""

from treasury_ingestion.domain.types import (
    ImportReport,
    MovementCandidate,
    PeriodBatch,
    PeriodImportResult,
    PeriodImportStatus,
)
from treasury_ingestion.domain.validators import (
    CandidateValidation,
    partition_candidates,
    validate_candidate,
)

__all__ = [
    "CandidateValidation",
    "ImportReport",
    "MovementCandidate",
    "PeriodBatch",
    "PeriodImportResult",
    "PeriodImportStatus",
    "partition_candidates",
    "validate_candidate",
]
