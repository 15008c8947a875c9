"""
Typed Exception Hierarchy for the Treasury Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the closing workflow, the movement service and the import committer
must react to errors by TYPE, never by parsing message strings:

  1. Every error has a typed exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        movements.create(...)
    except Exception as e:
        if "closed" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        movements.create(...)
    except PeriodClosedError as e:
        api_response(code=e.code, year=e.year, month=e.month)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from TreasuryKernelError:

    TreasuryKernelError (base)
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- AlreadyClosedError
    |   +-- NotClosedError
    |   +-- InvalidReasonError
    |   +-- InvalidPeriodError
    |
    +-- MovementError
    |   +-- MovementNotFoundError
    |   +-- DuplicateMovementError
    |   +-- MovementAlreadyAnnulledError
    |   +-- InvalidMovementError
    |
    +-- IngestionError
    |   +-- ImportRowError          (returned as a value, see below)
    |   +-- TransactionFailure      (returned as a value, see below)
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

BalanceDiscrepancyWarning is NOT an exception.  It is a frozen value object
returned by BalanceValidator and attached to import results; it never
interrupts an import or a close.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_CLOSED               | Mutation dated inside a closed period
                | ALREADY_CLOSED              | Close on an already closed period
                | NOT_CLOSED                  | Reopen on an open period
                | INVALID_REASON              | Reopen without a justification
                | INVALID_PERIOD              | Month outside 1..12, bad year
----------------|-----------------------------|-----------------------------------------
Movement        | MOVEMENT_NOT_FOUND          | Movement ID doesn't exist
                | DUPLICATE_MOVEMENT          | Same content hash already stored
                | MOVEMENT_ALREADY_ANNULLED   | Annul on an annulled movement
                | INVALID_MOVEMENT            | Bad amount / kind / description
----------------|-----------------------------|-----------------------------------------
Import          | IMPORT_ROW_INVALID          | Candidate failed validation (value)
                | TRANSACTION_FAILURE         | Period batch rolled back (value)
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | ORM write blocked by a listener

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CLOSE / REOPEN raise; callers decide:

    try:
        workflow.close(2025, 9, user="treasurer")
    except AlreadyClosedError as e:
        notify_user(f"{e.period_key} is already closed")

2. IMPORT never raises for per-period failures.  Row problems come back as
   ImportRowError values and a rolled back period as a TransactionFailure
   value on its PeriodImportResult:

    report = committer.import_batches(batches)
    for result in report.periods:
        if result.failure is not None:
            log.error(result.failure.code, extra=result.failure.to_dict())

===============================================================================
"""

from datetime import date


class TreasuryKernelError(Exception):
    """
    Base exception for all treasury kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TREASURY_KERNEL_ERROR"


# Period-related exceptions


class PeriodError(TreasuryKernelError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Attempted to mutate a movement dated inside a closed period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, year: int, month: int, movement_date: date | str | None = None):
        self.year = year
        self.month = month
        self.period_key = f"{year:04d}-{month:02d}"
        self.movement_date = str(movement_date) if movement_date is not None else None
        detail = f" (date: {self.movement_date})" if self.movement_date else ""
        super().__init__(f"Period {self.period_key} is closed{detail}")


class AlreadyClosedError(PeriodError):
    """Period already has a closing snapshot."""

    code: str = "ALREADY_CLOSED"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        self.period_key = f"{year:04d}-{month:02d}"
        super().__init__(f"Period {self.period_key} is already closed")


class NotClosedError(PeriodError):
    """Reopen requested for a period that is not closed."""

    code: str = "NOT_CLOSED"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        self.period_key = f"{year:04d}-{month:02d}"
        super().__init__(f"Period {self.period_key} is not closed")


class InvalidReasonError(PeriodError):
    """Reopen requested without a non-blank justification."""

    code: str = "INVALID_REASON"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        self.period_key = f"{year:04d}-{month:02d}"
        super().__init__(
            f"A non-empty reason is required to reopen period {self.period_key}"
        )


class InvalidPeriodError(PeriodError):
    """Year/month pair does not identify a calendar month."""

    code: str = "INVALID_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Invalid period: year={year}, month={month}")


# Movement-related exceptions


class MovementError(TreasuryKernelError):
    """Base exception for treasury movement errors."""

    code: str = "MOVEMENT_ERROR"


class MovementNotFoundError(MovementError):
    """Movement with given ID was not found."""

    code: str = "MOVEMENT_NOT_FOUND"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Movement not found: {movement_id}")


class DuplicateMovementError(MovementError):
    """A movement with the same content hash already exists."""

    code: str = "DUPLICATE_MOVEMENT"

    def __init__(self, content_hash: str, existing_id: str | None = None):
        self.content_hash = content_hash
        self.existing_id = existing_id
        super().__init__(
            f"Movement with content hash {content_hash[:12]}... already exists"
        )


class MovementAlreadyAnnulledError(MovementError):
    """Movement has already been annulled."""

    code: str = "MOVEMENT_ALREADY_ANNULLED"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Movement {movement_id} is already annulled")


class InvalidMovementError(MovementError):
    """Movement data failed validation."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid movement field '{field}': {reason}")


# Import-related exceptions


class IngestionError(TreasuryKernelError):
    """Base exception for historical import errors."""

    code: str = "IMPORT_ERROR"


class ImportRowError(IngestionError):
    """
    A single movement candidate was rejected.

    Returned as a value inside import results; the offending row is skipped
    and the rest of the batch continues.
    """

    code: str = "IMPORT_ROW_INVALID"

    def __init__(self, source_ref: str | None, field: str | None, reason: str):
        self.source_ref = source_ref
        self.field = field
        self.reason = reason
        where = f" at {source_ref}" if source_ref else ""
        super().__init__(f"Invalid import row{where}: {reason}")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "source_ref": self.source_ref,
            "field": self.field,
            "reason": self.reason,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImportRowError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self.source_ref, self.field, self.reason))


class TransactionFailure(IngestionError):
    """
    A period's batch transaction failed and was rolled back.

    Returned as a value on the period's result; remaining periods continue.
    """

    code: str = "TRANSACTION_FAILURE"

    def __init__(self, period_key: str, error_type: str, detail: str):
        self.period_key = period_key
        self.error_type = error_type
        self.detail = detail
        super().__init__(
            f"Import of period {period_key} rolled back: {error_type}: {detail}"
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "period_key": self.period_key,
            "error_type": self.error_type,
            "detail": self.detail,
        }


# Audit-related exceptions


class AuditError(TreasuryKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability-related exceptions


class ImmutabilityError(TreasuryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to write a record the ORM listeners protect.

    Movements dated inside a closed period and every AuditEvent are
    protected.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
