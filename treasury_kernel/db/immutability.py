"""
ORM-level immutability enforcement.

Services check closed months before they write (ClosingGuard).  These
listeners enforce the same rules at flush time, so a write that bypasses the
services through the ORM still cannot land in a closed month.

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |            \\
         v             --> ImmutabilityViolationError (nothing is sent)
    SQL sent to database

Protected entities:

Entity        | When immutable
--------------|------------------------------------------
Movement      | Its month (old or new date) is closed
AuditEvent    | Always, from creation
PeriodClose   | Always; reopen deletes, never updates

Bulk ``UPDATE``/``DELETE`` statements and raw SQL do not fire mapper events.

Usage:

    from treasury_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to plant forbidden state may call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from datetime import date

from sqlalchemy import event, text
from sqlalchemy.orm.attributes import get_history

from treasury_kernel.exceptions import ImmutabilityViolationError
from treasury_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _month_is_closed(connection, value: date) -> bool:
    result = connection.execute(
        text("SELECT 1 FROM period_closes WHERE year = :year AND month = :month"),
        {"year": value.year, "month": value.month},
    )
    return result.first() is not None


def _block(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


# =============================================================================
# Movement
# =============================================================================


def _check_movement_insert(mapper, connection, target):
    from treasury_kernel.models.movement import Movement

    if not isinstance(target, Movement) or target.movement_date is None:
        return
    if _month_is_closed(connection, target.movement_date):
        _block(
            "Movement",
            target.id,
            "INSERT",
            f"{target.movement_date.isoformat()} falls in a closed month",
        )


def _check_movement_immutability(mapper, connection, target):
    """
    Block updates to movements dated in a closed month.

    Both the persisted date (attribute history) and the pending date are
    checked, so a movement can neither leave nor enter a closed month.
    """
    from treasury_kernel.models.movement import Movement

    if not isinstance(target, Movement):
        return

    history = get_history(target, "movement_date")
    dates = set(history.deleted or ()) | set(history.unchanged or ())
    if target.movement_date is not None:
        dates.add(target.movement_date)

    for value in sorted(d for d in dates if d is not None):
        if _month_is_closed(connection, value):
            _block(
                "Movement",
                target.id,
                "UPDATE",
                f"{value.isoformat()} falls in a closed month",
            )


def _check_movement_delete(mapper, connection, target):
    from treasury_kernel.models.movement import Movement

    if not isinstance(target, Movement):
        return

    history = get_history(target, "movement_date")
    original = (history.deleted or history.unchanged or [target.movement_date])[0]
    if original is not None and _month_is_closed(connection, original):
        _block(
            "Movement",
            target.id,
            "DELETE",
            f"{original.isoformat()} falls in a closed month",
        )


# =============================================================================
# AuditEvent (always immutable)
# =============================================================================


def _check_audit_event_immutability(mapper, connection, target):
    from treasury_kernel.models.audit_event import AuditEvent

    if not isinstance(target, AuditEvent):
        return
    _block("AuditEvent", target.id, "UPDATE", "Audit events are immutable and cannot be modified")


def _check_audit_event_delete(mapper, connection, target):
    from treasury_kernel.models.audit_event import AuditEvent

    if not isinstance(target, AuditEvent):
        return
    _block("AuditEvent", target.id, "DELETE", "Audit events cannot be deleted")


# =============================================================================
# PeriodClose (snapshot figures are frozen)
# =============================================================================


def _check_period_close_immutability(mapper, connection, target):
    from treasury_kernel.models.period_close import PeriodClose

    if not isinstance(target, PeriodClose):
        return
    _block(
        "PeriodClose",
        target.period_key,
        "UPDATE",
        "Closing snapshots are frozen; reopen the month instead",
    )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from treasury_kernel.models.audit_event import AuditEvent
    from treasury_kernel.models.movement import Movement
    from treasury_kernel.models.period_close import PeriodClose

    return (
        (Movement, "before_insert", _check_movement_insert),
        (Movement, "before_update", _check_movement_immutability),
        (Movement, "before_delete", _check_movement_delete),
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (PeriodClose, "before_update", _check_period_close_immutability),
    )


def register_immutability_listeners():
    """Register all immutability listeners.  Safe to call repeatedly."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that intentionally plant forbidden state.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
