"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

"Why is this timesheet in its current state?" must always be answerable,
even after a reopen has deleted every approval row.  That only holds if
the workflow history and the discussion thread are never rewritten, and
if a timesheet that has entered review is never physically removed.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised, the flush aborts,
and the caller's transaction rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                      | When Immutable                    | Why
----------------------------|-----------------------------------|----------------------------------
TimesheetWorkflowHistory    | ALWAYS (from creation)            | Sole record of what happened
TimesheetChat               | ALWAYS (from creation)            | No edit/delete of posted messages
Timesheet (delete only)     | Once submitted_at is set          | Soft lifecycle after first submit
TimesheetRow                | While parent is not editable      | Reviewers approve what they saw

===============================================================================
USAGE
===============================================================================

create_tables() registers the listeners, so any process that sets up the
schema through the kernel gets enforcement.  Processes that attach to an
existing schema call the registration directly:

    from timesheet_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    unregister_immutability_listeners()
===============================================================================
"""

from sqlalchemy import event, select

from timesheet_kernel.exceptions import ImmutabilityViolationError
from timesheet_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_EDITABLE_STATUSES = frozenset({"draft", "reopened"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_history_immutability(mapper, connection, target):
    """History entries are never modified."""
    raise _blocked(
        "TimesheetWorkflowHistory", target.id, "UPDATE",
        "Workflow history entries are immutable and cannot be modified",
    )


def _check_history_delete(mapper, connection, target):
    """History entries are never deleted, not even by reopen."""
    raise _blocked(
        "TimesheetWorkflowHistory", target.id, "DELETE",
        "Workflow history entries cannot be deleted",
    )


def _check_chat_immutability(mapper, connection, target):
    raise _blocked(
        "TimesheetChat", target.id, "UPDATE",
        "Chat messages cannot be edited once posted",
    )


def _check_chat_delete(mapper, connection, target):
    raise _blocked(
        "TimesheetChat", target.id, "DELETE",
        "Chat messages cannot be deleted",
    )


def _check_timesheet_delete(mapper, connection, target):
    """
    Prevent deletion of a timesheet that has ever been submitted.

    Drafts that never entered review may still be discarded.
    """
    if target.submitted_at is not None:
        raise _blocked(
            "Timesheet", target.id, "DELETE",
            "Submitted timesheets cannot be deleted",
        )


def _persisted_timesheet_status(connection, timesheet_id) -> str | None:
    """Read the parent status from the database, not the (possibly detached) relationship."""
    from timesheet_kernel.models.timesheet import Timesheet

    return connection.execute(
        select(Timesheet.status).where(Timesheet.id == timesheet_id)
    ).scalar_one_or_none()


def _check_row_mutation(operation: str):
    def _check(mapper, connection, target):
        status = _persisted_timesheet_status(connection, target.timesheet_id)
        if status is not None and status not in _EDITABLE_STATUSES:
            raise _blocked(
                "TimesheetRow", target.id, operation,
                f"Rows cannot change while the timesheet is '{status}'",
            )

    _check.__name__ = f"_check_row_{operation.lower()}"
    return _check


_check_row_update = _check_row_mutation("UPDATE")
_check_row_delete = _check_row_mutation("DELETE")


def _listeners():
    from timesheet_kernel.models.chat import TimesheetChat
    from timesheet_kernel.models.history import TimesheetWorkflowHistory
    from timesheet_kernel.models.timesheet import Timesheet, TimesheetRow

    return (
        (TimesheetWorkflowHistory, "before_update", _check_history_immutability),
        (TimesheetWorkflowHistory, "before_delete", _check_history_delete),
        (TimesheetChat, "before_update", _check_chat_immutability),
        (TimesheetChat, "before_delete", _check_chat_delete),
        (Timesheet, "before_delete", _check_timesheet_delete),
        (TimesheetRow, "before_update", _check_row_update),
        (TimesheetRow, "before_delete", _check_row_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
