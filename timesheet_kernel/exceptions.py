"""
Typed Exception Hierarchy for the Timesheet Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow must tell a lost approval race apart from a
malformed request, and both apart from a permission problem. Parsing
message strings for that is fragile, so every error here has:

  1. A TYPED exception class (catch by type, not message)
  2. A class-level CODE attribute (machine-readable, API-safe)
  3. A class-level CATEGORY that maps onto the operation result kinds
  4. Structured DATA attributes (not just a message string)

Example - WRONG way:
    try:
        workflow.approve(...)
    except Exception as e:
        if "already" in str(e):
            refresh_and_retry()

Example - RIGHT way:
    try:
        service.approve(...)
    except StateConflictError as e:
        refresh_and_retry(e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TimesheetKernelError (base)
    |
    +-- WorkflowValidationError                 category=validation
    |   +-- EmptyTimesheetError
    |   +-- InvalidPeriodError
    |   +-- InvalidHoursError
    |   +-- DuplicateRowError
    |   +-- CommentRequiredError
    |   +-- TextTooLongError
    |   +-- EmptyMessageError
    |
    +-- StateConflictError                      category=state_conflict, retryable
    |   +-- InvalidTimesheetTransitionError
    |   +-- TimesheetNotEditableError
    |   +-- ApprovalAlreadyDecidedError
    |   +-- DuplicateTimesheetError
    |   +-- LockTimeoutError
    |
    +-- WorkflowAuthorizationError              category=authorization
    |   +-- NotTimesheetOwnerError
    |   +-- NoPendingApprovalError
    |   +-- ReopenNotAllowedError
    |   +-- TimesheetAccessDeniedError
    |
    +-- NotFoundError                           category=not_found
    |   +-- TimesheetNotFoundError
    |   +-- ParentMessageNotFoundError
    |
    +-- WorkflowIntegrityError                  category=integrity
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Validation      | EMPTY_TIMESHEET               | No rows on save/submit
                | INVALID_PERIOD                | End before start, or span too long
                | INVALID_HOURS                 | Day bucket outside [0, max]
                | DUPLICATE_ROW                 | Same (project, task) twice in a save
                | COMMENT_REQUIRED              | Reject/reopen without a comment
                | TEXT_TOO_LONG                 | Comment/note/message over the limit
                | EMPTY_MESSAGE                 | Blank chat message
----------------|-------------------------------|---------------------------------------
State conflict  | INVALID_TIMESHEET_TRANSITION  | Action not legal from current status
                | TIMESHEET_NOT_EDITABLE        | Draft save on a submitted timesheet
                | APPROVAL_ALREADY_DECIDED      | Approver's row already left pending
                | DUPLICATE_TIMESHEET           | Concurrent draft creation for a period
                | LOCK_TIMEOUT                  | Lock wait timed out / deadlock victim
----------------|-------------------------------|---------------------------------------
Authorization   | NOT_TIMESHEET_OWNER           | Non-owner edits or submits
                | NO_PENDING_APPROVAL           | Actor has no approval row here
                | REOPEN_NOT_ALLOWED            | Not a manager and not the rejecter
                | TIMESHEET_ACCESS_DENIED       | Not a participant of the timesheet
----------------|-------------------------------|---------------------------------------
Not found       | TIMESHEET_NOT_FOUND           | Timesheet ID doesn't exist
                | PARENT_MESSAGE_NOT_FOUND      | Parent not in this timesheet's thread
----------------|-------------------------------|---------------------------------------
Integrity       | IMMUTABILITY_VIOLATION        | Update/delete of an append-only row
                | WORKFLOW_INTEGRITY_ERROR      | Unexpected driver or directory failure

===============================================================================
HANDLING PATTERNS
===============================================================================

1. STATE CONFLICTS ARE RETRYABLE AFTER A REFRESH:

    except StateConflictError as e:
        timesheet = selector.get_workflow_status(...)   # observe new state
        decide_again(timesheet)

2. AUTHORIZATION IS NOT A CONFLICT:

    except NoPendingApprovalError as e:
        return forbidden(e.code)

3. INTEGRITY ERRORS ROLL BACK THE WHOLE OPERATION:

    The coordinator wraps every mutation in a single transaction; any
    exception leaves the timesheet exactly as it was.
===============================================================================
"""

from uuid import UUID


class TimesheetKernelError(Exception):
    """
    Base exception for all timesheet kernel errors.

    All subclasses carry a `code` and a `category` class attribute.
    """

    code: str = "TIMESHEET_KERNEL_ERROR"
    category: str = "integrity"
    retryable: bool = False


# Validation exceptions


class WorkflowValidationError(TimesheetKernelError):
    """Base exception for malformed or missing input."""

    code: str = "VALIDATION_ERROR"
    category: str = "validation"


class EmptyTimesheetError(WorkflowValidationError):
    """Timesheet has no rows."""

    code: str = "EMPTY_TIMESHEET"

    def __init__(self, timesheet_id: UUID | None = None):
        self.timesheet_id = timesheet_id
        if timesheet_id is None:
            super().__init__("Timesheet must have at least one row")
        else:
            super().__init__(
                f"Timesheet {timesheet_id} must have at least one row before submission"
            )


class InvalidPeriodError(WorkflowValidationError):
    """Period bounds are inconsistent."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: str, period_end: str, reason: str):
        self.period_start = period_start
        self.period_end = period_end
        self.reason = reason
        super().__init__(f"Invalid period {period_start}..{period_end}: {reason}")


class InvalidHoursError(WorkflowValidationError):
    """A day bucket is outside the allowed range."""

    code: str = "INVALID_HOURS"

    def __init__(self, day: str, hours: str, max_hours: str):
        self.day = day
        self.hours = hours
        self.max_hours = max_hours
        super().__init__(
            f"Hours for {day} must be between 0 and {max_hours}, got {hours}"
        )


class DuplicateRowError(WorkflowValidationError):
    """The same (project, task) appears more than once in a save."""

    code: str = "DUPLICATE_ROW"

    def __init__(self, project_id: UUID, task_id: UUID):
        self.project_id = project_id
        self.task_id = task_id
        super().__init__(
            f"Duplicate row for project {project_id} / task {task_id}"
        )


class CommentRequiredError(WorkflowValidationError):
    """Action requires a non-blank comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A comment is required to {action} a timesheet")


class TextTooLongError(WorkflowValidationError):
    """Free text exceeds the configured limit."""

    code: str = "TEXT_TOO_LONG"

    def __init__(self, field: str, length: int, max_length: int):
        self.field = field
        self.length = length
        self.max_length = max_length
        super().__init__(
            f"{field} is {length} characters, maximum is {max_length}"
        )


class EmptyMessageError(WorkflowValidationError):
    """Chat message body is blank."""

    code: str = "EMPTY_MESSAGE"

    def __init__(self):
        super().__init__("Message body must not be empty")


# State-conflict exceptions


class StateConflictError(TimesheetKernelError):
    """
    Operation attempted against a timesheet or approval that is not in
    the required state, including lost locking races.

    Callers should refresh and decide again rather than retry blindly.
    """

    code: str = "STATE_CONFLICT"
    category: str = "state_conflict"
    retryable: bool = True


class InvalidTimesheetTransitionError(StateConflictError):
    """Workflow action is not legal from the current status."""

    code: str = "INVALID_TIMESHEET_TRANSITION"

    def __init__(self, timesheet_id: UUID, current_status: str, action: str):
        self.timesheet_id = timesheet_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} timesheet {timesheet_id} in status '{current_status}'"
        )


class TimesheetNotEditableError(StateConflictError):
    """Draft save attempted on a timesheet that is no longer editable."""

    code: str = "TIMESHEET_NOT_EDITABLE"

    def __init__(self, timesheet_id: UUID, current_status: str):
        self.timesheet_id = timesheet_id
        self.current_status = current_status
        super().__init__(
            f"Timesheet {timesheet_id} is '{current_status}' and can no longer be edited"
        )


class ApprovalAlreadyDecidedError(StateConflictError):
    """The approver's row has already left the pending state."""

    code: str = "APPROVAL_ALREADY_DECIDED"

    def __init__(self, timesheet_id: UUID, approver_id: UUID, current_status: str):
        self.timesheet_id = timesheet_id
        self.approver_id = approver_id
        self.current_status = current_status
        super().__init__(
            f"Approval by {approver_id} on timesheet {timesheet_id} "
            f"is already '{current_status}'"
        )


class DuplicateTimesheetError(StateConflictError):
    """A timesheet for this employee and period was created concurrently."""

    code: str = "DUPLICATE_TIMESHEET"

    def __init__(self, employee_id: UUID, period_start: str):
        self.employee_id = employee_id
        self.period_start = period_start
        super().__init__(
            f"A timesheet for employee {employee_id} starting {period_start} already exists"
        )


class LockTimeoutError(StateConflictError):
    """Lock wait timed out, or the transaction was chosen as deadlock victim."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Could not lock {entity_type} {entity_id}: held by a concurrent operation"
        )


# Authorization exceptions


class WorkflowAuthorizationError(TimesheetKernelError):
    """Actor is not permitted to perform the operation."""

    code: str = "AUTHORIZATION_ERROR"
    category: str = "authorization"


class NotTimesheetOwnerError(WorkflowAuthorizationError):
    """Only the owning employee may perform this action."""

    code: str = "NOT_TIMESHEET_OWNER"

    def __init__(self, timesheet_id: UUID, actor_id: UUID):
        self.timesheet_id = timesheet_id
        self.actor_id = actor_id
        super().__init__(
            f"Employee {actor_id} does not own timesheet {timesheet_id}"
        )


class NoPendingApprovalError(WorkflowAuthorizationError):
    """Actor has no approval request on this timesheet."""

    code: str = "NO_PENDING_APPROVAL"

    def __init__(self, timesheet_id: UUID, approver_id: UUID):
        self.timesheet_id = timesheet_id
        self.approver_id = approver_id
        super().__init__(
            f"Employee {approver_id} has no active approval request "
            f"for timesheet {timesheet_id}"
        )


class ReopenNotAllowedError(WorkflowAuthorizationError):
    """Actor is neither a manager nor the approver who rejected."""

    code: str = "REOPEN_NOT_ALLOWED"

    def __init__(self, timesheet_id: UUID, actor_id: UUID):
        self.timesheet_id = timesheet_id
        self.actor_id = actor_id
        super().__init__(
            f"Employee {actor_id} may not reopen timesheet {timesheet_id}"
        )


class TimesheetAccessDeniedError(WorkflowAuthorizationError):
    """Actor is not a participant of this timesheet."""

    code: str = "TIMESHEET_ACCESS_DENIED"

    def __init__(self, timesheet_id: UUID, actor_id: UUID):
        self.timesheet_id = timesheet_id
        self.actor_id = actor_id
        super().__init__(
            f"Employee {actor_id} has no access to timesheet {timesheet_id}"
        )


# Not-found exceptions


class NotFoundError(TimesheetKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    category: str = "not_found"


class TimesheetNotFoundError(NotFoundError):
    """Timesheet with given ID was not found."""

    code: str = "TIMESHEET_NOT_FOUND"

    def __init__(self, timesheet_id: UUID):
        self.timesheet_id = timesheet_id
        super().__init__(f"Timesheet not found: {timesheet_id}")


class ParentMessageNotFoundError(NotFoundError):
    """Parent chat message does not exist in this timesheet's thread."""

    code: str = "PARENT_MESSAGE_NOT_FOUND"

    def __init__(self, timesheet_id: UUID, parent_id: UUID):
        self.timesheet_id = timesheet_id
        self.parent_id = parent_id
        super().__init__(
            f"Parent message {parent_id} not found in timesheet {timesheet_id}"
        )


# Integrity exceptions


class WorkflowIntegrityError(TimesheetKernelError):
    """Unexpected failure below the coordinator; the operation is rolled back."""

    code: str = "WORKFLOW_INTEGRITY_ERROR"
    category: str = "integrity"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class ImmutabilityViolationError(WorkflowIntegrityError):
    """
    Attempted to modify or delete an append-only record.

    Workflow history and chat messages are never updated or deleted;
    submitted timesheets are never physically deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        TimesheetKernelError.__init__(
            self,
            f"Immutability violation on {entity_type} {entity_id}: {reason}",
        )
