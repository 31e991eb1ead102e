"""
Timesheet workflow types (``timesheet_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the timesheet review state machine: timesheet and
approval statuses, the escalation order of approval stages, history
vocabulary, and the table of legal transitions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``TIMESHEET_WORKFLOW.transitions`` is the only source of legal status
  changes; services consult ``can_perform`` before mutating.
* ``APPROVAL_TRANSITIONS``: an approval row only ever leaves ``pending``.
  ``approved``, ``rejected`` and ``auto_closed`` have no outgoing edges.
* Stages escalate strictly in ``STAGE_ORDER`` (pm -> dm -> gm).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =========================================================================
# Statuses
# =========================================================================


class TimesheetStatus(str, Enum):
    """Overall status of a timesheet."""

    DRAFT = "draft"
    REOPENED = "reopened"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


EDITABLE_STATUSES: frozenset[TimesheetStatus] = frozenset({
    TimesheetStatus.DRAFT,
    TimesheetStatus.REOPENED,
})


class ApprovalStatus(str, Enum):
    """Status of a single approver's row."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_CLOSED = "auto_closed"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.AUTO_CLOSED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.AUTO_CLOSED: frozenset(),
}


# =========================================================================
# Stages and roles
# =========================================================================


class Stage(str, Enum):
    """Approval stage, in escalation order."""

    PM = "pm"
    DM = "dm"
    GM = "gm"


STAGE_ORDER: tuple[Stage, ...] = (Stage.PM, Stage.DM, Stage.GM)


def stages_after(stage: Stage | None) -> tuple[Stage, ...]:
    """Stages still to try, in order, once ``stage`` has cleared.

    ``None`` means nothing has been tried yet (a fresh submission).
    """
    if stage is None:
        return STAGE_ORDER
    return STAGE_ORDER[STAGE_ORDER.index(stage) + 1:]


class ParticipantRole(str, Enum):
    """A person's relationship to one particular timesheet."""

    EMPLOYEE = "employee"
    PM = "pm"
    DM = "dm"
    GM = "gm"


class HistoryAction(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    REOPENED = "reopened"


# =========================================================================
# State machine
# =========================================================================


class WorkflowAction(str, Enum):
    """Actions that drive the timesheet status."""

    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    APPROVE = "approve"
    FINALIZE = "finalize"
    REJECT = "reject"
    REOPEN = "reopen"


@dataclass(frozen=True)
class Transition:
    """A valid status transition.

    Contract: frozen.  ``action`` names the operation; a status may have
    several transitions for the same action with different targets, in
    which case the service picks the target.
    """
    from_state: TimesheetStatus
    to_state: TimesheetStatus
    action: WorkflowAction


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for the timesheet lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    initial_state: TimesheetStatus
    states: tuple[TimesheetStatus, ...]
    transitions: tuple[Transition, ...]

    def targets(
        self, from_state: TimesheetStatus, action: WorkflowAction,
    ) -> frozenset[TimesheetStatus]:
        return frozenset(
            t.to_state
            for t in self.transitions
            if t.from_state == from_state and t.action == action
        )


TIMESHEET_WORKFLOW = Workflow(
    name="timesheet_review",
    initial_state=TimesheetStatus.DRAFT,
    states=tuple(TimesheetStatus),
    transitions=(
        Transition(TimesheetStatus.DRAFT, TimesheetStatus.DRAFT, WorkflowAction.SAVE_DRAFT),
        Transition(TimesheetStatus.REOPENED, TimesheetStatus.REOPENED, WorkflowAction.SAVE_DRAFT),
        Transition(TimesheetStatus.DRAFT, TimesheetStatus.IN_REVIEW, WorkflowAction.SUBMIT),
        Transition(TimesheetStatus.REOPENED, TimesheetStatus.IN_REVIEW, WorkflowAction.SUBMIT),
        # A chain with no approver anywhere finalizes at submission.
        Transition(TimesheetStatus.DRAFT, TimesheetStatus.APPROVED, WorkflowAction.SUBMIT),
        Transition(TimesheetStatus.REOPENED, TimesheetStatus.APPROVED, WorkflowAction.SUBMIT),
        Transition(TimesheetStatus.IN_REVIEW, TimesheetStatus.IN_REVIEW, WorkflowAction.APPROVE),
        Transition(TimesheetStatus.IN_REVIEW, TimesheetStatus.APPROVED, WorkflowAction.FINALIZE),
        Transition(TimesheetStatus.IN_REVIEW, TimesheetStatus.REJECTED, WorkflowAction.REJECT),
        Transition(TimesheetStatus.REJECTED, TimesheetStatus.REOPENED, WorkflowAction.REOPEN),
    ),
)


def can_perform(status: TimesheetStatus, action: WorkflowAction) -> bool:
    """True if ``action`` has at least one legal target from ``status``."""
    return bool(TIMESHEET_WORKFLOW.targets(status, action))


def is_legal(
    from_state: TimesheetStatus,
    action: WorkflowAction,
    to_state: TimesheetStatus,
) -> bool:
    return to_state in TIMESHEET_WORKFLOW.targets(from_state, action)
