"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    draft row input, timesheet/approval/history/chat snapshots, and the
    workflow status projection.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Models expose ``to_dto()`` converters that
    are only invoked from services and selectors.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities, so callers
      cannot mutate workflow state outside a locked transaction.
    - Hours are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from timesheet_kernel.domain.workflow import (
    ApprovalStatus,
    HistoryAction,
    ParticipantRole,
    Stage,
    TimesheetStatus,
)

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


# =========================================================================
# Input
# =========================================================================


@dataclass(frozen=True)
class RowInput:
    """One line item entered by the employee on a draft save.

    ``hours`` holds the seven day-buckets, Monday first.
    """

    project_id: UUID
    task_id: UUID
    hours: tuple[Decimal, ...]
    achievement_note: str | None = None

    @property
    def total_hours(self) -> Decimal:
        return sum(self.hours, Decimal("0"))


# =========================================================================
# Snapshots
# =========================================================================


@dataclass(frozen=True)
class TimesheetRowInfo:
    row_id: UUID
    project_id: UUID
    task_id: UUID
    hours: tuple[Decimal, ...]
    total_hours: Decimal
    achievement_note: str | None = None


@dataclass(frozen=True)
class TimesheetInfo:
    """Immutable snapshot of a timesheet and its rows."""

    timesheet_id: UUID
    employee_id: UUID
    period_start: date
    period_end: date
    status: TimesheetStatus
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    rows: tuple[TimesheetRowInfo, ...] = ()

    @property
    def total_hours(self) -> Decimal:
        return sum((r.total_hours for r in self.rows), Decimal("0"))

    @property
    def project_ids(self) -> frozenset[UUID]:
        return frozenset(r.project_id for r in self.rows)


@dataclass(frozen=True)
class ApprovalInfo:
    approval_id: UUID
    timesheet_id: UUID
    approver_id: UUID
    stage: Stage
    status: ApprovalStatus
    comment: str | None = None
    decided_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class HistoryEntryInfo:
    """One append-only history record."""

    entry_id: UUID
    timesheet_id: UUID
    sequence: int
    stage: ParticipantRole
    action: HistoryAction
    acted_by: UUID
    comment: str | None
    automatic: bool
    acted_at: datetime


@dataclass(frozen=True)
class ChatMessageInfo:
    """A chat message with its replies, oldest first."""

    message_id: UUID
    timesheet_id: UUID
    parent_id: UUID | None
    sender_id: UUID
    sender_role: ParticipantRole
    body: str
    posted_at: datetime
    replies: tuple[ChatMessageInfo, ...] = ()


@dataclass(frozen=True)
class DraftSaveResult:
    timesheet: TimesheetInfo
    created: bool


# =========================================================================
# Workflow status projection
# =========================================================================


@dataclass(frozen=True)
class StageSummary:
    """Counters for the approval rows of one stage."""

    stage: Stage
    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    auto_closed: int = 0
    approvals: tuple[ApprovalInfo, ...] = ()

    @property
    def is_cleared(self) -> bool:
        return self.total > 0 and self.pending == 0 and self.rejected == 0


@dataclass(frozen=True)
class WorkflowStatusView:
    """Everything needed to explain why a timesheet is where it is."""

    timesheet: TimesheetInfo
    current_stage: str
    stages: tuple[StageSummary, ...] = field(default_factory=tuple)
    history: tuple[HistoryEntryInfo, ...] = field(default_factory=tuple)

    def stage(self, stage: Stage) -> StageSummary:
        for summary in self.stages:
            if summary.stage == stage:
                return summary
        return StageSummary(stage=stage)
