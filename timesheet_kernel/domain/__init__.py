"""Pure domain layer - enums, DTOs, directory protocol, role resolution. Zero I/O."""

from timesheet_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from timesheet_kernel.domain.directory import OrganizationDirectory, StaticDirectory
from timesheet_kernel.domain.dtos import (
    ApprovalInfo,
    ChatMessageInfo,
    DraftSaveResult,
    HistoryEntryInfo,
    RowInput,
    StageSummary,
    TimesheetInfo,
    TimesheetRowInfo,
    WorkflowStatusView,
)
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.results import (
    ErrorKind,
    OperationError,
    OperationResult,
)
from timesheet_kernel.domain.roles import TimesheetParticipants, resolve_role
from timesheet_kernel.domain.workflow import (
    ApprovalStatus,
    HistoryAction,
    ParticipantRole,
    Stage,
    TimesheetStatus,
    WorkflowAction,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "OrganizationDirectory",
    "StaticDirectory",
    "ApprovalInfo",
    "ChatMessageInfo",
    "DraftSaveResult",
    "HistoryEntryInfo",
    "RowInput",
    "StageSummary",
    "TimesheetInfo",
    "TimesheetRowInfo",
    "WorkflowStatusView",
    "WorkflowPolicy",
    "ErrorKind",
    "OperationError",
    "OperationResult",
    "TimesheetParticipants",
    "resolve_role",
    "ApprovalStatus",
    "HistoryAction",
    "ParticipantRole",
    "Stage",
    "TimesheetStatus",
    "WorkflowAction",
]
