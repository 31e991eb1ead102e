"""ORM models for the timesheet kernel."""

from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.chat import TimesheetChat
from timesheet_kernel.models.history import TimesheetWorkflowHistory
from timesheet_kernel.models.timesheet import Timesheet, TimesheetRow

__all__ = [
    "Timesheet",
    "TimesheetRow",
    "TimesheetApproval",
    "TimesheetWorkflowHistory",
    "TimesheetChat",
]
