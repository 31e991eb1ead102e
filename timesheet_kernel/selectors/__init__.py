"""Read-only selectors for workflow projections."""

from timesheet_kernel.selectors.chat_selector import ChatSelector
from timesheet_kernel.selectors.timesheet_selector import TimesheetSelector

__all__ = ["ChatSelector", "TimesheetSelector"]
