"""
Config -> Kernel Bridges.

Converts loaded settings into kernel inputs.  Lives here because the
kernel must never import ``timesheet_config``.

Usage:
    from timesheet_config import get_active_config
    from timesheet_config.bridges import to_workflow_policy

    settings = get_active_config()
    workflow = TimesheetWorkflow(session, directory, policy=to_workflow_policy(settings))
"""

from __future__ import annotations

from timesheet_config.schema import TimesheetSettings
from timesheet_kernel.domain.policy import WorkflowPolicy


def to_workflow_policy(settings: TimesheetSettings) -> WorkflowPolicy:
    return WorkflowPolicy(
        max_hours_per_day=settings.max_hours_per_day,
        max_period_days=settings.max_period_days,
        max_comment_length=settings.max_comment_length,
        max_note_length=settings.max_note_length,
        max_message_length=settings.max_message_length,
        lock_timeout_ms=settings.lock_timeout_ms,
        manager_role_names=settings.manager_role_names,
        general_manager_role_names=settings.general_manager_role_names,
    )
