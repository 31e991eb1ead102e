"""
Module: timesheet_kernel.selectors.timesheet_selector
Responsibility: Read-only projections of timesheets and their workflow:
    status with per-stage counters, history, approver inbox, and the
    employee's reopened list.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - History is returned in sequence order, which is commit order.
    - Inbox ordering: newest submission first.

Failure modes:
    - Returns None / empty tuples when nothing matches; never raises on
      absence of data.  Access checks belong to the caller.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from timesheet_kernel.domain.dtos import (
    HistoryEntryInfo,
    StageSummary,
    TimesheetInfo,
    WorkflowStatusView,
)
from timesheet_kernel.domain.workflow import (
    STAGE_ORDER,
    ApprovalStatus,
    Stage,
    TimesheetStatus,
)
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.history import TimesheetWorkflowHistory
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.selectors.base import BaseSelector

_STAGE_LABEL_BY_STATUS = {
    TimesheetStatus.DRAFT: "employee",
    TimesheetStatus.REOPENED: "reopened",
    TimesheetStatus.APPROVED: "completed",
    TimesheetStatus.REJECTED: "rejected",
}


class TimesheetSelector(BaseSelector[Timesheet]):
    """Selector for timesheet workflow queries."""

    def get_timesheet(self, timesheet_id: UUID) -> TimesheetInfo | None:
        timesheet = self.session.get(Timesheet, timesheet_id, populate_existing=True)
        return timesheet.to_dto() if timesheet is not None else None

    def get_history(self, timesheet_id: UUID) -> tuple[HistoryEntryInfo, ...]:
        entries = self.session.execute(
            select(TimesheetWorkflowHistory)
            .where(TimesheetWorkflowHistory.timesheet_id == timesheet_id)
            .order_by(TimesheetWorkflowHistory.sequence)
        ).scalars()
        return tuple(entry.to_dto() for entry in entries)

    def stage_summaries(self, timesheet_id: UUID) -> tuple[StageSummary, ...]:
        """Counters for every stage that has at least one row, in stage order."""
        approvals = self.session.execute(
            select(TimesheetApproval)
            .where(TimesheetApproval.timesheet_id == timesheet_id)
            .order_by(TimesheetApproval.created_at, TimesheetApproval.approver_id)
        ).scalars().all()

        by_stage: dict[Stage, list] = {}
        for approval in approvals:
            by_stage.setdefault(Stage(approval.stage), []).append(approval.to_dto())

        summaries = []
        for stage in STAGE_ORDER:
            rows = by_stage.get(stage)
            if not rows:
                continue
            statuses = [r.status for r in rows]
            summaries.append(
                StageSummary(
                    stage=stage,
                    total=len(rows),
                    approved=statuses.count(ApprovalStatus.APPROVED),
                    pending=statuses.count(ApprovalStatus.PENDING),
                    rejected=statuses.count(ApprovalStatus.REJECTED),
                    auto_closed=statuses.count(ApprovalStatus.AUTO_CLOSED),
                    approvals=tuple(rows),
                )
            )
        return tuple(summaries)

    def get_workflow_status(self, timesheet_id: UUID) -> WorkflowStatusView | None:
        timesheet = self.session.get(Timesheet, timesheet_id, populate_existing=True)
        if timesheet is None:
            return None

        info = timesheet.to_dto()
        stages = self.stage_summaries(timesheet_id)
        if info.status is TimesheetStatus.IN_REVIEW:
            # Stages open in order, so the latest one present is current.
            current = stages[-1].stage.value if stages else "employee"
        else:
            current = _STAGE_LABEL_BY_STATUS[info.status]

        return WorkflowStatusView(
            timesheet=info,
            current_stage=current,
            stages=stages,
            history=self.get_history(timesheet_id),
        )

    def pending_for_approver(
        self,
        approver_id: UUID,
        stage: Stage | None = None,
    ) -> tuple[TimesheetInfo, ...]:
        """Timesheets waiting on this approver, newest submission first."""
        query = (
            select(Timesheet)
            .join(TimesheetApproval, TimesheetApproval.timesheet_id == Timesheet.id)
            .where(
                TimesheetApproval.approver_id == approver_id,
                TimesheetApproval.status == ApprovalStatus.PENDING.value,
                Timesheet.status == TimesheetStatus.IN_REVIEW.value,
            )
            .order_by(Timesheet.submitted_at.desc(), Timesheet.id)
        )
        if stage is not None:
            query = query.where(TimesheetApproval.stage == stage.value)

        return tuple(t.to_dto() for t in self.session.execute(query).scalars().unique())

    def reopened_for_employee(self, employee_id: UUID) -> tuple[TimesheetInfo, ...]:
        timesheets = self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.employee_id == employee_id,
                Timesheet.status == TimesheetStatus.REOPENED.value,
            )
            .order_by(Timesheet.period_start.desc())
        ).scalars()
        return tuple(t.to_dto() for t in timesheets)
