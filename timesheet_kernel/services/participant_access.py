"""
ParticipantAccess -- who may see and discuss a timesheet.

Responsibility:
    One predicate for reading the thread, posting to it, and reading the
    workflow status: the person is the owner, holds (or held) an approval
    row on this timesheet, appears in its history as a non-employee actor,
    or holds a manager role.  Also resolves a person's role relative to
    the timesheet for chat and reopen history.

Architecture position:
    Kernel > Services -- read-only helper used by ChatService,
    WorkflowService and the coordinator.  Never writes.

Notes:
    Reopen deletes approval rows, so the history check keeps earlier
    cycles' approvers in the conversation.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.roles import TimesheetParticipants, resolve_role
from timesheet_kernel.domain.workflow import ParticipantRole
from timesheet_kernel.exceptions import TimesheetAccessDeniedError
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.history import TimesheetWorkflowHistory
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.base import BaseService


class ParticipantAccess(BaseService):

    def __init__(
        self,
        session: Session,
        directory: OrganizationDirectory,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session)
        self._directory = directory
        self._policy = policy or WorkflowPolicy()

    def is_manager(self, person_id: UUID) -> bool:
        return bool(self._directory.roles_of(person_id) & self._policy.manager_role_names)

    def can_access(self, timesheet: Timesheet, person_id: UUID) -> bool:
        if person_id == timesheet.employee_id:
            return True

        has_approval = self.session.execute(
            select(
                exists().where(
                    TimesheetApproval.timesheet_id == timesheet.id,
                    TimesheetApproval.approver_id == person_id,
                )
            )
        ).scalar()
        if has_approval:
            return True

        acted_as_reviewer = self.session.execute(
            select(
                exists().where(
                    TimesheetWorkflowHistory.timesheet_id == timesheet.id,
                    TimesheetWorkflowHistory.acted_by == person_id,
                    TimesheetWorkflowHistory.stage != ParticipantRole.EMPLOYEE.value,
                )
            )
        ).scalar()
        if acted_as_reviewer:
            return True

        return self.is_manager(person_id)

    def ensure_access(self, timesheet: Timesheet, person_id: UUID) -> None:
        if not self.can_access(timesheet, person_id):
            raise TimesheetAccessDeniedError(timesheet.id, person_id)

    def role_of(self, timesheet: Timesheet, person_id: UUID) -> ParticipantRole:
        participants = TimesheetParticipants.lookup(
            self._directory,
            owner_id=timesheet.employee_id,
            project_ids={row.project_id for row in timesheet.rows},
        )
        return resolve_role(person_id, participants)
