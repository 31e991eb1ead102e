"""
DraftService -- the timesheet aggregate while it is editable.

Responsibility:
    Creates a timesheet for an (employee, period) on first save and
    replaces its rows wholesale on every later save, as long as the
    timesheet is ``draft`` or ``reopened``.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - Validation before lock: period, rows, hours and notes are checked
      before any row lock is requested.
    - Editability under lock: the existing timesheet is re-read with
      ``FOR UPDATE`` before its status is checked, so a save cannot race
      a submission.
    - Delete-all-then-recreate: rows are never diffed.  Old rows are
      flushed away before new ones are inserted so the
      (timesheet, project, task) unique constraint never sees both.
    - A reopened timesheet stays ``reopened`` after a save.

Failure modes:
    - WorkflowValidationError subclasses for malformed input.
    - TimesheetNotEditableError if the period's timesheet is in review,
      approved, or rejected.
    - NotTimesheetOwnerError on update_draft by someone else.
    - IntegrityError on a concurrent first save for the same period
      (mapped to DuplicateTimesheetError by the coordinator).
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.dtos import DraftSaveResult, RowInput, TimesheetInfo
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.validation import normalize_rows, validate_period
from timesheet_kernel.domain.workflow import (
    TimesheetStatus,
    WorkflowAction,
    can_perform,
)
from timesheet_kernel.exceptions import (
    NotTimesheetOwnerError,
    TimesheetNotEditableError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.timesheet import Timesheet, TimesheetRow
from timesheet_kernel.services.base import BaseService
from timesheet_kernel.services.lock_service import LockService

logger = get_logger("services.draft")


class DraftService(BaseService):
    """Create and edit draft timesheets."""

    def __init__(
        self,
        session: Session,
        locks: LockService,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session)
        self._locks = locks
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()

    def create_or_update_draft(
        self,
        employee_id: UUID,
        period_start: date,
        period_end: date,
        rows: Sequence[RowInput],
    ) -> DraftSaveResult:
        """Save the employee's draft for a period, creating it if needed."""
        validate_period(period_start, period_end, self._policy)
        normalized = normalize_rows(rows, self._policy)

        with self._locks.period_lock(employee_id, period_start) as timesheet:
            created = timesheet is None
            if created:
                now = self._clock.now()
                timesheet = Timesheet(
                    employee_id=employee_id,
                    period_start=period_start,
                    period_end=period_end,
                    status=TimesheetStatus.DRAFT.value,
                    created_at=now,
                    updated_at=now,
                )
                self.session.add(timesheet)
                self.session.flush()
            else:
                self._ensure_editable(timesheet)
                timesheet.period_end = period_end

            self._replace_rows(timesheet, normalized)

        logger.info(
            "draft_saved",
            extra={
                "timesheet_id": str(timesheet.id),
                "employee_id": str(employee_id),
                "newly_created": created,
                "row_count": len(normalized),
            },
        )
        return DraftSaveResult(timesheet=timesheet.to_dto(), created=created)

    def update_draft(
        self,
        timesheet_id: UUID,
        employee_id: UUID,
        period_start: date,
        period_end: date,
        rows: Sequence[RowInput],
    ) -> TimesheetInfo:
        """Edit an existing draft by id.  Only its owner may do so."""
        validate_period(period_start, period_end, self._policy)
        normalized = normalize_rows(rows, self._policy)

        with self._locks.timesheet_lock(timesheet_id) as timesheet:
            if timesheet.employee_id != employee_id:
                raise NotTimesheetOwnerError(timesheet_id, employee_id)
            self._ensure_editable(timesheet)

            timesheet.period_start = period_start
            timesheet.period_end = period_end
            self._replace_rows(timesheet, normalized)

        logger.info(
            "draft_updated",
            extra={
                "timesheet_id": str(timesheet_id),
                "row_count": len(normalized),
            },
        )
        return timesheet.to_dto()

    def _ensure_editable(self, timesheet: Timesheet) -> None:
        if not can_perform(TimesheetStatus(timesheet.status), WorkflowAction.SAVE_DRAFT):
            raise TimesheetNotEditableError(timesheet.id, timesheet.status)

    def _replace_rows(self, timesheet: Timesheet, rows: list[RowInput]) -> None:
        timesheet.rows.clear()
        self.session.flush()

        for position, row in enumerate(rows):
            entity = TimesheetRow(
                position=position,
                project_id=row.project_id,
                task_id=row.task_id,
                achievement_note=row.achievement_note,
            )
            entity.hours = row.hours
            timesheet.rows.append(entity)

        timesheet.updated_at = self._clock.now()
        self.session.flush()
