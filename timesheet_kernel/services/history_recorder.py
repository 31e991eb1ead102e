"""
HistoryRecorder -- append-only workflow audit trail.

Responsibility:
    Appends one immutable TimesheetWorkflowHistory record per workflow
    transition: who, when, what action at which stage, and why.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by WorkflowService inside the locked transaction of the
    operation being recorded.

Invariants enforced:
    - Append-only: never reads-modifies-writes an existing entry
      (update/delete are additionally blocked by db/immutability.py).
    - Commit-order sequencing: ``sequence`` is max+1 for the timesheet,
      computed while the caller holds the timesheet lock, so entries are
      numbered in the order their operations commit.

Failure modes:
    - IntegrityError on (timesheet_id, sequence) if a caller bypassed the
      timesheet lock; the whole operation rolls back.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.dtos import HistoryEntryInfo
from timesheet_kernel.domain.workflow import HistoryAction, ParticipantRole
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.history import TimesheetWorkflowHistory
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.history")


class HistoryRecorder(BaseService):
    """Writes history entries.  Caller must hold the timesheet lock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        timesheet_id: UUID,
        stage: ParticipantRole,
        action: HistoryAction,
        acted_by: UUID,
        comment: str | None = None,
        automatic: bool = False,
    ) -> HistoryEntryInfo:
        last = self.session.execute(
            select(func.max(TimesheetWorkflowHistory.sequence)).where(
                TimesheetWorkflowHistory.timesheet_id == timesheet_id
            )
        ).scalar_one()

        entry = TimesheetWorkflowHistory(
            timesheet_id=timesheet_id,
            sequence=(last or 0) + 1,
            stage=stage.value,
            action=action.value,
            acted_by=acted_by,
            comment=comment,
            automatic=automatic,
            acted_at=self._clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "history_recorded",
            extra={
                "timesheet_id": str(timesheet_id),
                "sequence": entry.sequence,
                "stage": stage.value,
                "action": action.value,
                "acted_by": str(acted_by),
                "automatic": automatic,
            },
        )
        return entry.to_dto()
