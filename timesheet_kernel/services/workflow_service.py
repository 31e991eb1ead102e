"""
WorkflowService -- the timesheet review state machine.

Responsibility:
    Executes submit, approve, reject and reopen against one timesheet:
    checks the transition is legal from the current status, mutates the
    approval rows, advances or finalizes the chain, and records every
    transition in the history.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Delegates stage planning to ApprovalChainResolver, locking to
    LockService, audit to HistoryRecorder.  Transaction boundaries belong
    to the TimesheetWorkflow coordinator.

Operation order (every mutation):
    1. Validate input (no lock held)
    2. Lock the timesheet (LockService.timesheet_lock)
    3. Check actor and transition legality on the freshly locked row
    4. For approve/reject: lock the actor's approval rows
    5. Mutate, flush, then count remaining pending rows
    6. Advance/finalize, append history

Invariants enforced:
    - Stage advancement is computed after the current row's new status
      is flushed, under both locks, so the pending count is never stale.
    - A stage advances only when it has zero pending and zero rejected
      rows.
    - One rejection ends the cycle: every other pending row, at any
      stage, becomes auto_closed.
    - Reopen deletes every approval row and no history.

Failure modes:
    - InvalidTimesheetTransitionError: action not legal from the status.
    - ApprovalAlreadyDecidedError: the actor's rows exist but none is
      pending (the losing side of an approval race).
    - NoPendingApprovalError: the actor has no rows on this timesheet.
    - NotTimesheetOwnerError, ReopenNotAllowedError: wrong actor.
    - EmptyTimesheetError: submit without rows.
    - CommentRequiredError / TextTooLongError: bad comment.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.dtos import TimesheetInfo
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.validation import optional_comment, require_comment
from timesheet_kernel.domain.workflow import (
    ApprovalStatus,
    HistoryAction,
    ParticipantRole,
    Stage,
    TimesheetStatus,
    WorkflowAction,
    can_perform,
)
from timesheet_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    EmptyTimesheetError,
    InvalidTimesheetTransitionError,
    NoPendingApprovalError,
    NotTimesheetOwnerError,
    ReopenNotAllowedError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.base import BaseService
from timesheet_kernel.services.chain_resolver import ApprovalChainResolver
from timesheet_kernel.services.history_recorder import HistoryRecorder
from timesheet_kernel.services.lock_service import LockService
from timesheet_kernel.services.participant_access import ParticipantAccess

logger = get_logger("services.workflow")

AUTO_APPROVAL_COMMENT = "Automatically approved: no eligible approver found for any remaining stage"
AUTO_CLOSE_COMMENT = "Automatically closed due to rejection by {actor}"


class WorkflowService(BaseService):
    """Submit / approve / reject / reopen."""

    def __init__(
        self,
        session: Session,
        directory: OrganizationDirectory,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        locks: LockService | None = None,
        history: HistoryRecorder | None = None,
        resolver: ApprovalChainResolver | None = None,
        access: ParticipantAccess | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()
        self._locks = locks or LockService(session, self._policy.lock_timeout_ms)
        self._history = history or HistoryRecorder(session, self._clock)
        self._resolver = resolver or ApprovalChainResolver(
            session, directory, self._clock, self._policy,
        )
        self._access = access or ParticipantAccess(session, directory, self._policy)

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    def submit(self, timesheet_id: UUID, employee_id: UUID) -> TimesheetInfo:
        """Send a draft or reopened timesheet into review."""
        with self._locks.timesheet_lock(timesheet_id) as timesheet:
            if timesheet.employee_id != employee_id:
                raise NotTimesheetOwnerError(timesheet_id, employee_id)
            self._require(timesheet, WorkflowAction.SUBMIT)
            if not timesheet.rows:
                raise EmptyTimesheetError(timesheet_id)

            was_reopened = timesheet.status == TimesheetStatus.REOPENED.value
            if was_reopened:
                self._delete_approvals(timesheet_id)

            now = self._clock.now()
            timesheet.status = TimesheetStatus.IN_REVIEW.value
            timesheet.submitted_at = now
            timesheet.reviewed_at = None
            timesheet.updated_at = now
            self.session.flush()

            self._history.record(
                timesheet_id,
                ParticipantRole.EMPLOYEE,
                HistoryAction.SUBMITTED,
                acted_by=employee_id,
            )

            resolution = self._resolver.resolve(timesheet, after=None)
            if resolution.exhausted:
                self._auto_approve(timesheet, vacant_stage=Stage.GM)

        logger.info(
            "timesheet_submitted",
            extra={
                "timesheet_id": str(timesheet_id),
                "resubmission": was_reopened,
                "entry_stage": resolution.stage.value if resolution.stage else None,
                "status": timesheet.status,
            },
        )
        return timesheet.to_dto()

    # ------------------------------------------------------------------
    # approve
    # ------------------------------------------------------------------

    def approve(
        self,
        timesheet_id: UUID,
        approver_id: UUID,
        comment: str | None = None,
    ) -> TimesheetInfo:
        """Record one approver's approval and advance the chain if the stage cleared."""
        comment = optional_comment(comment, self._policy)

        with self._locks.timesheet_lock(timesheet_id) as timesheet:
            self._require(timesheet, WorkflowAction.APPROVE)

            with self._locks.approval_lock(timesheet_id, approver_id) as rows:
                row = self._pending_row(timesheet_id, approver_id, rows)
                stage = Stage(row.stage)

                now = self._clock.now()
                row.status = ApprovalStatus.APPROVED.value
                row.decided_at = now
                row.comment = comment
                self.session.flush()

                self._history.record(
                    timesheet_id,
                    ParticipantRole(stage.value),
                    HistoryAction.APPROVED,
                    acted_by=approver_id,
                    comment=comment,
                )

                pending, rejected = self._stage_counts(timesheet_id, stage)
                logger.info(
                    "approval_recorded",
                    extra={
                        "timesheet_id": str(timesheet_id),
                        "approver_id": str(approver_id),
                        "stage": stage.value,
                        "stage_pending": pending,
                    },
                )

                if pending == 0 and rejected == 0:
                    self._advance(timesheet, cleared=stage)

        return timesheet.to_dto()

    # ------------------------------------------------------------------
    # reject
    # ------------------------------------------------------------------

    def reject(self, timesheet_id: UUID, approver_id: UUID, comment: str | None) -> TimesheetInfo:
        """Reject and close the whole review cycle."""
        comment = require_comment(comment, "reject", self._policy)

        with self._locks.timesheet_lock(timesheet_id) as timesheet:
            self._require(timesheet, WorkflowAction.REJECT)

            with self._locks.approval_lock(timesheet_id, approver_id) as rows:
                row = self._pending_row(timesheet_id, approver_id, rows)
                stage = Stage(row.stage)

                now = self._clock.now()
                row.status = ApprovalStatus.REJECTED.value
                row.decided_at = now
                row.comment = comment
                self.session.flush()

                others = self.session.execute(
                    select(TimesheetApproval).where(
                        TimesheetApproval.timesheet_id == timesheet_id,
                        TimesheetApproval.status == ApprovalStatus.PENDING.value,
                    )
                ).scalars().all()
                for other in others:
                    other.status = ApprovalStatus.AUTO_CLOSED.value
                    other.decided_at = now
                    other.comment = AUTO_CLOSE_COMMENT.format(actor=approver_id)

                timesheet.status = TimesheetStatus.REJECTED.value
                timesheet.reviewed_at = now
                timesheet.updated_at = now
                self.session.flush()

                self._history.record(
                    timesheet_id,
                    ParticipantRole(stage.value),
                    HistoryAction.REJECTED,
                    acted_by=approver_id,
                    comment=comment,
                )

        logger.info(
            "timesheet_rejected",
            extra={
                "timesheet_id": str(timesheet_id),
                "approver_id": str(approver_id),
                "stage": stage.value,
                "auto_closed": len(others),
            },
        )
        return timesheet.to_dto()

    # ------------------------------------------------------------------
    # reopen
    # ------------------------------------------------------------------

    def reopen(self, timesheet_id: UUID, actor_id: UUID, comment: str | None) -> TimesheetInfo:
        """Clear a rejected review cycle so the employee can resubmit."""
        comment = require_comment(comment, "reopen", self._policy)

        with self._locks.timesheet_lock(timesheet_id) as timesheet:
            self._require(timesheet, WorkflowAction.REOPEN)

            if not (self._access.is_manager(actor_id) or self._is_rejecter(timesheet_id, actor_id)):
                raise ReopenNotAllowedError(timesheet_id, actor_id)

            deleted = self._delete_approvals(timesheet_id)

            now = self._clock.now()
            timesheet.status = TimesheetStatus.REOPENED.value
            timesheet.updated_at = now
            self.session.flush()

            self._history.record(
                timesheet_id,
                self._access.role_of(timesheet, actor_id),
                HistoryAction.REOPENED,
                acted_by=actor_id,
                comment=comment,
            )

        logger.info(
            "timesheet_reopened",
            extra={
                "timesheet_id": str(timesheet_id),
                "actor_id": str(actor_id),
                "approvals_deleted": deleted,
            },
        )
        return timesheet.to_dto()

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _require(self, timesheet: Timesheet, action: WorkflowAction) -> None:
        if not can_perform(TimesheetStatus(timesheet.status), action):
            raise InvalidTimesheetTransitionError(
                timesheet.id, timesheet.status, action.value,
            )

    def _pending_row(
        self,
        timesheet_id: UUID,
        approver_id: UUID,
        rows: list[TimesheetApproval],
    ) -> TimesheetApproval:
        if not rows:
            raise NoPendingApprovalError(timesheet_id, approver_id)
        for row in rows:
            if row.status == ApprovalStatus.PENDING.value:
                return row
        logger.warning(
            "approval_already_decided",
            extra={
                "timesheet_id": str(timesheet_id),
                "approver_id": str(approver_id),
                "current_status": rows[-1].status,
            },
        )
        raise ApprovalAlreadyDecidedError(timesheet_id, approver_id, rows[-1].status)

    def _stage_counts(self, timesheet_id: UUID, stage: Stage) -> tuple[int, int]:
        counts = dict(
            self.session.execute(
                select(TimesheetApproval.status, func.count())
                .where(
                    TimesheetApproval.timesheet_id == timesheet_id,
                    TimesheetApproval.stage == stage.value,
                )
                .group_by(TimesheetApproval.status)
            ).all()
        )
        return (
            counts.get(ApprovalStatus.PENDING.value, 0),
            counts.get(ApprovalStatus.REJECTED.value, 0),
        )

    def _advance(self, timesheet: Timesheet, cleared: Stage) -> None:
        if cleared is Stage.GM:
            self._finalize(timesheet)
            logger.info(
                "timesheet_approved",
                extra={"timesheet_id": str(timesheet.id), "final_stage": cleared.value},
            )
            return

        resolution = self._resolver.resolve(timesheet, after=cleared)
        if resolution.exhausted:
            self._auto_approve(timesheet, vacant_stage=Stage.GM)
            return

        logger.info(
            "approval_stage_advanced",
            extra={
                "timesheet_id": str(timesheet.id),
                "from_stage": cleared.value,
                "to_stage": resolution.stage.value,
            },
        )

    def _auto_approve(self, timesheet: Timesheet, vacant_stage: Stage) -> None:
        self._finalize(timesheet)
        self._history.record(
            timesheet.id,
            ParticipantRole(vacant_stage.value),
            HistoryAction.APPROVED,
            acted_by=timesheet.employee_id,
            comment=AUTO_APPROVAL_COMMENT,
            automatic=True,
        )
        logger.info(
            "timesheet_auto_approved",
            extra={
                "timesheet_id": str(timesheet.id),
                "vacant_stage": vacant_stage.value,
            },
        )

    def _finalize(self, timesheet: Timesheet) -> None:
        now = self._clock.now()
        timesheet.status = TimesheetStatus.APPROVED.value
        timesheet.reviewed_at = now
        timesheet.updated_at = now
        self.session.flush()

    def _delete_approvals(self, timesheet_id: UUID) -> int:
        result = self.session.execute(
            delete(TimesheetApproval)
            .where(TimesheetApproval.timesheet_id == timesheet_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def _is_rejecter(self, timesheet_id: UUID, actor_id: UUID) -> bool:
        return self.session.execute(
            select(TimesheetApproval.id).where(
                TimesheetApproval.timesheet_id == timesheet_id,
                TimesheetApproval.approver_id == actor_id,
                TimesheetApproval.status == ApprovalStatus.REJECTED.value,
            )
        ).first() is not None
