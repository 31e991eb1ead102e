"""
TimesheetWorkflow -- the operation boundary of the timesheet kernel.

Responsibility:
    Single entry point for the surrounding application.  Wires the
    flush-only services to one session, runs each operation as one
    transaction, and converts every failure into a typed
    ``OperationResult`` so callers must handle state conflicts apart
    from validation, authorization and not-found failures.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Everything below it flushes; only this class commits or rolls back,
    which is also what releases the row locks taken by LockService.

Operation flow:
    op(..., actor_id)
      1. Bind LogContext (correlation_id, timesheet_id, actor_id, operation)
      2. Open a savepoint and delegate to DraftService / WorkflowService /
         ChatService / selectors
      3. Commit on success (when auto_commit=True)
      4. On any failure: roll back to the savepoint (and the whole
         transaction when auto_commit=True), log, return OperationResult
         with error

Invariants enforced:
    - Atomicity: a failure anywhere inside chain construction or stage
      advancement rolls back the whole operation; the timesheet is left
      exactly as it was.
    - Explicit actors: every operation takes the acting person's id; there
      is no ambient "current user".

Failure mapping:
    - TimesheetKernelError subclasses      -> their own category/code
    - lock wait timeout / deadlock         -> LockTimeoutError (409, retryable)
    - unique (employee, period) violation  -> DuplicateTimesheetError (409)
    - any other SQLAlchemy error           -> WorkflowIntegrityError (500)
    - anything else raised underneath      -> WorkflowIntegrityError (500),
      original kept as __cause__
"""

from __future__ import annotations

import time
from datetime import date
from typing import Callable, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.dtos import (
    ChatMessageInfo,
    DraftSaveResult,
    HistoryEntryInfo,
    RowInput,
    TimesheetInfo,
    WorkflowStatusView,
)
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.results import OperationError, OperationResult
from timesheet_kernel.domain.workflow import Stage
from timesheet_kernel.exceptions import (
    DuplicateTimesheetError,
    LockTimeoutError,
    TimesheetKernelError,
    TimesheetNotFoundError,
    WorkflowIntegrityError,
)
from timesheet_kernel.logging_config import LogContext, get_logger
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.selectors.chat_selector import ChatSelector
from timesheet_kernel.selectors.timesheet_selector import TimesheetSelector
from timesheet_kernel.services.chat_service import ChatService
from timesheet_kernel.services.draft_service import DraftService
from timesheet_kernel.services.history_recorder import HistoryRecorder
from timesheet_kernel.services.lock_service import LockService, is_lock_conflict
from timesheet_kernel.services.participant_access import ParticipantAccess
from timesheet_kernel.services.chain_resolver import ApprovalChainResolver
from timesheet_kernel.services.workflow_service import WorkflowService

logger = get_logger("services.workflow_coordinator")

T = TypeVar("T")

_PERIOD_CONSTRAINT_MARKERS = (
    "uq_timesheets_employee_period",
    "timesheets.employee_id, timesheets.period_start",
)


class TimesheetWorkflow:
    """
    Facade over the timesheet workflow core.

    Contract:
        Every public method returns an ``OperationResult``.  It never
        raises for an expected failure.

    Usage:
        workflow = TimesheetWorkflow(session, directory, clock=SystemClock())
        result = workflow.approve(timesheet_id, approver_id=manager_id)
        if result.is_success:
            render(result.value)
        elif result.error.retryable:
            refresh_and_decide_again()
    """

    def __init__(
        self,
        session: Session,
        directory: OrganizationDirectory,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()
        self._auto_commit = auto_commit

        self._locks = LockService(session, self._policy.lock_timeout_ms)
        self._history = HistoryRecorder(session, self._clock)
        self._access = ParticipantAccess(session, directory, self._policy)
        self._drafts = DraftService(session, self._locks, self._clock, self._policy)
        self._workflow = WorkflowService(
            session,
            directory,
            clock=self._clock,
            policy=self._policy,
            locks=self._locks,
            history=self._history,
            resolver=ApprovalChainResolver(session, directory, self._clock, self._policy),
            access=self._access,
        )
        self._chat = ChatService(
            session, directory, self._clock, self._policy, access=self._access,
        )
        self._timesheets = TimesheetSelector(session)
        self._messages = ChatSelector(session)

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------

    def create_or_update_draft(
        self,
        employee_id: UUID,
        period_start: date,
        period_end: date,
        rows: Sequence[RowInput],
    ) -> OperationResult[DraftSaveResult]:
        return self._run(
            "create_or_update_draft",
            actor_id=employee_id,
            timesheet_id=None,
            fn=lambda: self._drafts.create_or_update_draft(
                employee_id, period_start, period_end, rows,
            ),
        )

    def update_draft(
        self,
        timesheet_id: UUID,
        employee_id: UUID,
        period_start: date,
        period_end: date,
        rows: Sequence[RowInput],
    ) -> OperationResult[TimesheetInfo]:
        return self._run(
            "update_draft",
            actor_id=employee_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._drafts.update_draft(
                timesheet_id, employee_id, period_start, period_end, rows,
            ),
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def submit(self, timesheet_id: UUID, employee_id: UUID) -> OperationResult[TimesheetInfo]:
        return self._run(
            "submit",
            actor_id=employee_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._workflow.submit(timesheet_id, employee_id),
        )

    def approve(
        self,
        timesheet_id: UUID,
        approver_id: UUID,
        comment: str | None = None,
    ) -> OperationResult[TimesheetInfo]:
        return self._run(
            "approve",
            actor_id=approver_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._workflow.approve(timesheet_id, approver_id, comment),
        )

    def reject(
        self,
        timesheet_id: UUID,
        approver_id: UUID,
        comment: str | None,
    ) -> OperationResult[TimesheetInfo]:
        return self._run(
            "reject",
            actor_id=approver_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._workflow.reject(timesheet_id, approver_id, comment),
        )

    def reopen(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        comment: str | None,
    ) -> OperationResult[TimesheetInfo]:
        return self._run(
            "reopen",
            actor_id=actor_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._workflow.reopen(timesheet_id, actor_id, comment),
        )

    # ------------------------------------------------------------------
    # Discussion thread
    # ------------------------------------------------------------------

    def post_message(
        self,
        timesheet_id: UUID,
        sender_id: UUID,
        body: str,
        parent_id: UUID | None = None,
    ) -> OperationResult[ChatMessageInfo]:
        return self._run(
            "post_message",
            actor_id=sender_id,
            timesheet_id=timesheet_id,
            fn=lambda: self._chat.post_message(timesheet_id, sender_id, body, parent_id),
        )

    def list_messages(
        self, timesheet_id: UUID, viewer_id: UUID,
    ) -> OperationResult[tuple[ChatMessageInfo, ...]]:
        def _list():
            self._ensure_visible(timesheet_id, viewer_id)
            return self._messages.thread(timesheet_id)

        return self._run("list_messages", viewer_id, timesheet_id, _list)

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def get_workflow_status(
        self, timesheet_id: UUID, viewer_id: UUID,
    ) -> OperationResult[WorkflowStatusView]:
        def _status():
            self._ensure_visible(timesheet_id, viewer_id)
            return self._timesheets.get_workflow_status(timesheet_id)

        return self._run("get_workflow_status", viewer_id, timesheet_id, _status)

    def get_history(
        self, timesheet_id: UUID, viewer_id: UUID,
    ) -> OperationResult[tuple[HistoryEntryInfo, ...]]:
        def _history():
            self._ensure_visible(timesheet_id, viewer_id)
            return self._timesheets.get_history(timesheet_id)

        return self._run("get_history", viewer_id, timesheet_id, _history)

    def pending_for_approver(
        self, approver_id: UUID, stage: Stage | None = None,
    ) -> OperationResult[tuple[TimesheetInfo, ...]]:
        return self._run(
            "pending_for_approver",
            actor_id=approver_id,
            timesheet_id=None,
            fn=lambda: self._timesheets.pending_for_approver(approver_id, stage),
        )

    def reopened_for_employee(
        self, employee_id: UUID,
    ) -> OperationResult[tuple[TimesheetInfo, ...]]:
        return self._run(
            "reopened_for_employee",
            actor_id=employee_id,
            timesheet_id=None,
            fn=lambda: self._timesheets.reopened_for_employee(employee_id),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_visible(self, timesheet_id: UUID, viewer_id: UUID) -> None:
        timesheet = self._session.get(Timesheet, timesheet_id)
        if timesheet is None:
            raise TimesheetNotFoundError(timesheet_id)
        self._access.ensure_access(timesheet, viewer_id)

    def _run(
        self,
        operation: str,
        actor_id: UUID,
        timesheet_id: UUID | None,
        fn: Callable[[], T],
    ) -> OperationResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            timesheet_id=str(timesheet_id) if timesheet_id else None,
            actor_id=str(actor_id),
            operation=operation,
        ):
            logger.info("workflow_operation_started")
            t0 = time.monotonic()

            try:
                # The savepoint discards this operation's flushed writes on
                # failure even when the caller owns the transaction.
                with self._session.begin_nested():
                    value = fn()
                if self._auto_commit:
                    self._session.commit()
            except TimesheetKernelError as exc:
                return self._fail(exc, t0)
            except Exception as exc:
                # Driver errors and failures raised by the directory alike.
                return self._fail(self._translate(operation, exc), t0)

            logger.info(
                "workflow_operation_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            return OperationResult.ok(value)

    def _fail(self, exc: TimesheetKernelError, t0: float) -> OperationResult:
        if self._auto_commit:
            self._session.rollback()

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        if isinstance(exc, WorkflowIntegrityError):
            logger.error(
                "workflow_operation_failed",
                extra={"duration_ms": duration_ms},
                exc_info=exc,
            )
        else:
            logger.warning(
                "workflow_operation_refused",
                extra={
                    "duration_ms": duration_ms,
                    "error_code": exc.code,
                    "error_kind": exc.category,
                },
            )
        return OperationResult.fail(OperationError.from_exception(exc))

    def _translate(self, operation: str, exc: Exception) -> TimesheetKernelError:
        """Map a driver or collaborator failure onto the kernel taxonomy."""
        if isinstance(exc, DBAPIError) and is_lock_conflict(exc):
            context = LogContext.get_all()
            return LockTimeoutError("Timesheet", context.get("timesheet_id", "unknown"))

        if isinstance(exc, IntegrityError):
            message = str(exc.orig)
            if any(marker in message for marker in _PERIOD_CONSTRAINT_MARKERS):
                context = LogContext.get_all()
                return DuplicateTimesheetError(context.get("actor_id"), "requested period")

        if isinstance(exc, SQLAlchemyError):
            detail = str(exc).splitlines()[0]
        else:
            detail = f"{type(exc).__name__}: {exc}"
        translated = WorkflowIntegrityError(operation, detail)
        translated.__cause__ = exc
        return translated
