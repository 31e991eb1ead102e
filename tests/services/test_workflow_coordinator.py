"""
Tests for the TimesheetWorkflow operation boundary.

Covers:
- Driver failures mapped onto typed results (lock conflict, integrity)
- Atomic rollback when chain construction or stage advancement fails
- Structured operation logs carry one correlation id per operation
- Failures raised by the directory collaborator roll back like driver errors
- auto_commit=False leaves the transaction to the caller
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from timesheet_kernel.domain.results import ErrorKind
from timesheet_kernel.domain.workflow import TimesheetStatus
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.history import TimesheetWorkflowHistory
from timesheet_kernel.services.chain_resolver import ApprovalChainResolver
from timesheet_kernel.services.workflow_coordinator import TimesheetWorkflow


def _count(session, model, timesheet_id):
    return session.execute(
        select(func.count()).select_from(model).where(model.timesheet_id == timesheet_id)
    ).scalar_one()


def _failing_resolve(message):
    """Let the resolver write its rows, then fail as the driver would."""
    original = ApprovalChainResolver.resolve

    def _resolve(self, timesheet, after=None):
        original(self, timesheet, after)
        raise OperationalError("INSERT INTO timesheet_approvals", {}, Exception(message))

    return _resolve


class TestAtomicRollback:

    def test_failed_chain_construction_leaves_draft_untouched(
        self, session, workflow, org, create_draft, monkeypatch,
    ):
        draft = create_draft()
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("disk I/O error"))

        result = workflow.submit(draft.timesheet_id, org.employee_id)

        assert result.kind is ErrorKind.INTEGRITY
        assert result.error.code == "WORKFLOW_INTEGRITY_ERROR"
        assert result.error.http_status == 500
        monkeypatch.undo()
        status = workflow.get_workflow_status(draft.timesheet_id, org.employee_id).unwrap()
        assert status.timesheet.status is TimesheetStatus.DRAFT
        assert status.timesheet.submitted_at is None
        assert status.history == ()
        assert _count(session, TimesheetApproval, draft.timesheet_id) == 0

    def test_failed_stage_advance_keeps_approval_pending(
        self, session, workflow, org, submitted_timesheet, monkeypatch,
    ):
        ts = submitted_timesheet()
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("disk I/O error"))

        result = workflow.approve(ts.timesheet_id, org.pm_id)

        assert result.kind is ErrorKind.INTEGRITY
        monkeypatch.undo()
        status = workflow.get_workflow_status(ts.timesheet_id, org.employee_id).unwrap()
        assert status.current_stage == "pm"
        assert status.stages[0].pending == 1
        assert len(status.history) == 1
        assert _count(session, TimesheetWorkflowHistory, ts.timesheet_id) == 1

    def test_directory_failure_leaves_draft_untouched(
        self, session, workflow, directory, org, create_draft, monkeypatch,
    ):
        # No project manager, so submit falls through to the department lookup.
        draft = create_draft(project_ids=[uuid4()])

        def _unavailable(employee_id):
            raise ConnectionError("HR directory unavailable")

        monkeypatch.setattr(directory, "department_of", _unavailable)

        result = workflow.submit(draft.timesheet_id, org.employee_id)

        assert result.kind is ErrorKind.INTEGRITY
        assert "ConnectionError: HR directory unavailable" in result.error.message
        monkeypatch.undo()
        workflow.post_message(draft.timesheet_id, org.employee_id, "still editing").unwrap()
        status = workflow.get_workflow_status(draft.timesheet_id, org.employee_id).unwrap()
        assert status.timesheet.status is TimesheetStatus.DRAFT
        assert status.timesheet.submitted_at is None
        assert status.history == ()
        assert _count(session, TimesheetApproval, draft.timesheet_id) == 0

    def test_directory_failure_keeps_cause(self, workflow, directory, org, create_draft, captured_logs, monkeypatch):
        draft = create_draft(project_ids=[uuid4()])

        def _unavailable(employee_id):
            raise ConnectionError("HR directory unavailable")

        monkeypatch.setattr(directory, "department_of", _unavailable)

        workflow.submit(draft.timesheet_id, org.employee_id)

        [failed] = [r for r in captured_logs() if r["message"] == "workflow_operation_failed"]
        assert failed["exc_code"] == "WORKFLOW_INTEGRITY_ERROR"
        assert "ConnectionError" in failed["traceback"]

    def test_retry_after_failure_succeeds(self, workflow, org, create_draft, monkeypatch):
        draft = create_draft()
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("disk I/O error"))
        assert not workflow.submit(draft.timesheet_id, org.employee_id).is_success
        monkeypatch.undo()

        result = workflow.submit(draft.timesheet_id, org.employee_id)

        assert result.unwrap().status is TimesheetStatus.IN_REVIEW


class TestDriverErrorMapping:

    def test_lock_conflict_is_retryable(self, workflow, org, create_draft, monkeypatch):
        draft = create_draft()
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("database is locked"))

        result = workflow.submit(draft.timesheet_id, org.employee_id)

        assert result.error.code == "LOCK_TIMEOUT"
        assert result.kind is ErrorKind.STATE_CONFLICT
        assert result.error.http_status == 409
        assert result.error.retryable is True

    def test_kernel_errors_pass_through(self, workflow, org, create_draft):
        draft = create_draft()

        result = workflow.reject(draft.timesheet_id, org.pm_id, "nope")

        assert result.error.code == "INVALID_TIMESHEET_TRANSITION"
        assert str(draft.timesheet_id) in result.error.message


class TestOperationLogging:

    def test_success_logged_with_context(self, workflow, org, create_draft, captured_logs):
        draft = create_draft()

        workflow.submit(draft.timesheet_id, org.employee_id).unwrap()

        records = [r for r in captured_logs() if r.get("operation") == "submit"]
        messages = [r["message"] for r in records]
        assert messages[0] == "workflow_operation_started"
        assert messages[-1] == "workflow_operation_completed"
        assert "timesheet_submitted" in messages
        assert "approval_stage_opened" in messages
        assert len({r["correlation_id"] for r in records}) == 1
        assert all(r["timesheet_id"] == str(draft.timesheet_id) for r in records)
        assert all(r["actor_id"] == str(org.employee_id) for r in records)
        assert "duration_ms" in records[-1]

    def test_refusal_logged_as_warning(self, workflow, org, create_draft, captured_logs):
        draft = create_draft()

        workflow.approve(draft.timesheet_id, org.pm_id)

        [refused] = [r for r in captured_logs() if r["message"] == "workflow_operation_refused"]
        assert refused["level"] == "WARNING"
        assert refused["error_code"] == "INVALID_TIMESHEET_TRANSITION"
        assert refused["error_kind"] == "state_conflict"
        assert refused["operation"] == "approve"

    def test_integrity_failure_logged_as_error(self, workflow, org, create_draft, captured_logs, monkeypatch):
        draft = create_draft()
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("disk I/O error"))

        workflow.submit(draft.timesheet_id, org.employee_id)

        [failed] = [r for r in captured_logs() if r["message"] == "workflow_operation_failed"]
        assert failed["level"] == "ERROR"
        assert failed["exc_code"] == "WORKFLOW_INTEGRITY_ERROR"
        assert "traceback" in failed

    def test_context_cleared_between_operations(self, workflow, org, create_draft, captured_logs):
        draft = create_draft()
        workflow.submit(draft.timesheet_id, org.employee_id).unwrap()
        workflow.approve(draft.timesheet_id, org.pm_id).unwrap()

        started = [r for r in captured_logs() if r["message"] == "workflow_operation_started"]
        ids = [r["correlation_id"] for r in started]
        assert len(ids) == len(set(ids))


class TestCallerOwnedTransaction:

    def test_no_commit_without_auto_commit(self, session, directory, deterministic_clock, org, create_draft):
        draft = create_draft()
        workflow = TimesheetWorkflow(session, directory, clock=deterministic_clock, auto_commit=False)

        result = workflow.submit(draft.timesheet_id, org.employee_id)
        assert result.is_success
        assert session.in_transaction()

        session.rollback()
        assert _count(session, TimesheetApproval, draft.timesheet_id) == 0

    def test_failure_does_not_roll_back_caller_transaction(
        self, session, directory, deterministic_clock, org, create_draft,
    ):
        draft = create_draft()
        workflow = TimesheetWorkflow(session, directory, clock=deterministic_clock, auto_commit=False)
        workflow.post_message(draft.timesheet_id, org.employee_id, "before").unwrap()

        refused = workflow.approve(draft.timesheet_id, org.pm_id)

        assert refused.kind is ErrorKind.STATE_CONFLICT
        thread = workflow.list_messages(draft.timesheet_id, org.employee_id).unwrap()
        assert [m.body for m in thread] == ["before"]

    def test_failed_advance_discards_its_own_writes(
        self, session, directory, deterministic_clock, org, submitted_timesheet, monkeypatch,
    ):
        ts = submitted_timesheet()
        workflow = TimesheetWorkflow(session, directory, clock=deterministic_clock, auto_commit=False)
        monkeypatch.setattr(ApprovalChainResolver, "resolve", _failing_resolve("disk I/O error"))

        result = workflow.approve(ts.timesheet_id, org.pm_id)

        assert result.kind is ErrorKind.INTEGRITY
        assert session.in_transaction()
        rows = session.execute(
            select(TimesheetApproval.stage, TimesheetApproval.status)
            .where(TimesheetApproval.timesheet_id == ts.timesheet_id)
        ).all()
        assert [tuple(row) for row in rows] == [("pm", "pending")]
        assert _count(session, TimesheetWorkflowHistory, ts.timesheet_id) == 1


@pytest.mark.parametrize("operation", ["get_workflow_status", "get_history", "list_messages"])
def test_read_projections_check_access(workflow, org, create_draft, operation):
    draft = create_draft()

    denied = getattr(workflow, operation)(draft.timesheet_id, uuid4())
    missing = getattr(workflow, operation)(uuid4(), org.employee_id)

    assert denied.error.code == "TIMESHEET_ACCESS_DENIED"
    assert missing.error.code == "TIMESHEET_NOT_FOUND"
