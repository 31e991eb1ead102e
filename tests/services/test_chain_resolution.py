"""
Tests for ApprovalChainResolver.

Covers:
- PM stage: one row per distinct project manager, deduplicated by person
- Auto-escalation over vacant stages (pm -> dm -> gm)
- Exhausted chain creates nothing
- Resolution after a cleared stage starts at the next stage
- A person qualifying at two stages gets a separate row at each
"""

from uuid import uuid4

from sqlalchemy import select

from timesheet_kernel.domain.workflow import ApprovalStatus, Stage, TimesheetStatus
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.chain_resolver import ApprovalChainResolver

from tests.helpers import WEEK_END, WEEK_START, make_row


def _approvals(session, timesheet_id):
    return session.execute(
        select(TimesheetApproval)
        .where(TimesheetApproval.timesheet_id == timesheet_id)
        .order_by(TimesheetApproval.stage, TimesheetApproval.approver_id)
    ).scalars().all()


class TestResolveEntryStage:

    def _resolver(self, session, directory, deterministic_clock, policy):
        return ApprovalChainResolver(session, directory, deterministic_clock, policy)

    def test_pm_stage_one_row_per_manager(
        self, session, directory, deterministic_clock, policy, org, create_draft,
    ):
        second_pm = uuid4()
        directory.assign_project_manager(org.project_id, second_pm)
        draft = create_draft()
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.stage is Stage.PM
        assert set(resolution.approver_ids) == {org.pm_id, second_pm}
        assert resolution.skipped == ()
        rows = _approvals(session, draft.timesheet_id)
        assert len(rows) == 2
        assert all(r.stage == "pm" and r.status == ApprovalStatus.PENDING.value for r in rows)

    def test_pm_shared_across_projects_gets_one_row(
        self, session, directory, deterministic_clock, policy, org, create_draft,
    ):
        other_project = uuid4()
        directory.assign_project_manager(other_project, org.pm_id)
        draft = create_draft(project_ids=[org.project_id, other_project])
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.approver_ids == (org.pm_id,)
        assert len(_approvals(session, draft.timesheet_id)) == 1

    def test_vacant_pm_escalates_to_dm(
        self, session, directory, deterministic_clock, policy, org, create_draft,
    ):
        draft = create_draft(project_ids=[uuid4()])
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.stage is Stage.DM
        assert resolution.approver_ids == (org.dm_id,)
        assert resolution.skipped == (Stage.PM,)

    def test_vacant_pm_and_dm_escalates_to_gm(
        self, session, directory, deterministic_clock, policy, org, workflow,
    ):
        loner = uuid4()
        draft = workflow.create_or_update_draft(
            loner, WEEK_START, WEEK_END, [make_row(uuid4())],
        ).unwrap().timesheet
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.stage is Stage.GM
        assert resolution.approver_ids == (org.gm_id,)
        assert resolution.skipped == (Stage.PM, Stage.DM)

    def test_every_stage_vacant_is_exhausted(
        self, session, directory, deterministic_clock, policy, workflow,
    ):
        draft = workflow.create_or_update_draft(
            uuid4(), WEEK_START, WEEK_END, [make_row(uuid4())],
        ).unwrap().timesheet
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.exhausted
        assert resolution.approver_ids == ()
        assert resolution.skipped == (Stage.PM, Stage.DM, Stage.GM)
        assert _approvals(session, draft.timesheet_id) == []

    def test_ceo_role_counts_as_general_management(
        self, session, directory, deterministic_clock, policy, workflow,
    ):
        ceo = uuid4()
        directory.grant_role(ceo, "ceo")
        draft = workflow.create_or_update_draft(
            uuid4(), WEEK_START, WEEK_END, [make_row(uuid4())],
        ).unwrap().timesheet
        timesheet = session.get(Timesheet, draft.timesheet_id)

        resolution = self._resolver(session, directory, deterministic_clock, policy).resolve(timesheet)

        assert resolution.stage is Stage.GM
        assert resolution.approver_ids == (ceo,)


class TestResolveAfterStage:

    def test_after_pm_resolves_dm(
        self, session, directory, deterministic_clock, policy, org, create_draft,
    ):
        draft = create_draft()
        timesheet = session.get(Timesheet, draft.timesheet_id)
        resolver = ApprovalChainResolver(session, directory, deterministic_clock, policy)

        resolution = resolver.resolve(timesheet, after=Stage.PM)

        assert resolution.stage is Stage.DM
        assert {r.approver_id for r in _approvals(session, draft.timesheet_id)} == {org.dm_id}

    def test_after_gm_nothing_remains(
        self, session, directory, deterministic_clock, policy, create_draft,
    ):
        draft = create_draft()
        timesheet = session.get(Timesheet, draft.timesheet_id)
        resolver = ApprovalChainResolver(session, directory, deterministic_clock, policy)

        resolution = resolver.resolve(timesheet, after=Stage.GM)

        assert resolution.exhausted
        assert resolution.skipped == ()


class TestNoCrossStageCollapsing:

    def test_pm_who_is_also_dm_approves_twice(self, session, directory, org, workflow, create_draft):
        directory.assign_department_manager(org.department_id, org.pm_id)
        draft = create_draft()
        ts_id = draft.timesheet_id

        workflow.submit(ts_id, org.employee_id).unwrap()
        workflow.approve(ts_id, org.pm_id).unwrap()

        dm_rows = [r for r in _approvals(session, ts_id) if r.stage == "dm"]
        assert {r.approver_id for r in dm_rows} == {org.pm_id, org.dm_id}

        workflow.approve(ts_id, org.pm_id).unwrap()
        result = workflow.approve(ts_id, org.dm_id)

        assert result.unwrap().status is TimesheetStatus.IN_REVIEW
        pm_own_rows = [r for r in _approvals(session, ts_id) if r.approver_id == org.pm_id]
        assert sorted(r.stage for r in pm_own_rows) == ["dm", "pm"]
        assert all(r.status == ApprovalStatus.APPROVED.value for r in pm_own_rows)
