"""Tests for resolve_role and the in-memory organization directory."""

from uuid import uuid4

from timesheet_kernel.domain.directory import StaticDirectory
from timesheet_kernel.domain.roles import TimesheetParticipants, resolve_role
from timesheet_kernel.domain.workflow import ParticipantRole


def _participants(owner, pms=(), dms=()):
    return TimesheetParticipants(
        owner_id=owner,
        project_manager_ids=frozenset(pms),
        department_manager_ids=frozenset(dms),
    )


class TestResolveRole:

    def test_owner_is_employee(self):
        owner = uuid4()
        assert resolve_role(owner, _participants(owner)) is ParticipantRole.EMPLOYEE

    def test_owner_wins_even_if_listed_as_manager(self):
        owner = uuid4()
        participants = _participants(owner, pms=[owner], dms=[owner])
        assert resolve_role(owner, participants) is ParticipantRole.EMPLOYEE

    def test_project_manager(self):
        owner, pm = uuid4(), uuid4()
        assert resolve_role(pm, _participants(owner, pms=[pm])) is ParticipantRole.PM

    def test_department_manager(self):
        owner, dm = uuid4(), uuid4()
        assert resolve_role(dm, _participants(owner, dms=[dm])) is ParticipantRole.DM

    def test_pm_and_dm_resolves_to_dm(self):
        owner, both = uuid4(), uuid4()
        participants = _participants(owner, pms=[both], dms=[both])
        assert resolve_role(both, participants) is ParticipantRole.DM

    def test_anyone_else_is_general_management(self):
        owner = uuid4()
        assert resolve_role(uuid4(), _participants(owner)) is ParticipantRole.GM


class TestParticipantsLookup:

    def test_collects_managers_of_every_project(self):
        directory = StaticDirectory()
        owner, dept = uuid4(), uuid4()
        p1, p2 = uuid4(), uuid4()
        pm1, pm2, dm = uuid4(), uuid4(), uuid4()
        directory.assign_project_manager(p1, pm1)
        directory.assign_project_manager(p2, pm2)
        directory.set_department(owner, dept)
        directory.assign_department_manager(dept, dm)

        participants = TimesheetParticipants.lookup(directory, owner, [p1, p2])

        assert participants.project_manager_ids == {pm1, pm2}
        assert participants.department_manager_ids == {dm}

    def test_employee_without_department(self):
        directory = StaticDirectory()
        owner = uuid4()

        participants = TimesheetParticipants.lookup(directory, owner, [])

        assert participants.department_manager_ids == frozenset()
        assert participants.project_manager_ids == frozenset()


class TestStaticDirectory:

    def test_employees_with_roles_matches_any_name(self):
        directory = StaticDirectory()
        gm, ceo, clerk = uuid4(), uuid4(), uuid4()
        directory.grant_role(gm, "gm")
        directory.grant_role(ceo, "ceo")
        directory.grant_role(clerk, "clerk")

        assert directory.employees_with_roles({"gm", "ceo"}) == {gm, ceo}

    def test_remove_project_manager(self):
        directory = StaticDirectory()
        project, pm = uuid4(), uuid4()
        directory.assign_project_manager(project, pm)
        directory.remove_project_manager(project, pm)

        assert directory.project_managers_of(project) == frozenset()

    def test_unknown_lookups_are_empty(self):
        directory = StaticDirectory()
        assert directory.project_managers_of(uuid4()) == frozenset()
        assert directory.department_of(uuid4()) is None
        assert directory.department_managers_of(uuid4()) == frozenset()
        assert directory.roles_of(uuid4()) == frozenset()
