"""
Participant role resolution.

A person's role in chat and history depends on their relationship to one
particular timesheet, not on a fixed attribute, so it is computed on
demand from directory lookups and never persisted as a cached role.

Pure: ``resolve_role`` takes a ``TimesheetParticipants`` snapshot that the
caller builds from the directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.workflow import ParticipantRole


@dataclass(frozen=True)
class TimesheetParticipants:
    """Who is related to a timesheet, as seen by the directory right now."""

    owner_id: UUID
    project_manager_ids: frozenset[UUID] = frozenset()
    department_manager_ids: frozenset[UUID] = frozenset()

    @classmethod
    def lookup(
        cls,
        directory: OrganizationDirectory,
        owner_id: UUID,
        project_ids: Iterable[UUID],
    ) -> TimesheetParticipants:
        project_managers: set[UUID] = set()
        for project_id in project_ids:
            project_managers |= directory.project_managers_of(project_id)

        department_id = directory.department_of(owner_id)
        department_managers = (
            directory.department_managers_of(department_id)
            if department_id is not None
            else frozenset()
        )
        return cls(
            owner_id=owner_id,
            project_manager_ids=frozenset(project_managers),
            department_manager_ids=frozenset(department_managers),
        )


def resolve_role(person_id: UUID, participants: TimesheetParticipants) -> ParticipantRole:
    """
    Return ``person_id``'s role relative to one timesheet.

    Owner wins; a department manager outranks a project manager, so a
    person who is both resolves to ``dm``.  Anyone else who is allowed
    to act at all is treated as general management.
    """
    if person_id == participants.owner_id:
        return ParticipantRole.EMPLOYEE
    if person_id in participants.department_manager_ids:
        return ParticipantRole.DM
    if person_id in participants.project_manager_ids:
        return ParticipantRole.PM
    return ParticipantRole.GM
