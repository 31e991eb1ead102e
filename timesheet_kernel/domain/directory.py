"""
Organization directory (``timesheet_kernel.domain.directory``).

Responsibility
--------------
Read-only lookup interface onto the surrounding HR application: who
manages a project, which department an employee belongs to, who manages
that department, and which role names a person holds.  The workflow core
only calls it; it never owns or mutates the underlying association data.

Architecture position
---------------------
**Kernel domain layer** -- protocol plus one in-memory implementation.
ZERO I/O.  Production code supplies its own implementation backed by the
HR tables.

Concurrency
-----------
Lookups are not locked.  A stale answer is acceptable: it is resolved at
the next escalation or resubmission.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Protocol
from uuid import UUID


class OrganizationDirectory(Protocol):
    """Pluggable interface for organizational lookups."""

    def project_managers_of(self, project_id: UUID) -> frozenset[UUID]:
        """Return the managers of a project (may be empty)."""
        ...

    def department_of(self, employee_id: UUID) -> UUID | None:
        """Return the employee's department, or None if unassigned."""
        ...

    def department_managers_of(self, department_id: UUID) -> frozenset[UUID]:
        """Return the managers of a department (may be empty)."""
        ...

    def employees_with_roles(self, role_names: Iterable[str]) -> frozenset[UUID]:
        """Return every employee holding at least one of ``role_names``."""
        ...

    def roles_of(self, employee_id: UUID) -> frozenset[str]:
        """Return all role names held by an employee."""
        ...


class StaticDirectory:
    """In-memory directory for tests and embedded use.

    Mutable on purpose: tests change managers between review cycles to
    show that resubmission re-resolves the chain.
    """

    def __init__(self) -> None:
        self._project_managers: dict[UUID, set[UUID]] = defaultdict(set)
        self._departments: dict[UUID, UUID] = {}
        self._department_managers: dict[UUID, set[UUID]] = defaultdict(set)
        self._roles: dict[UUID, set[str]] = defaultdict(set)

    # -- mutation ---------------------------------------------------------

    def assign_project_manager(self, project_id: UUID, manager_id: UUID) -> None:
        self._project_managers[project_id].add(manager_id)

    def remove_project_manager(self, project_id: UUID, manager_id: UUID) -> None:
        self._project_managers[project_id].discard(manager_id)

    def set_department(self, employee_id: UUID, department_id: UUID) -> None:
        self._departments[employee_id] = department_id

    def assign_department_manager(self, department_id: UUID, manager_id: UUID) -> None:
        self._department_managers[department_id].add(manager_id)

    def grant_role(self, employee_id: UUID, role_name: str) -> None:
        self._roles[employee_id].add(role_name)

    # -- OrganizationDirectory --------------------------------------------

    def project_managers_of(self, project_id: UUID) -> frozenset[UUID]:
        return frozenset(self._project_managers.get(project_id, ()))

    def department_of(self, employee_id: UUID) -> UUID | None:
        return self._departments.get(employee_id)

    def department_managers_of(self, department_id: UUID) -> frozenset[UUID]:
        return frozenset(self._department_managers.get(department_id, ()))

    def employees_with_roles(self, role_names: Iterable[str]) -> frozenset[UUID]:
        wanted = set(role_names)
        return frozenset(
            employee_id
            for employee_id, roles in self._roles.items()
            if roles & wanted
        )

    def roles_of(self, employee_id: UUID) -> frozenset[str]:
        return frozenset(self._roles.get(employee_id, ()))
