"""
LockService -- scoped row-level locking for workflow mutations.

Responsibility:
    Acquires exclusive row locks on a timesheet and on one approver's
    approval rows before any workflow state is read for branching.
    Exposes them as context managers so lock acquisition is always scoped
    and never a manual lock/unlock pair.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Used by DraftService and WorkflowService.

Invariants enforced:
    - Lock before read: every status check happens on a row fetched with
      ``SELECT ... FOR UPDATE`` and ``populate_existing``, so no decision
      is ever made on a stale identity-map copy.
    - Lock ordering: timesheet first, then approval rows.  Every
      mutation follows this order, so two operations on one timesheet
      cannot deadlock each other.
    - Lock scope: one timesheet and its approvals.  There is never a
      cross-timesheet lock.

Release:
    Row locks belong to the database transaction.  They are released on
    commit or rollback, which the TimesheetWorkflow coordinator performs
    on every exit path, including errors.  Leaving a ``with`` block
    therefore does not release early; it only ends the region in which
    the caller may rely on holding the lock.

Failure modes:
    - TimesheetNotFoundError if the timesheet row does not exist.
    - LockTimeoutError when the lock wait exceeds ``lock_timeout_ms``
      (PostgreSQL 55P03), the transaction is chosen as a deadlock victim
      (40P01), or SQLite reports the database as locked.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from timesheet_kernel.exceptions import LockTimeoutError, TimesheetNotFoundError
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.approval import TimesheetApproval
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.lock")

# lock_not_available, deadlock_detected
_LOCK_SQLSTATES = frozenset({"55P03", "40P01"})


def is_lock_conflict(exc: BaseException) -> bool:
    """True if a driver error means "lost a locking race", not a fault."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _LOCK_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


class LockService(BaseService):
    """
    Scoped acquisition of timesheet and approval row locks.

    Usage:
        with locks.timesheet_lock(timesheet_id) as timesheet:
            with locks.approval_lock(timesheet_id, approver_id) as rows:
                ...
    """

    def __init__(self, session: Session, lock_timeout_ms: int = 5000):
        super().__init__(session)
        self._lock_timeout_ms = lock_timeout_ms

    @contextmanager
    def timesheet_lock(self, timesheet_id: UUID) -> Iterator[Timesheet]:
        """Lock one timesheet row and yield it freshly loaded."""
        with self._translating("Timesheet", timesheet_id):
            self._apply_lock_timeout()
            timesheet = self.session.execute(
                select(Timesheet)
                .where(Timesheet.id == timesheet_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()

            if timesheet is None:
                raise TimesheetNotFoundError(timesheet_id)

            logger.debug(
                "timesheet_locked",
                extra={"timesheet_id": str(timesheet_id)},
            )
            yield timesheet

    @contextmanager
    def period_lock(
        self, employee_id: UUID, period_start: date,
    ) -> Iterator[Timesheet | None]:
        """
        Lock the employee's timesheet for a period, if one exists.

        Yields None when there is no timesheet yet; a concurrent creator
        then loses on the (employee_id, period_start) unique constraint.
        """
        with self._translating("TimesheetPeriod", f"{employee_id}/{period_start}"):
            self._apply_lock_timeout()
            timesheet = self.session.execute(
                select(Timesheet)
                .where(
                    Timesheet.employee_id == employee_id,
                    Timesheet.period_start == period_start,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            yield timesheet

    @contextmanager
    def approval_lock(
        self, timesheet_id: UUID, approver_id: UUID,
    ) -> Iterator[list[TimesheetApproval]]:
        """
        Lock every approval row the approver holds on this timesheet.

        A person who qualifies at two stages has two rows; both are locked
        and yielded oldest first.  Must be entered while the timesheet lock
        is held.
        """
        with self._translating("TimesheetApproval", f"{timesheet_id}/{approver_id}"):
            rows = list(
                self.session.execute(
                    select(TimesheetApproval)
                    .where(
                        TimesheetApproval.timesheet_id == timesheet_id,
                        TimesheetApproval.approver_id == approver_id,
                    )
                    .order_by(TimesheetApproval.created_at, TimesheetApproval.stage)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalars()
            )
            yield rows

    def _apply_lock_timeout(self) -> None:
        bind = self.session.get_bind()
        if bind.dialect.name == "postgresql":
            self.session.execute(
                text(f"SET LOCAL lock_timeout = '{int(self._lock_timeout_ms)}ms'")
            )

    @contextmanager
    def _translating(self, entity_type: str, entity_id) -> Iterator[None]:
        try:
            yield
        except DBAPIError as exc:
            if not is_lock_conflict(exc):
                raise
            logger.warning(
                "lock_timeout",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "lock_timeout_ms": self._lock_timeout_ms,
                },
            )
            raise LockTimeoutError(entity_type, entity_id) from exc
