"""
Module: timesheet_kernel.models.timesheet
Responsibility: ORM persistence for the timesheet aggregate (period header
    plus line items).

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs are imported lazily inside ``to_dto``).

Invariants enforced:
    - One timesheet per (employee_id, period_start): UNIQUE constraint.  A
      rejected/reopened period is resubmitted on the same row.
    - status limited to the workflow vocabulary by CHECK constraint.
    - Rows are owned exclusively by their timesheet (delete-orphan cascade)
      and replaced wholesale on every draft save.
    - Day buckets are non-negative (CHECK); the upper bound is policy and
      enforced by DraftService.

Failure modes:
    - IntegrityError on a concurrent insert for the same employee/period
      (mapped to DuplicateTimesheetError by the coordinator).
    - ImmutabilityViolationError on deleting a submitted timesheet, or on
      touching rows while the timesheet is not editable (db/immutability.py).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from timesheet_kernel.domain.dtos import TimesheetInfo, TimesheetRowInfo

_DAY_COLUMNS = (
    "hours_monday",
    "hours_tuesday",
    "hours_wednesday",
    "hours_thursday",
    "hours_friday",
    "hours_saturday",
    "hours_sunday",
)


class Timesheet(TrackedBase):
    """One employee's hours for one period."""

    __tablename__ = "timesheets"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "period_start", name="uq_timesheets_employee_period"
        ),
        CheckConstraint(
            "status IN ('draft', 'reopened', 'in_review', 'approved', 'rejected')",
            name="ck_timesheets_valid_status",
        ),
        CheckConstraint(
            "period_end >= period_start", name="ck_timesheets_period_order"
        ),
        Index("ix_timesheets_employee_status", "employee_id", "status"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    rows: Mapped[list["TimesheetRow"]] = relationship(
        "TimesheetRow",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimesheetRow.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Timesheet {self.id} employee={self.employee_id} "
            f"{self.period_start}..{self.period_end} status={self.status}>"
        )

    def to_dto(self) -> TimesheetInfo:
        """Convert ORM model to frozen domain DTO."""
        from timesheet_kernel.domain.dtos import TimesheetInfo
        from timesheet_kernel.domain.workflow import TimesheetStatus

        return TimesheetInfo(
            timesheet_id=self.id,
            employee_id=self.employee_id,
            period_start=self.period_start,
            period_end=self.period_end,
            status=TimesheetStatus(self.status),
            submitted_at=self.submitted_at,
            reviewed_at=self.reviewed_at,
            rows=tuple(row.to_dto() for row in self.rows),
        )


class TimesheetRow(Base):
    """One (project, task) line with seven day buckets."""

    __tablename__ = "timesheet_rows"

    __table_args__ = (
        UniqueConstraint(
            "timesheet_id", "project_id", "task_id",
            name="uq_timesheet_rows_project_task",
        ),
        CheckConstraint(
            " AND ".join(f"{c} >= 0" for c in _DAY_COLUMNS),
            name="ck_timesheet_rows_non_negative_hours",
        ),
    )

    timesheet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("timesheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    task_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    hours_monday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_tuesday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_wednesday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_thursday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_friday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_saturday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    hours_sunday: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_hours: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    achievement_note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    timesheet: Mapped[Timesheet] = relationship("Timesheet", back_populates="rows")

    @property
    def hours(self) -> tuple[Decimal, ...]:
        return tuple(getattr(self, c) for c in _DAY_COLUMNS)

    @hours.setter
    def hours(self, values) -> None:
        for column, value in zip(_DAY_COLUMNS, values, strict=True):
            setattr(self, column, value)
        self.total_hours = sum(values, Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<TimesheetRow {self.id} project={self.project_id} "
            f"task={self.task_id} total={self.total_hours}>"
        )

    def to_dto(self) -> TimesheetRowInfo:
        from timesheet_kernel.domain.dtos import TimesheetRowInfo

        return TimesheetRowInfo(
            row_id=self.id,
            project_id=self.project_id,
            task_id=self.task_id,
            hours=self.hours,
            total_hours=self.total_hours,
            achievement_note=self.achievement_note,
        )
