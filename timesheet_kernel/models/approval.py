"""
Module: timesheet_kernel.models.approval
Responsibility: ORM persistence for per-approver approval rows.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one row per (timesheet, approver, stage): UNIQUE constraint.
      A person who is both PM and DM gets one row at each stage.
    - status limited to pending/approved/rejected/auto_closed (CHECK).
    - stage limited to pm/dm/gm (CHECK).
    - Rows are created only by the chain resolver and mutated in place by
      approve/reject/auto-close; reopen deletes them all.  History, not
      this table, is the record of what happened.

Failure modes:
    - IntegrityError on a duplicate (timesheet, approver, stage) row.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from timesheet_kernel.domain.dtos import ApprovalInfo


class TimesheetApproval(Base):
    """One approver's decision slot at one stage of one review cycle."""

    __tablename__ = "timesheet_approvals"

    __table_args__ = (
        UniqueConstraint(
            "timesheet_id", "approver_id", "stage",
            name="uq_timesheet_approvals_approver_stage",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'auto_closed')",
            name="ck_timesheet_approvals_valid_status",
        ),
        CheckConstraint(
            "stage IN ('pm', 'dm', 'gm')",
            name="ck_timesheet_approvals_valid_stage",
        ),
        # Approver inbox: pending rows for one approver.
        Index(
            "ix_timesheet_approvals_approver_status",
            "approver_id", "status",
        ),
        # Stage clearing: pending rows per timesheet and stage.
        Index(
            "ix_timesheet_approvals_timesheet_stage_status",
            "timesheet_id", "stage", "status",
        ),
    )

    timesheet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("timesheets.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    stage: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TimesheetApproval {self.id} timesheet={self.timesheet_id} "
            f"approver={self.approver_id} stage={self.stage} status={self.status}>"
        )

    def to_dto(self) -> ApprovalInfo:
        """Convert ORM model to frozen domain DTO."""
        from timesheet_kernel.domain.dtos import ApprovalInfo
        from timesheet_kernel.domain.workflow import ApprovalStatus, Stage

        return ApprovalInfo(
            approval_id=self.id,
            timesheet_id=self.timesheet_id,
            approver_id=self.approver_id,
            stage=Stage(self.stage),
            status=ApprovalStatus(self.status),
            comment=self.comment,
            decided_at=self.decided_at,
            created_at=self.created_at,
        )
