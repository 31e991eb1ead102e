"""
Module: timesheet_kernel.models.history
Responsibility: ORM persistence for the append-only workflow history.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are blocked by ORM listeners
      (db/immutability.py).
    - Per-timesheet ordering: ``sequence`` is assigned max+1 while the
      timesheet lock is held; UNIQUE(timesheet_id, sequence) rejects any
      writer that bypassed the lock.
    - Referenced by identity only: no foreign key, so no cascade can ever
      remove history together with a timesheet.

Audit relevance:
    This table is the sole source of truth for "what happened".  Approval
    rows are mutated in place and deleted on reopen; history survives both.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from timesheet_kernel.domain.dtos import HistoryEntryInfo


class TimesheetWorkflowHistory(Base):
    """One immutable record per workflow transition."""

    __tablename__ = "timesheet_workflow_history"

    __table_args__ = (
        UniqueConstraint(
            "timesheet_id", "sequence", name="uq_timesheet_history_sequence"
        ),
        CheckConstraint(
            "stage IN ('employee', 'pm', 'dm', 'gm')",
            name="ck_timesheet_history_valid_stage",
        ),
        CheckConstraint(
            "action IN ('submitted', 'approved', 'rejected', 'reopened')",
            name="ck_timesheet_history_valid_action",
        ),
    )

    timesheet_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(nullable=False)
    stage: Mapped[str] = mapped_column(String(10), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    acted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    automatic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acted_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TimesheetWorkflowHistory {self.timesheet_id}#{self.sequence} "
            f"{self.stage}/{self.action} by={self.acted_by}>"
        )

    def to_dto(self) -> HistoryEntryInfo:
        from timesheet_kernel.domain.dtos import HistoryEntryInfo
        from timesheet_kernel.domain.workflow import HistoryAction, ParticipantRole

        return HistoryEntryInfo(
            entry_id=self.id,
            timesheet_id=self.timesheet_id,
            sequence=self.sequence,
            stage=ParticipantRole(self.stage),
            action=HistoryAction(self.action),
            acted_by=self.acted_by,
            comment=self.comment,
            automatic=self.automatic,
            acted_at=self.acted_at,
        )
