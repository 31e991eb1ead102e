"""
Module: timesheet_kernel.models.chat
Responsibility: ORM persistence for the per-timesheet discussion thread.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are blocked by ORM listeners.
    - parent_id, when set, references a message of the same timesheet
      (checked by ChatService before insert; the FK only guarantees it
      exists).
    - Referenced by identity only: workflow transitions never cascade into
      chat.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from timesheet_kernel.domain.dtos import ChatMessageInfo


class TimesheetChat(Base):
    """One posted message."""

    __tablename__ = "timesheet_chats"

    __table_args__ = (
        CheckConstraint(
            "sender_role IN ('employee', 'pm', 'dm', 'gm')",
            name="ck_timesheet_chats_valid_role",
        ),
        Index("ix_timesheet_chats_timesheet_posted", "timesheet_id", "posted_at"),
    )

    timesheet_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("timesheet_chats.id"),
        nullable=True,
        index=True,
    )
    sender_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sender_role: Mapped[str] = mapped_column(String(10), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TimesheetChat {self.id} timesheet={self.timesheet_id} "
            f"sender={self.sender_id} parent={self.parent_id}>"
        )

    def to_dto(self, replies: tuple[ChatMessageInfo, ...] = ()) -> ChatMessageInfo:
        from timesheet_kernel.domain.dtos import ChatMessageInfo
        from timesheet_kernel.domain.workflow import ParticipantRole

        return ChatMessageInfo(
            message_id=self.id,
            timesheet_id=self.timesheet_id,
            parent_id=self.parent_id,
            sender_id=self.sender_id,
            sender_role=ParticipantRole(self.sender_role),
            body=self.body,
            posted_at=self.posted_at,
            replies=replies,
        )
