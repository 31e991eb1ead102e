"""
ChatService -- threaded discussion attached to a timesheet.

Responsibility:
    Appends messages to a timesheet's thread after checking the sender is
    a participant and the optional parent belongs to the same thread.
    Stamps each message with the sender's role relative to the timesheet
    at posting time.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Independent of workflow status: messages may be posted in any status
    and are never touched by workflow transitions.

Invariants enforced:
    - Append-only; no edit or delete (db/immutability.py).
    - Same access predicate as reading (ParticipantAccess).
    - Parent must exist in the same timesheet's thread.

Concurrency:
    No row locks; a message insert is atomic on its own.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.directory import OrganizationDirectory
from timesheet_kernel.domain.dtos import ChatMessageInfo
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.domain.validation import require_message
from timesheet_kernel.exceptions import (
    ParentMessageNotFoundError,
    TimesheetNotFoundError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.chat import TimesheetChat
from timesheet_kernel.models.timesheet import Timesheet
from timesheet_kernel.services.base import BaseService
from timesheet_kernel.services.participant_access import ParticipantAccess

logger = get_logger("services.chat")


class ChatService(BaseService):

    def __init__(
        self,
        session: Session,
        directory: OrganizationDirectory,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        access: ParticipantAccess | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()
        self._access = access or ParticipantAccess(session, directory, self._policy)

    def post_message(
        self,
        timesheet_id: UUID,
        sender_id: UUID,
        body: str,
        parent_id: UUID | None = None,
    ) -> ChatMessageInfo:
        body = require_message(body, self._policy)

        timesheet = self.session.get(Timesheet, timesheet_id)
        if timesheet is None:
            raise TimesheetNotFoundError(timesheet_id)

        self._access.ensure_access(timesheet, sender_id)

        if parent_id is not None:
            parent = self.session.execute(
                select(TimesheetChat.id).where(
                    TimesheetChat.id == parent_id,
                    TimesheetChat.timesheet_id == timesheet_id,
                )
            ).scalar_one_or_none()
            if parent is None:
                raise ParentMessageNotFoundError(timesheet_id, parent_id)

        role = self._access.role_of(timesheet, sender_id)
        message = TimesheetChat(
            timesheet_id=timesheet_id,
            parent_id=parent_id,
            sender_id=sender_id,
            sender_role=role.value,
            body=body,
            posted_at=self._clock.now(),
        )
        self.session.add(message)
        self.session.flush()

        logger.info(
            "chat_message_posted",
            extra={
                "timesheet_id": str(timesheet_id),
                "message_id": str(message.id),
                "sender_role": role.value,
                "is_reply": parent_id is not None,
            },
        )
        return message.to_dto()
