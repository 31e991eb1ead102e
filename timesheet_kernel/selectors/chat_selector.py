"""
Module: timesheet_kernel.selectors.chat_selector
Responsibility: Read a timesheet's discussion as a tree.
Architecture position: Kernel > Selectors.

Root messages come back oldest first; each carries its replies, also
oldest first, to any depth.  Ties on posted_at are broken by id so the
order is stable.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select

from timesheet_kernel.domain.dtos import ChatMessageInfo
from timesheet_kernel.models.chat import TimesheetChat
from timesheet_kernel.selectors.base import BaseSelector


class ChatSelector(BaseSelector[TimesheetChat]):

    def thread(self, timesheet_id: UUID) -> tuple[ChatMessageInfo, ...]:
        messages = self.session.execute(
            select(TimesheetChat)
            .where(TimesheetChat.timesheet_id == timesheet_id)
            .order_by(TimesheetChat.posted_at, TimesheetChat.id)
        ).scalars().all()

        children: dict[UUID | None, list[TimesheetChat]] = defaultdict(list)
        for message in messages:
            children[message.parent_id].append(message)

        def build(message: TimesheetChat) -> ChatMessageInfo:
            replies = tuple(build(child) for child in children.get(message.id, ()))
            return message.to_dto(replies=replies)

        return tuple(build(root) for root in children.get(None, ()))
