"""
Input validation helpers.

Pure checks with no I/O, run before any lock is taken.  Each raises the
matching WorkflowValidationError subclass.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Sequence

from timesheet_kernel.domain.dtos import WEEKDAYS, RowInput
from timesheet_kernel.domain.policy import WorkflowPolicy
from timesheet_kernel.exceptions import (
    CommentRequiredError,
    DuplicateRowError,
    EmptyMessageError,
    EmptyTimesheetError,
    InvalidHoursError,
    InvalidPeriodError,
    TextTooLongError,
)


def require_comment(comment: str | None, action: str, policy: WorkflowPolicy) -> str:
    """Return the stripped comment; it must be present and within limits."""
    text = (comment or "").strip()
    if not text:
        raise CommentRequiredError(action)
    check_length("comment", text, policy.max_comment_length)
    return text


def optional_comment(comment: str | None, policy: WorkflowPolicy) -> str | None:
    text = (comment or "").strip()
    if not text:
        return None
    check_length("comment", text, policy.max_comment_length)
    return text


def require_message(body: str | None, policy: WorkflowPolicy) -> str:
    text = (body or "").strip()
    if not text:
        raise EmptyMessageError()
    check_length("message", text, policy.max_message_length)
    return text


def check_length(field: str, text: str, max_length: int) -> None:
    if len(text) > max_length:
        raise TextTooLongError(field, len(text), max_length)


def validate_period(period_start: date, period_end: date, policy: WorkflowPolicy) -> None:
    if period_end < period_start:
        raise InvalidPeriodError(
            str(period_start), str(period_end), "end is before start",
        )
    span = (period_end - period_start).days + 1
    if span > policy.max_period_days:
        raise InvalidPeriodError(
            str(period_start),
            str(period_end),
            f"spans {span} days, maximum is {policy.max_period_days}",
        )


def normalize_rows(rows: Sequence[RowInput], policy: WorkflowPolicy) -> list[RowInput]:
    """
    Validate draft rows and return them with hours coerced to Decimal.

    Raises on an empty set, a wrong bucket count, an out-of-range bucket,
    an over-long note, or a repeated (project, task).
    """
    if not rows:
        raise EmptyTimesheetError()

    seen: set[tuple] = set()
    normalized: list[RowInput] = []
    for row in rows:
        key = (row.project_id, row.task_id)
        if key in seen:
            raise DuplicateRowError(row.project_id, row.task_id)
        seen.add(key)

        if len(row.hours) != len(WEEKDAYS):
            raise InvalidHoursError(
                "week", f"{len(row.hours)} buckets", str(policy.max_hours_per_day),
            )

        hours = []
        for day, raw in zip(WEEKDAYS, row.hours):
            try:
                value = raw if isinstance(raw, Decimal) else Decimal(str(raw))
            except InvalidOperation:
                raise InvalidHoursError(day, str(raw), str(policy.max_hours_per_day))
            if not value.is_finite() or value < 0 or value > policy.max_hours_per_day:
                raise InvalidHoursError(day, str(raw), str(policy.max_hours_per_day))
            hours.append(value)

        note = row.achievement_note.strip() if row.achievement_note else None
        if note:
            check_length("achievement_note", note, policy.max_note_length)

        normalized.append(
            RowInput(
                project_id=row.project_id,
                task_id=row.task_id,
                hours=tuple(hours),
                achievement_note=note or None,
            )
        )
    return normalized
