"""Shared builders for timesheet tests."""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from timesheet_kernel.domain.dtos import RowInput

# Monday..Sunday of the week every test works in unless it says otherwise.
WEEK_START = date(2024, 1, 1)
WEEK_END = date(2024, 1, 7)


def week_hours(*hours) -> tuple[Decimal, ...]:
    """Seven day buckets; missing trailing days are zero."""
    values = [Decimal(str(h)) for h in hours]
    return tuple(values + [Decimal("0")] * (7 - len(values)))


def make_row(project_id: UUID, task_id: UUID | None = None, hours=None, note=None) -> RowInput:
    return RowInput(
        project_id=project_id,
        task_id=task_id or uuid4(),
        hours=hours or week_hours(8, 8, 8, 8, 8),
        achievement_note=note,
    )
