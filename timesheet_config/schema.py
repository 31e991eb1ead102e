"""
TimesheetSettings schema.

The typed form of a timesheet configuration file.  YAML is parsed into
this frozen dataclass by the loader; ``bridges`` turns it into the
kernel's ``WorkflowPolicy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class TimesheetSettings:
    """Runtime settings for one deployment of the timesheet workflow."""

    database_url: str = "sqlite:///:memory:"
    lock_timeout_ms: int = 5000
    max_hours_per_day: Decimal = Decimal("24")
    max_period_days: int = 7
    max_comment_length: int = 500
    max_note_length: int = 500
    max_message_length: int = 500
    manager_role_names: frozenset[str] = frozenset({"admin", "manager", "hr", "gm", "ceo"})
    general_manager_role_names: frozenset[str] = frozenset({"gm", "ceo"})
    # SHA-256 of the canonical source mapping; empty for hand-built settings.
    checksum: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.lock_timeout_ms <= 0:
            raise ValueError(f"lock_timeout_ms must be positive, got {self.lock_timeout_ms}")
        if self.max_hours_per_day <= 0:
            raise ValueError(
                f"max_hours_per_day must be positive, got {self.max_hours_per_day}"
            )
        if self.max_period_days < 1:
            raise ValueError(f"max_period_days must be at least 1, got {self.max_period_days}")
        for name in ("max_comment_length", "max_note_length", "max_message_length"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if not self.general_manager_role_names:
            raise ValueError("general_manager_role_names must not be empty")
