"""
Kernel-side workflow policy.

Limits and role vocabularies the services enforce.  The kernel never
reads configuration files; ``timesheet_config.bridges`` builds one of
these from loaded settings, and tests construct it directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class WorkflowPolicy:
    """Frozen limits for one kernel instance."""

    max_hours_per_day: Decimal = Decimal("24")
    max_period_days: int = 7
    max_comment_length: int = 500
    max_note_length: int = 500
    max_message_length: int = 500
    lock_timeout_ms: int = 5000
    # Role names that may reopen any rejected timesheet and read any thread.
    manager_role_names: frozenset[str] = frozenset({"admin", "manager", "hr", "gm", "ceo"})
    # Role names that form the final approval stage.
    general_manager_role_names: frozenset[str] = frozenset({"gm", "ceo"})
