"""Database layer - engine, base classes, and append-only enforcement."""

from timesheet_kernel.db.base import Base, TrackedBase, UUIDString
from timesheet_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
]
