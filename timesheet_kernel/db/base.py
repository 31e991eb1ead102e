"""
Declarative base for the timesheet tables.

Architecture position: Kernel > DB.  Every model imports from here; this
module imports nothing else from the kernel.

Column conventions:
    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on SQLite and PostgreSQL.
    - Hours are ``Numeric(6, 2)``: a day bucket is at most 24.00 and a
      weekly row total at most 168.00.  Floats never reach the database.
    - Datetimes are timezone-aware columns.  SQLite drops the offset on
      reload; PostgreSQL keeps it.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(6, 2),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base for the mutable aggregate (timesheets).

    Services set both columns from the injected Clock; the server defaults
    only cover rows written outside the kernel.  Append-only records
    (history, chat) carry their own single timestamp instead.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now())
