"""
Module: timesheet_kernel.db.engine
Responsibility: The one place the kernel's database connection is
    configured: engine construction per dialect, the session factory, and
    the ``session_scope()`` commit-or-rollback helper.
Architecture position: Kernel > DB.  Imports db/base.py and, for table
    creation only, the models package and db/immutability.py.

Backends:
    - PostgreSQL (production): READ COMMITTED with explicit
      ``SELECT ... FOR UPDATE`` row locks taken by LockService.  A pooled
      engine so concurrent requests each get their own connection.
    - SQLite (single process, test suite): every transaction starts with
      ``BEGIN IMMEDIATE``, which takes the database write lock up front.
      Writers are serialized, which is stricter than per-timesheet locking,
      and a writer that waits past ``busy_timeout_s`` gets "database is
      locked", which LockService reports as a lock timeout.

Failure modes:
    - RuntimeError when a session is requested before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from timesheet_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(url: URL, echo: bool, busy_timeout_s: float) -> Engine:
    in_memory = url.database in (None, "", ":memory:")
    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout_s},
        # An in-memory database lives inside one connection; share it.
        poolclass=StaticPool if in_memory else None,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite would otherwise defer BEGIN to the first write and break SAVEPOINT.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def _postgres_engine(url: URL, echo: bool, **pool_options) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
        **pool_options,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout_s: float = 5.0,
) -> Engine:
    """
    Build the kernel engine and session factory.

    A second call replaces the first.  Pool options apply to PostgreSQL
    only; ``busy_timeout_s`` applies to SQLite only.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        _engine = _sqlite_engine(url, echo, busy_timeout_s)
    else:
        _engine = _postgres_engine(
            url,
            echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": None if dialect == "sqlite" else pool_size,
        },
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    _require_factory()
    return _engine


def get_session() -> Session:
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open one session per thread."""
    return _require_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Pair it with a coordinator built with ``auto_commit=False`` to run
    several workflow operations as one transaction:

        with session_scope() as session:
            workflow = TimesheetWorkflow(session, directory, auto_commit=False)
            workflow.approve(timesheet_id, manager_id).unwrap()
            workflow.post_message(timesheet_id, manager_id, "approved, thanks").unwrap()
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(install_listeners: bool = True) -> None:
    """
    Create every kernel table and turn on append-only enforcement.

    Args:
        install_listeners: If True, register the ORM immutability listeners
            (history, chat, submitted timesheets, rows under review).  They
            are process-wide and registering twice is a no-op.

    Raises:
        RuntimeError: If the engine is not initialized.
    """
    from timesheet_kernel.db.base import Base
    from timesheet_kernel.db.immutability import register_immutability_listeners
    import timesheet_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())
    if install_listeners:
        register_immutability_listeners()
    logger.info(
        "tables_created",
        extra={
            "tables": sorted(Base.metadata.tables),
            "immutability_listeners": install_listeners,
        },
    )


def drop_tables() -> None:
    """Drop every kernel table. Test and local setup use only."""
    from timesheet_kernel.db.base import Base
    import timesheet_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
