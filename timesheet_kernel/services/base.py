"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The ``TimesheetWorkflow``
    coordinator (or the test harness) owns commit/rollback, which is also
    what releases every row lock taken by ``LockService``.

Failure modes:
    - If a subclass calls ``session.commit()`` mid-operation, locks are
      released early and a half-advanced approval chain could become
      visible to a concurrent approver.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only projections -- those belong in
          ``timesheet_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
