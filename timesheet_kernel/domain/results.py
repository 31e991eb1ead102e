"""
Operation results (``timesheet_kernel.domain.results``).

Responsibility
--------------
Typed success-or-error values returned by the ``TimesheetWorkflow``
coordinator, so callers are forced to distinguish a state conflict from a
validation failure instead of catching a generic exception.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Imports only
``timesheet_kernel.exceptions``.

Mapping
-------
    ErrorKind        http_status  retryable
    ---------------  -----------  ---------
    validation           422         no
    state_conflict       409         yes
    authorization        403         no
    not_found            404         no
    integrity            500         no
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from timesheet_kernel.exceptions import TimesheetKernelError

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STATE_CONFLICT = "state_conflict"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    INTEGRITY = "integrity"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTEGRITY: 500,
}


@dataclass(frozen=True)
class OperationError:
    """Machine-readable description of why an operation was refused."""

    kind: ErrorKind
    code: str
    message: str
    retryable: bool = False

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    @classmethod
    def from_exception(cls, exc: TimesheetKernelError) -> OperationError:
        return cls(
            kind=ErrorKind(exc.category),
            code=exc.code,
            message=str(exc),
            retryable=exc.retryable,
        )


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Either ``value`` (success) or ``error`` (failure), never both."""

    value: T | None = None
    error: OperationError | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the value, or raise if the operation failed."""
        if self.error is not None:
            raise RuntimeError(
                f"Operation failed [{self.error.code}]: {self.error.message}"
            )
        return self.value

    @classmethod
    def ok(cls, value: T) -> OperationResult[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: OperationError) -> OperationResult[T]:
        return cls(error=error)
