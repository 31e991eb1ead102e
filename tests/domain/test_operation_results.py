"""Tests for OperationResult / OperationError and the error taxonomy mapping."""

from uuid import uuid4

import pytest

from timesheet_kernel.domain.results import ErrorKind, OperationError, OperationResult
from timesheet_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    EmptyTimesheetError,
    ImmutabilityViolationError,
    LockTimeoutError,
    NoPendingApprovalError,
    TimesheetKernelError,
    TimesheetNotFoundError,
)


class TestFromException:

    @pytest.mark.parametrize(
        "exc, kind, status, retryable",
        [
            (EmptyTimesheetError(), ErrorKind.VALIDATION, 422, False),
            (ApprovalAlreadyDecidedError(uuid4(), uuid4(), "approved"), ErrorKind.STATE_CONFLICT, 409, True),
            (LockTimeoutError("Timesheet", uuid4()), ErrorKind.STATE_CONFLICT, 409, True),
            (NoPendingApprovalError(uuid4(), uuid4()), ErrorKind.AUTHORIZATION, 403, False),
            (TimesheetNotFoundError(uuid4()), ErrorKind.NOT_FOUND, 404, False),
            (ImmutabilityViolationError("TimesheetChat", "x", "no"), ErrorKind.INTEGRITY, 500, False),
        ],
    )
    def test_mapping(self, exc, kind, status, retryable):
        error = OperationError.from_exception(exc)
        assert error.kind is kind
        assert error.http_status == status
        assert error.retryable is retryable
        assert error.code == exc.code
        assert error.message == str(exc)

    def test_every_kernel_category_maps_to_a_kind(self):
        def all_subclasses(cls):
            for sub in cls.__subclasses__():
                yield sub
                yield from all_subclasses(sub)

        for cls in all_subclasses(TimesheetKernelError):
            assert ErrorKind(cls.category)


class TestOperationResult:

    def test_ok(self):
        result = OperationResult.ok(42)
        assert result.is_success
        assert result.kind is None
        assert result.unwrap() == 42

    def test_fail(self):
        error = OperationError.from_exception(TimesheetNotFoundError(uuid4()))
        result = OperationResult.fail(error)
        assert not result.is_success
        assert result.kind is ErrorKind.NOT_FOUND
        with pytest.raises(RuntimeError, match="TIMESHEET_NOT_FOUND"):
            result.unwrap()
