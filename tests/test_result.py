"""
Tests for the outcome container and typed errors.

Validates branch exclusivity, transformations, pattern dispatch, the bridge
into exceptions and back, and user-facing error formatting.
"""

import pytest

from resilient_http.errors import (
    AppError,
    CircuitBreakerOpenError,
    ErrorKind,
    RequestFailedError,
    ResilientHTTPError,
    ResultAccessError,
    format_app_error,
    from_unknown,
)
from resilient_http.result import Result, capture


class TestResult:
    """Test Result construction and access."""

    def test_ok(self):
        result = Result.ok(42)
        assert result.is_ok
        assert not result.is_err
        assert result.value == 42

    def test_err(self):
        error = AppError.validation("bad email")
        result = Result.err(error)
        assert result.is_err
        assert not result.is_ok
        assert result.error is error

    def test_reading_wrong_branch_fails_fast(self):
        with pytest.raises(ResultAccessError):
            Result.ok(1).error
        with pytest.raises(ResultAccessError):
            Result.err(AppError.unknown("x")).value

    def test_ok_may_hold_none(self):
        result = Result.ok(None)
        assert result.is_ok
        assert result.value is None

    def test_immutable(self):
        result = Result.ok(1)
        with pytest.raises(AttributeError):
            result._value = 2

    def test_map(self):
        assert Result.ok(2).map(lambda v: v * 10) == Result.ok(20)

        error = AppError.network("down")
        assert Result.err(error).map(lambda v: v * 10).error is error

    def test_map_error(self):
        mapped = Result.err("raw").map_error(lambda e: AppError.unknown(e))
        assert mapped.error == AppError.unknown("raw")

        assert Result.ok(3).map_error(lambda e: "never").value == 3

    def test_match(self):
        handlers = {"ok": lambda v: f"value {v}", "err": format_app_error}

        assert Result.ok(5).match(**handlers) == "value 5"
        assert (
            Result.err(AppError.conflict("Conflict")).match(**handlers)
            == "Conflict: Conflict"
        )

    def test_unwrap_or_raise(self):
        assert Result.ok("v").unwrap_or_raise() == "v"

        error = AppError.unknown("Request failed with status 503", status_code=503)
        with pytest.raises(RequestFailedError) as exc_info:
            Result.err(error).unwrap_or_raise()

        assert exc_info.value.error is error
        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "Unknown: Request failed with status 503"


class TestCapture:
    """Test translating raised failures back into a Result."""

    async def test_success(self):
        async def operation():
            return "done"

        assert await capture(operation) == Result.ok("done")

    async def test_request_failed_error_keeps_original_error(self):
        error = AppError.unauthorized("Unauthorized", status_code=401)

        async def operation():
            raise RequestFailedError(error)

        result = await capture(operation)
        assert result.error is error

    async def test_other_exceptions_become_unknown(self):
        async def operation():
            raise CircuitBreakerOpenError("OPEN")

        result = await capture(operation)
        assert result.error.kind is ErrorKind.UNKNOWN
        assert isinstance(result.error.cause, CircuitBreakerOpenError)


class TestAppError:
    """Test typed errors."""

    @pytest.mark.parametrize(
        "factory,kind,label",
        [
            (AppError.validation, ErrorKind.VALIDATION, "Validation"),
            (AppError.unauthorized, ErrorKind.UNAUTHORIZED, "Unauthorized"),
            (AppError.network, ErrorKind.NETWORK, "Network"),
            (AppError.conflict, ErrorKind.CONFLICT, "Conflict"),
            (AppError.unknown, ErrorKind.UNKNOWN, "Unknown"),
        ],
    )
    def test_factories_and_formatting(self, factory, kind, label):
        error = factory("something happened", cause=RuntimeError("secret detail"))

        assert error.kind is kind
        assert format_app_error(error) == f"{label}: something happened"
        assert "secret detail" not in format_app_error(error)

    def test_errors_are_immutable(self):
        error = AppError.network("down")
        with pytest.raises(AttributeError):
            error.message = "up"

    def test_from_unknown(self):
        error = AppError.conflict("Conflict")
        assert from_unknown(error) is error
        assert from_unknown(RequestFailedError(error)) is error

        converted = from_unknown(ValueError("bad"))
        assert converted.kind is ErrorKind.UNKNOWN
        assert converted.message == "bad"

        assert from_unknown("weird").message == "Unexpected error"
        assert from_unknown(KeyError()).message == "KeyError"


class TestExceptionHierarchy:
    """Test the exception inheritance structure."""

    def test_all_errors_share_base(self):
        for exc in (
            RequestFailedError(AppError.unknown("x")),
            CircuitBreakerOpenError("OPEN"),
            ResultAccessError("wrong branch"),
        ):
            assert isinstance(exc, ResilientHTTPError)

    def test_breaker_error_message(self):
        exc = CircuitBreakerOpenError("OPEN")
        assert exc.state == "OPEN"
        assert exc.message == (
            "Circuit breaker is OPEN. Service is temporarily unavailable."
        )
