"""
Outcome container used instead of exceptions for expected failure paths.

A ``Result`` holds exactly one of a success value or an error. It is
immutable once built; reading the wrong branch raises ``ResultAccessError``.
"""

from collections.abc import Awaitable
from typing import Any, Callable, Generic, TypeVar

from .errors import AppError, RequestFailedError, ResultAccessError, from_unknown

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")

_MISSING = object()


class Result(Generic[T, E]):
    """
    Either a success holding ``T`` or a failure holding ``E``.

    Build with ``Result.ok(value)`` or ``Result.err(error)``; the
    constructor is not meant to be called directly.
    """

    __slots__ = ("_ok", "_value", "_error")

    def __init__(self, ok: bool, value: Any = _MISSING, error: Any = _MISSING):
        object.__setattr__(self, "_ok", ok)
        object.__setattr__(self, "_value", value)
        object.__setattr__(self, "_error", error)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Result is immutable")

    @classmethod
    def ok(cls, value: T) -> "Result[T, Any]":
        return cls(True, value=value)

    @classmethod
    def err(cls, error: E) -> "Result[Any, E]":
        return cls(False, error=error)

    @property
    def is_ok(self) -> bool:
        return self._ok

    @property
    def is_err(self) -> bool:
        return not self._ok

    @property
    def value(self) -> T:
        if not self._ok:
            raise ResultAccessError("Tried to read value from Err result")
        return self._value  # type: ignore[no-any-return]

    @property
    def error(self) -> E:
        if self._ok:
            raise ResultAccessError("Tried to read error from Ok result")
        return self._error  # type: ignore[no-any-return]

    def map(self, fn: Callable[[T], U]) -> "Result[U, E]":
        """Transform the success value, passing a failure through unchanged."""
        if self._ok:
            return Result.ok(fn(self._value))
        return Result.err(self._error)

    def map_error(self, fn: Callable[[E], F]) -> "Result[T, F]":
        """Transform the error, passing a success through unchanged."""
        if self._ok:
            return Result.ok(self._value)
        return Result.err(fn(self._error))

    def match(self, *, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        """Dispatch to exactly one handler and return its result."""
        return ok(self._value) if self._ok else err(self._error)

    def unwrap_or_raise(self) -> T:
        """
        Return the success value or raise the failure as an exception.

        Raises:
            RequestFailedError: carrying the error (converted to an AppError)
        """
        if self._ok:
            return self._value  # type: ignore[no-any-return]
        raise RequestFailedError(from_unknown(self._error))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return (self._ok, self._value, self._error) == (
            other._ok,
            other._value,
            other._error,
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._ok:
            return f"Result.ok({self._value!r})"
        return f"Result.err({self._error!r})"


async def capture(
    operation: Callable[[], Awaitable[T]],
) -> "Result[T, AppError]":
    """
    Run an async operation and convert anything it raises into a failure.

    This is the boundary where failures raised by the retry policy or the
    circuit breaker are turned back into a ``Result``.

    Args:
        operation: No-argument coroutine function

    Returns:
        ``Result.ok`` with the operation's value, or ``Result.err`` with the
        raised exception converted by ``from_unknown``
    """
    try:
        value = await operation()
    except Exception as exc:
        return Result.err(from_unknown(exc))
    return Result.ok(value)

