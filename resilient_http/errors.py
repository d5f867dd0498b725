"""
Typed errors and the exception hierarchy for the resilient HTTP client.

Two kinds of failure objects live here:

1. ``AppError`` values: the typed error carried inside a failed ``Result``.
   The HTTP client never raises for ordinary request failures; it returns
   ``Result.err(AppError(...))`` instead.
2. Exceptions: raised only where a failure has to cross an exception-based
   boundary (retry policy, circuit breaker) or where a programming error
   must fail fast.

**Error Kinds:**

```
ErrorKind
├── VALIDATION    (caller input or response payload malformed)
├── UNAUTHORIZED  (401, including a failed refresh)
├── NETWORK       (no response obtained: DNS, connect, protocol errors)
├── CONFLICT      (409)
└── UNKNOWN       (any other non-success status or unclassified exception)
```

**Exception Hierarchy:**

```
ResilientHTTPError (base exception)
├── RequestFailedError      (an AppError lifted into an exception)
├── CircuitBreakerOpenError (breaker rejected the call without running it)
└── ResultAccessError       (wrong branch read from a Result)
```

**Bridging Example:**

```python
policy = RetryPolicy(RetryConfig())
result = await capture(
    lambda: policy.execute(lambda: client.request_or_raise(request))
)
if result.is_err:
    print(format_app_error(result.error))
```

``request_or_raise`` lifts a failed ``Result`` into ``RequestFailedError`` so
the retry policy can see its ``status_code``; ``capture`` turns whatever is
finally raised back into a ``Result``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of error categories."""

    VALIDATION = "Validation"
    UNAUTHORIZED = "Unauthorized"
    NETWORK = "Network"
    CONFLICT = "Conflict"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class AppError:
    """
    A typed, immutable error value.

    ``kind`` decides retry eligibility and labeling; ``message`` is for
    humans only. ``cause`` holds the underlying exception (if any) and is
    never shown to end users. ``status_code`` records the HTTP status that
    produced the error, or None when no response was obtained.

    Attributes:
        kind: Error category
        message: Human-readable description
        cause: Optional opaque underlying cause
        status_code: HTTP status code (if the error came from a response)
    """

    kind: ErrorKind
    message: str
    cause: Optional[Any] = None
    status_code: Optional[int] = None

    @classmethod
    def validation(cls, message: str, cause: Optional[Any] = None) -> "AppError":
        return cls(ErrorKind.VALIDATION, message, cause)

    @classmethod
    def unauthorized(
        cls,
        message: str,
        cause: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> "AppError":
        return cls(ErrorKind.UNAUTHORIZED, message, cause, status_code)

    @classmethod
    def network(cls, message: str, cause: Optional[Any] = None) -> "AppError":
        return cls(ErrorKind.NETWORK, message, cause)

    @classmethod
    def conflict(
        cls,
        message: str,
        cause: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> "AppError":
        return cls(ErrorKind.CONFLICT, message, cause, status_code)

    @classmethod
    def unknown(
        cls,
        message: str,
        cause: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> "AppError":
        return cls(ErrorKind.UNKNOWN, message, cause, status_code)


def format_app_error(error: AppError) -> str:
    """Render an error for display as ``"<Kind>: <message>"``."""
    return f"{error.kind.value}: {error.message}"


class ResilientHTTPError(Exception):
    """
    Base exception for all library errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class RequestFailedError(ResilientHTTPError):
    """
    A failed ``Result`` lifted into an exception.

    Raised by ``Result.unwrap_or_raise`` and ``HttpClient.request_or_raise``
    so that exception-based decorators can inspect the failure. The retry
    policy reads ``status_code`` and ``kind`` to decide whether to retry.

    Attributes:
        error: The carried AppError
        kind: Shortcut for ``error.kind``
        status_code: Shortcut for ``error.status_code``
    """

    def __init__(self, error: AppError):
        self.error = error
        self.kind = error.kind
        self.status_code = error.status_code
        super().__init__(format_app_error(error))


class CircuitBreakerOpenError(ResilientHTTPError):
    """
    The circuit breaker rejected a call without invoking the operation.

    Raised while the breaker is OPEN, and while a HALF_OPEN trial call is
    already in flight. Not retryable by the retry policy: it carries no
    status code and is not a connectivity failure.
    """

    def __init__(self, state: Any):
        self.state = state
        label = getattr(state, "name", str(state))
        super().__init__(
            f"Circuit breaker is {label}. Service is temporarily unavailable."
        )


class ResultAccessError(ResilientHTTPError):
    """The wrong branch of a ``Result`` was read."""

    pass


def from_unknown(error: Any) -> AppError:
    """
    Convert an arbitrary raised value into an ``AppError``.

    Args:
        error: Anything caught at a boundary

    Returns:
        The error itself if it already is an AppError, the carried error of a
        RequestFailedError, otherwise an UNKNOWN error wrapping it
    """
    if isinstance(error, AppError):
        return error
    if isinstance(error, RequestFailedError):
        return error.error
    if isinstance(error, BaseException):
        return AppError.unknown(str(error) or type(error).__name__, cause=error)
    return AppError.unknown("Unexpected error", cause=error)
