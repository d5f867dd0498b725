"""
Resilient Asynchronous Python HTTP Client Library

An HTTP client returning typed outcomes instead of raising, with bearer
token injection, request/response hooks, one-shot token refresh, and two
independent resilience wrappers: a retry policy and a circuit breaker.
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .client import (
    HttpClient,
    HttpRequest,
    HttpResponse,
    ResponseInfo,
    create_http_client,
)
from .config import (
    CircuitBreakerConfig,
    ClientConfig,
    LoggingConfig,
    RetryConfig,
    TimeoutConfig,
)
from .errors import (
    AppError,
    CircuitBreakerOpenError,
    ErrorKind,
    RequestFailedError,
    ResilientHTTPError,
    ResultAccessError,
    format_app_error,
    from_unknown,
)
from .result import Result, capture
from .retry_policies import RetryPolicy

__all__ = [
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "ResponseInfo",
    "create_http_client",
    "ClientConfig",
    "TimeoutConfig",
    "RetryConfig",
    "CircuitBreakerConfig",
    "LoggingConfig",
    "RetryPolicy",
    "CircuitBreaker",
    "CircuitState",
    "Result",
    "capture",
    "AppError",
    "ErrorKind",
    "format_app_error",
    "from_unknown",
    "ResilientHTTPError",
    "RequestFailedError",
    "CircuitBreakerOpenError",
    "ResultAccessError",
]

__version__ = "1.0.0"
