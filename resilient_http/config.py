"""
Configuration system for the resilient HTTP client library.

Provides Pydantic-based configuration with sensible defaults for the retry
policy, circuit breaker and HTTP client, including the optional hooks the
client calls for auth, interception and observation.
"""

from collections.abc import Awaitable
from typing import Any, Callable, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]
RequestInterceptor = Callable[[Any], Any]
ResponseObserver = Callable[[Any], Any]
TokenRefresher = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class TimeoutConfig(BaseModel):
    """HTTP timeout configuration. Unset phases wait indefinitely."""

    connect: Optional[float] = Field(
        default=None, description="Connection timeout in seconds"
    )
    read: Optional[float] = Field(default=None, description="Read timeout in seconds")
    write: Optional[float] = Field(
        default=None, description="Write timeout in seconds"
    )
    pool: Optional[float] = Field(default=None, description="Pool timeout in seconds")

    def to_httpx_timeout(self) -> httpx.Timeout:
        """Convert to httpx.Timeout object."""
        return httpx.Timeout(
            connect=self.connect, read=self.read, write=self.write, pool=self.pool
        )


class RetryConfig(BaseModel):
    """Retry policy configuration."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts")
    base_delay_seconds: float = Field(
        default=0.1, ge=0.0, description="Base delay for exponential backoff"
    )
    max_delay_seconds: float = Field(
        default=10.0, ge=0.0, description="Maximum wait time between retries"
    )
    multiplier: float = Field(
        default=2.0, ge=1.0, description="Exponential backoff multiplier"
    )
    retryable_status_codes: frozenset[int] = Field(
        default=DEFAULT_RETRYABLE_STATUS_CODES,
        description="HTTP status codes that count as transient failures",
    )

    model_config = ConfigDict(extra="forbid", frozen=True)

    def delay_before(self, attempt: int) -> float:
        """Delay before the given 0-indexed attempt (attempt >= 1)."""
        try:
            delay = self.base_delay_seconds * self.multiplier**attempt
        except OverflowError:
            return self.max_delay_seconds if self.base_delay_seconds > 0 else 0.0
        return min(delay, self.max_delay_seconds)


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker configuration."""

    failure_threshold: int = Field(
        default=5, ge=1, description="Number of failures before opening circuit"
    )
    reset_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Seconds after the last failure before a recovery probe",
    )

    model_config = ConfigDict(extra="forbid", frozen=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
    logger_name: str = Field(default="resilient_http", description="Logger name")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class ClientConfig(BaseModel):
    """
    Complete configuration for the HTTP client.

    The hooks are optional plain or coroutine functions. The client calls
    them at fixed points of every request; none of them is required.

    **Hook Contract:**

    - ``get_auth_token()``: current bearer token or None
    - ``request_interceptor(request)``: returns the ``HttpRequest`` to send
    - ``response_observer(info)``: receives a ``ResponseInfo`` after every
      completed attempt; its return value is ignored
    - ``refresh_token()``: called once on a 401; returns a new token or None

    **Example:**
    ```python
    config = ClientConfig(
        base_url="https://api.example.com",
        get_auth_token=lambda: store.get("token"),
        refresh_token=refresh_session,
    )
    ```

    Attributes:
        base_url: Prefix for relative request URLs (trailing slash ignored)
        timeout: Optional transport timeouts; None enforces no deadline
        logging: Logger name and level
        follow_redirects: Whether to automatically follow HTTP redirects
        verify_ssl: Whether to verify SSL certificates (disable only for testing)
        user_agent: Custom User-Agent header for request identification
    """

    base_url: str = Field(default="", description="Base URL for the API")
    timeout: Optional[TimeoutConfig] = Field(default=None)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    user_agent: Optional[str] = Field(
        default=None, description="Custom User-Agent header"
    )

    get_auth_token: Optional[TokenProvider] = None
    request_interceptor: Optional[RequestInterceptor] = None
    response_observer: Optional[ResponseObserver] = None
    refresh_token: Optional[TokenRefresher] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def to_httpx_timeout(self) -> httpx.Timeout:
        if self.timeout is None:
            return httpx.Timeout(None)
        return self.timeout.to_httpx_timeout()
