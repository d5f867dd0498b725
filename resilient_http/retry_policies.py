"""
Retry policy for the resilient HTTP client.

Implements retry logic using tenacity with capped exponential backoff and
exception-based triggering: only connectivity failures and failures carrying
a retryable status code are retried.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable
from typing import Any, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from .config import RetryConfig
from .errors import ErrorKind, RequestFailedError

T = TypeVar("T")

logger = logging.getLogger(f"{__name__}.retry")


class wait_capped_exponential(wait_base):
    """
    Wait ``min(base * multiplier ** k, max)`` before attempt ``k``.

    ``k`` is the 0-indexed number of the attempt about to run, which is the
    number of attempts already made (``retry_state.attempt_number``).
    """

    def __init__(self, config: RetryConfig):
        self.config = config

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.config.delay_before(retry_state.attempt_number)


def is_connectivity_failure(exc: BaseException) -> bool:
    """True when no response could be obtained from the remote host."""
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return True
    return isinstance(exc, RequestFailedError) and exc.kind is ErrorKind.NETWORK


class RetryPolicy:
    """
    Retry a no-argument async operation with exponential backoff.

    A failure is transient if it is a connectivity failure, or if it exposes
    an integer ``status_code`` found in ``config.retryable_status_codes``.
    Any other failure propagates immediately without consuming attempts.
    When attempts run out, the last failure is re-raised unchanged.

    **Example:**
    ```python
    policy = RetryPolicy(RetryConfig(max_attempts=3))
    data = await policy.execute(lambda: client.request_or_raise(request))
    ```

    The policy holds no per-call state, so one instance can be shared by
    any number of concurrent callers.
    """

    def __init__(
        self,
        config: RetryConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self._sleep = sleep
        self._wait = wait_capped_exponential(config)

    def is_retryable(self, exc: BaseException) -> bool:
        if is_connectivity_failure(exc):
            return True
        status_code = getattr(exc, "status_code", None)
        return (
            isinstance(status_code, int)
            and status_code in self.config.retryable_status_codes
        )

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        if retry_state.outcome and retry_state.outcome.failed:
            exception = retry_state.outcome.exception()
            next_wait = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.debug(
                f"Operation failed with [{type(exception).__name__}: {exception}]. "
                f"Retrying in {next_wait:.2f} seconds "
                f"(Attempt {retry_state.attempt_number} of {self.config.max_attempts})"
            )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(self.is_retryable),
            stop=stop_after_attempt(self.config.max_attempts),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=self._log_retry_attempt,
            reraise=True,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: No-argument callable returning an awaitable

        Returns:
            The operation's first successful result

        Raises:
            The last failure raised by ``operation``
        """
        async for attempt in self._retrying():
            with attempt:
                return await operation()
        raise RuntimeError("retry loop ended without an outcome")

    def wrap_operation(
        self, func: Callable[..., Awaitable[T]]
    ) -> Callable[..., Awaitable[T]]:
        """
        Wrap an async function so every call runs through this policy.

        Args:
            func: The async function to wrap

        Returns:
            Coroutine function with the same signature
        """

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.execute(lambda: func(*args, **kwargs))

        return wrapper
