"""
Circuit breaker for the resilient HTTP client.

Implements the circuit breaker pattern to stop calling a dependency that
keeps failing, and to probe it again once a cooldown has elapsed.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from .config import CircuitBreakerConfig
from .errors import CircuitBreakerOpenError

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker(Generic[T]):
    """
    Circuit breaker guarding a single async operation.

    The operation is fixed at construction; every ``execute()`` call runs it
    (or refuses to). Keep one breaker per call site for the lifetime of the
    application so that failures accumulate across calls.

    **State Transitions:**

    ```
    CLOSED ──(failures reach threshold)──▶ OPEN
    OPEN ──(reset timeout elapsed, checked lazily)──▶ HALF_OPEN
    HALF_OPEN ──(trial call succeeds)──▶ CLOSED (counters cleared)
    HALF_OPEN ──(trial call fails)──▶ OPEN (timestamp refreshed)
    ```

    1. **CLOSED**: calls pass through; every failure increments the counter
       and stamps the failure time.
    2. **OPEN**: calls fail immediately with ``CircuitBreakerOpenError``
       without running the operation.
    3. **HALF_OPEN**: exactly one trial call runs. Other callers arriving
       while the trial is in flight are rejected like in OPEN.

    The OPEN → HALF_OPEN transition is evaluated on ``get_state()`` and on
    ``execute()``, never by a timer. Transitions depend only on the failure
    count and on elapsed time, never on the request itself.

    The breaker never swallows the operation's error: after recording it,
    the original exception is re-raised.

    **Concurrency:**

    State changes in ``execute()`` happen under an ``asyncio.Lock``; the
    operation itself runs outside the lock.

    Attributes:
        config: Circuit breaker configuration settings
        logger: Logger for state transition events
    """

    def __init__(
        self,
        operation: Callable[[], Awaitable[T]],
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self._operation = operation
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(f"{__name__}.CircuitBreaker")

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    def get_state(self) -> CircuitState:
        """
        Report the current state.

        An OPEN breaker whose reset timeout has elapsed since the last
        failure moves to HALF_OPEN here; this is the only side effect.
        """
        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_time or 0.0)
            if elapsed > self.config.reset_timeout_seconds:
                self._state = CircuitState.HALF_OPEN
                self.logger.info(
                    "Circuit breaker moving to HALF_OPEN state for recovery test"
                )
        return self._state

    async def execute(self) -> T:
        """
        Run the guarded operation if the breaker allows it.

        Returns:
            The operation's result

        Raises:
            CircuitBreakerOpenError: If the breaker is OPEN, or a HALF_OPEN
                trial is already in flight
            Exception: Whatever the operation raised
        """
        async with self._lock:
            state = self.get_state()
            if state is CircuitState.OPEN:
                raise CircuitBreakerOpenError(state)
            if state is CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenError(state)
                self._trial_in_flight = True

        try:
            result = await self._operation()
        except Exception:
            async with self._lock:
                self._record_failure(state)
            raise
        except BaseException:
            # Cancelled trial: let the next caller probe again.
            if state is CircuitState.HALF_OPEN:
                self._trial_in_flight = False
            raise

        async with self._lock:
            if state is CircuitState.HALF_OPEN:
                self._reset()
        return result

    def _record_failure(self, state: CircuitState) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()
        if state is CircuitState.HALF_OPEN:
            self._trial_in_flight = False
            self._state = CircuitState.OPEN
            self.logger.warning(
                "Circuit breaker re-OPENED after failed recovery test - "
                f"failing fast for {self.config.reset_timeout_seconds}s"
            )
        elif (
            self._state is CircuitState.CLOSED
            and self._failure_count >= self.config.failure_threshold
        ):
            self._state = CircuitState.OPEN
            self.logger.warning(
                f"Circuit breaker OPENED after {self._failure_count} failures - "
                f"failing fast for {self.config.reset_timeout_seconds}s"
            )

    def _reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._trial_in_flight = False
        self.logger.info("Circuit breaker CLOSED - service recovered")
