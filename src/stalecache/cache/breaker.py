"""Circuit breakers guarding store start-up.

A down store would otherwise be hammered with a connection attempt on
every request. Two breakers implement the same :class:`Breaker`
interface and are picked by configuration through :func:`build_breaker`:

* :class:`PassThroughBreaker` -- no protection, every call runs.
* :class:`CircuitBreaker` -- counts consecutive failures and refuses calls
  for a cool-down period once ``max_failures`` is reached, then lets a
  single probe through.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from stalecache.exceptions import CircuitOpenError
from stalecache.models import CircuitBreakerOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitBreakerState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # normal operation
    OPEN = "open"  # failing, calls refused
    HALF_OPEN = "half_open"  # one probe allowed


class Breaker(ABC):
    """Runs an async operation, possibly refusing it."""

    @abstractmethod
    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run *func* or raise :class:`~stalecache.exceptions.CircuitOpenError`."""

    def get_state(self) -> dict[str, Any]:
        return {}


class PassThroughBreaker(Breaker):
    """A breaker that never opens."""

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        return await func()


class CircuitBreaker(Breaker):
    """Failure-counting breaker with a timed cool-down.

    Args:
        max_failures: Consecutive failures that open the breaker.
        reset_timeout: Milliseconds to stay open before allowing a probe.
        name: Label used in log messages and errors.
        clock: Monotonic clock in seconds, replaceable in tests.
    """

    def __init__(
        self,
        max_failures: int = 1,
        reset_timeout: float = 300_000,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_failures = max_failures
        self.reset_timeout = reset_timeout
        self.name = name
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def _cooled_down(self) -> bool:
        return (self._clock() - self._opened_at) * 1000 >= self.reset_timeout

    def _admit(self) -> bool:
        """Decide whether a call may run, claiming the probe slot if half-open."""
        if self._state == CircuitBreakerState.OPEN and self._cooled_down():
            self._state = CircuitBreakerState.HALF_OPEN
            logger.info("Circuit breaker '%s' half-open, probing", self.name)

        if self._state == CircuitBreakerState.CLOSED:
            return True
        if self._state == CircuitBreakerState.HALF_OPEN and not self._probe_in_flight:
            self._probe_in_flight = True
            return True
        return False

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        if not self._admit():
            raise CircuitOpenError(f"Circuit breaker '{self.name}' is open")

        probing = self._state == CircuitBreakerState.HALF_OPEN
        try:
            result = await func()
        except Exception:
            self._record_failure()
            raise
        finally:
            if probing:
                self._probe_in_flight = False

        if self._state != CircuitBreakerState.CLOSED or self._failure_count:
            if probing:
                logger.info("Circuit breaker '%s' closed after successful probe", self.name)
            self._state = CircuitBreakerState.CLOSED
            self._failure_count = 0
        return result

    def _record_failure(self) -> None:
        self._failure_count += 1
        if (
            self._state == CircuitBreakerState.HALF_OPEN
            or self._failure_count >= self.max_failures
        ):
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self._clock()
            logger.warning(
                "Circuit breaker '%s' opened after %d failure(s)",
                self.name,
                self._failure_count,
            )

    def get_state(self) -> dict[str, Any]:
        """Snapshot of the breaker for diagnostics."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "max_failures": self.max_failures,
            "reset_timeout": self.reset_timeout,
        }


def build_breaker(
    options: Optional[CircuitBreakerOptions], name: str = "cache"
) -> Breaker:
    """Return a :class:`CircuitBreaker` when *options* are given, else a pass-through."""
    if options is None:
        return PassThroughBreaker()
    return CircuitBreaker(
        max_failures=options.max_failures,
        reset_timeout=options.reset_timeout,
        name=name,
    )
