"""Store start-up with timeout and circuit breaking.

:class:`CacheConnection` makes sure a store is started before the first
cache operation. Concurrent requests arriving while the store is starting
share one start attempt; a failed attempt leaves the connection in
``FAILED`` and the next request tries again, subject to the breaker.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from stalecache.cache.breaker import Breaker, PassThroughBreaker
from stalecache.cache.store import Store
from stalecache.exceptions import CacheConnectionError, CacheTimeoutError
from stalecache.timing import with_timeout

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"


class CacheConnection:
    """Start-up coordinator for one store.

    Args:
        store: The store to start.
        timeout: Start deadline in milliseconds, or ``None`` for no deadline.
        breaker: Breaker wrapping each start attempt. Defaults to a
            :class:`~stalecache.cache.breaker.PassThroughBreaker`.
    """

    def __init__(
        self,
        store: Store,
        timeout: Optional[float] = None,
        breaker: Optional[Breaker] = None,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._breaker = breaker or PassThroughBreaker()
        self._state = ConnectionState.NOT_STARTED
        self._starting: Optional[asyncio.Future[None]] = None

    @property
    def state(self) -> ConnectionState:
        if self._store.is_ready():
            return ConnectionState.READY
        if self._state == ConnectionState.READY:
            return ConnectionState.NOT_STARTED
        return self._state

    @property
    def breaker(self) -> Breaker:
        return self._breaker

    async def ensure_ready(self) -> None:
        """Start the store unless it is already ready.

        Raises:
            CacheConnectionError: If the start failed, timed out, or the
                breaker refused the attempt
                (:class:`~stalecache.exceptions.CircuitOpenError`).
        """
        if self._store.is_ready():
            self._state = ConnectionState.READY
            return

        if self._starting is None:
            self._state = ConnectionState.STARTING
            self._starting = asyncio.ensure_future(self._start())
            self._starting.add_done_callback(self._on_started)
        await asyncio.shield(self._starting)

    async def _start(self) -> None:
        try:
            await self._breaker.call(self._start_once)
        except CacheConnectionError:
            raise
        except CacheTimeoutError as exc:
            raise CacheConnectionError(str(exc)) from exc
        except Exception as exc:
            raise CacheConnectionError(f"Failed to start cache: {exc}") from exc

    async def _start_once(self) -> None:
        await with_timeout(
            self._store.start(), self._timeout, message="Starting cache timed out", operation="start"
        )

    def _on_started(self, future: asyncio.Future[None]) -> None:
        self._starting = None
        if future.cancelled():
            self._state = ConnectionState.FAILED
        elif future.exception() is not None:
            self._state = ConnectionState.FAILED
            logger.debug("Cache start failed: %s", future.exception())
        else:
            self._state = ConnectionState.READY
