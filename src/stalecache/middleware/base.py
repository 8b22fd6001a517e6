"""Plumbing shared by the cache policy middlewares."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional

from stalecache.cache.access import CacheAccess
from stalecache.cache.breaker import build_breaker
from stalecache.cache.connection import CacheConnection
from stalecache.cache.store import Store
from stalecache.context import CacheContext
from stalecache.events import CONNECTION_ERROR, CacheEvents, emit_cache_event
from stalecache.exceptions import CacheConnectionError
from stalecache.models import CacheOptions
from stalecache.pipeline import Next

logger = logging.getLogger(__name__)


class CachePolicy:
    """Base class for a caching middleware.

    A policy is an async callable ``policy(ctx, call_next)`` as expected by
    :func:`~stalecache.pipeline.compose`. Subclasses set :attr:`segment` and
    implement :meth:`__call__`.

    Args:
        store: The backing store, shared with other policies if desired.
        options: Policy options; defaults to :class:`CacheOptions()`.
        events: Emitter for lifecycle events. A private one is created when
            omitted and exposed as :attr:`events`.
    """

    segment: str = ""

    def __init__(
        self,
        store: Store,
        options: Optional[CacheOptions] = None,
        events: Optional[CacheEvents] = None,
    ) -> None:
        self.options = options or CacheOptions()
        self.events = events if events is not None else CacheEvents()
        self.store = store
        self._access = CacheAccess(store, self.options, self.events)
        breaker = build_breaker(
            self.options.connection_circuit_breaker_options,
            name=self.options.name or self.segment,
        )
        self.connection = CacheConnection(store, self.options.connection_timeout, breaker)
        self._pending: set[asyncio.Task[Any]] = set()

    async def __call__(self, ctx: CacheContext, call_next: Next) -> None:
        raise NotImplementedError

    async def flush(self) -> None:
        """Wait for every background write and refresh started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _connect(self, ctx: CacheContext) -> bool:
        """Ensure the store is ready.

        Returns:
            ``True`` when the store can be used, ``False`` when it cannot
            but ``ignore_cache_errors`` says to carry on without it.

        Raises:
            CacheConnectionError: When the store cannot be started and
                errors are not ignored.
        """
        try:
            await self.connection.ensure_ready()
        except CacheConnectionError as exc:
            self._emit(CONNECTION_ERROR, ctx, exc)
            if not self.options.ignore_cache_errors:
                raise
            logger.debug("Cache unavailable, bypassing %s cache: %s", self.segment, exc)
            return False
        return True

    def _emit(self, event: str, ctx: CacheContext, detail: Any = None) -> None:
        emit_cache_event(self.events, event, self.options, ctx, detail)

    def _spawn(self, work: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run *work* in the background, holding a reference until it finishes."""
        task = asyncio.ensure_future(work)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
