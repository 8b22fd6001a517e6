"""Timed, classified reads and writes against a store.

:class:`CacheAccess` is the only place the policies touch ``store.get`` and
``store.set``. It applies the configured timeout, turns store failures
into :class:`~stalecache.exceptions.CacheOperationError` /
:class:`~stalecache.exceptions.CacheTimeoutError`, and emits the matching
events. Reads raise after reporting; writes only report, since a failed
write must never fail the request that produced the response.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from stalecache.cache.store import Store
from stalecache.context import CacheableRequest, CacheContext
from stalecache.events import READ_TIME, WRITE_TIME, CacheEvents, emit_cache_event
from stalecache.exceptions import CacheOperationError, StaleCacheError
from stalecache.keys import build_key
from stalecache.models import CacheEntry, CacheKey, CacheOptions
from stalecache.timing import elapsed_ms, with_timeout

logger = logging.getLogger(__name__)


class CacheAccess:
    """Store gateway for one policy instance.

    Args:
        store: The backing store.
        options: Policy options (timeout, vary headers, event name).
        events: Emitter receiving error, timeout and timing events.
    """

    def __init__(self, store: Store, options: CacheOptions, events: CacheEvents) -> None:
        self._store = store
        self._options = options
        self._events = events

    def key_for(self, segment: str, request: CacheableRequest) -> CacheKey:
        """Build the key for *request* in *segment*, honouring ``vary_on``."""
        return build_key(
            segment,
            request.method,
            str(request.url),
            self._options.vary_on,
            request.headers,
        )

    async def read(self, ctx: CacheContext, key: CacheKey) -> Optional[CacheEntry]:
        """Read *key*, returning ``None`` on a miss.

        On failure the ``error`` or ``timeout`` event receives the very
        exception that is then raised. Store exceptions are wrapped, so a
        listener wanting the store's own error reads ``detail.__cause__``.

        Raises:
            CacheTimeoutError: The store did not answer within ``timeout``.
            CacheOperationError: The store raised; the original error is
                the ``__cause__``.
        """
        started = time.perf_counter()
        try:
            cached = await with_timeout(
                self._store.get(key), self._options.timeout, message="Cache get timed out"
            )
            entry = _to_entry(cached)
        except Exception as exc:
            error = _classify(exc, "get")
            emit_cache_event(self._events, error.event, self._options, ctx, error)
            raise error

        emit_cache_event(self._events, READ_TIME, self._options, ctx, elapsed_ms(started))
        return entry

    async def write(self, ctx: CacheContext, key: CacheKey, value: Any, ttl: int) -> None:
        """Write *value* under *key* for *ttl* ms. Never raises.

        Non-positive TTLs are not written.
        """
        if ttl <= 0:
            return

        started = time.perf_counter()
        try:
            await with_timeout(
                self._store.set(key, value, ttl),
                self._options.timeout,
                message="Cache set timed out",
                operation="set",
            )
        except Exception as exc:
            error = _classify(exc, "set")
            logger.warning("Failed to store %s in %s: %s", key.id, key.segment, error)
            emit_cache_event(self._events, error.event, self._options, ctx, error)
            return

        emit_cache_event(self._events, WRITE_TIME, self._options, ctx, elapsed_ms(started))


def _to_entry(cached: Any) -> Optional[CacheEntry]:
    if cached is None or isinstance(cached, CacheEntry):
        return cached
    return CacheEntry.model_validate(cached)


def _classify(exc: Exception, operation: str) -> StaleCacheError:
    if isinstance(exc, StaleCacheError):
        return exc
    error = CacheOperationError(f"Cache {operation} failed: {exc}", operation=operation)
    error.__cause__ = exc
    return error
