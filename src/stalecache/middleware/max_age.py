"""Read-through/write-through caching driven by ``max-age``.

:class:`MaxAge` answers from the ``body`` segment while an entry lives and
stores successful origin responses for as long as their ``max-age`` (or
the configured ``default_ttl``) allows.

With ``stale_while_revalidate`` enabled, a GET response carrying
``stale-while-revalidate=N`` is stored with a ``revalidate`` deadline at
the end of its ``max-age`` and an extra ``N`` seconds of lifetime. Hits
past the deadline are still served from the store, but also start a
background ``refresh`` of the resource; at most one refresh per resource
runs at a time (see :class:`~stalecache.middleware.refresh.RefreshRegistry`).

Request flow::

    connect -> read body segment -> hit:  serve cached (maybe refresh)
                                 -> miss: call downstream -> maybe store
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from stalecache.cache.store import Store
from stalecache.context import CacheContext
from stalecache.directives import (
    MAX_AGE,
    STALE_WHILE_REVALIDATE,
    is_cachable,
    parse_cache_control,
)
from stalecache.events import HIT, MISS, CacheEvents
from stalecache.exceptions import CacheOperationError
from stalecache.keys import BODY_SEGMENT, header_value
from stalecache.middleware.base import CachePolicy, Next
from stalecache.middleware.refresh import RefreshRegistry, set_refresh_headers
from stalecache.models import CacheEntry, CacheKey, CacheOptions
from stalecache.response import HttpResponse, coerce_response
from stalecache.timing import now_ms

logger = logging.getLogger(__name__)


class MaxAge(CachePolicy):
    """Max-age caching middleware.

    Args:
        store: The backing store.
        options: Policy options.
        events: Event emitter; a private one is created when omitted.
        registry: In-flight refresh registry; a private one is created
            when omitted.

    Example::

        policy = MaxAge(store, CacheOptions(timeout=50, stale_while_revalidate=True,
                                            refresh=make_refresh(origin)))
        policy.events.on("cache.hit", lambda ctx: ...)
    """

    segment = BODY_SEGMENT

    def __init__(
        self,
        store: Store,
        options: Optional[CacheOptions] = None,
        events: Optional[CacheEvents] = None,
        registry: Optional[RefreshRegistry] = None,
    ) -> None:
        super().__init__(store, options, events)
        self.registry = registry if registry is not None else RefreshRegistry()

    async def __call__(self, ctx: CacheContext, call_next: Next) -> None:
        if not await self._connect(ctx):
            await call_next()
            return

        key = self._access.key_for(self.segment, ctx.req)
        try:
            cached = await self._access.read(ctx, key)
        except CacheOperationError as exc:
            if not self.options.ignore_cache_errors:
                raise
            logger.debug("Ignoring cache read failure for %s: %s", key.id, exc)
            self._emit(MISS, ctx)
        else:
            if cached is not None:
                if self._needs_revalidation(ctx, cached):
                    self._revalidate(ctx, key)
                ctx.res = HttpResponse.from_entry(cached)
                self._emit(HIT, ctx)
                return
            self._emit(MISS, ctx)

        await call_next()

        res = ctx.res
        if res is None or ctx.is_stale or res.is_stale or res.status_code >= 500:
            return
        stored = self._to_store(ctx.method, res)
        if stored is not None:
            item, ttl = stored
            self._spawn(self._access.write(ctx, key, item, ttl))

    def _to_store(self, method: str, res: HttpResponse) -> Optional[tuple[dict[str, Any], int]]:
        """Work out what to write for *res* and for how long, or ``None`` to skip."""
        directives = parse_cache_control(res.cache_control)
        if not is_cachable(directives, MAX_AGE, self.options.default_ttl):
            return None

        # Another cache already decided this response's lifetime.
        if res.from_cache and res.ttl:
            return res.to_json(), res.ttl

        if MAX_AGE in directives:
            max_age_ms = directives[MAX_AGE] * 1000
        else:
            max_age_ms = (self.options.default_ttl or 0) * 1000
        if max_age_ms <= 0:
            return None

        item = res.to_json()
        ttl = max_age_ms
        swr = directives.get(STALE_WHILE_REVALIDATE, 0)
        if self.options.stale_while_revalidate and method == "GET" and not res.from_cache and swr > 0:
            item["revalidate"] = now_ms() + max_age_ms
            ttl += swr * 1000
        return item, ttl

    def _needs_revalidation(self, ctx: CacheContext, cached: CacheEntry) -> bool:
        revalidate = cached.item.revalidate
        return (
            self.options.stale_while_revalidate
            and ctx.method == "GET"
            and revalidate is not None
            and now_ms() > revalidate
        )

    def _revalidate(self, ctx: CacheContext, key: CacheKey) -> None:
        if self.options.refresh is None:
            logger.debug("No refresh configured, serving %s until it expires", key.id)
            return
        if not self.registry.try_acquire(key.id):
            logger.debug("Refresh of %s already in flight", key.id)
            return

        task = self._spawn(self._refresh(CacheContext(req=ctx.req), key))
        task.add_done_callback(lambda _: self.registry.release(key.id))

    async def _refresh(self, ctx: CacheContext, key: CacheKey) -> None:
        """Fetch *ctx*'s URL again and overwrite the entry. Never raises.

        Runs in its own task, so the vary headers recorded here are only
        visible to this refresh (see :func:`~stalecache.middleware.refresh.refresh_headers`).
        """
        set_refresh_headers(self._vary_headers(ctx))
        try:
            res = coerce_response(await self.options.refresh(ctx.url))
        except Exception as exc:
            logger.warning("Background refresh of %s failed: %s", ctx.url, exc)
            return

        if res.status_code >= 500:
            logger.warning(
                "Background refresh of %s returned HTTP %d, keeping cached copy",
                ctx.url,
                res.status_code,
            )
            return

        ctx.res = res
        stored = self._to_store(ctx.method, res)
        if stored is None:
            logger.debug("Refreshed response for %s is not cachable", key.id)
            return
        item, ttl = stored
        await self._access.write(ctx, key, item, ttl)

    def _vary_headers(self, ctx: CacheContext) -> dict[str, str]:
        headers = {}
        for name in self.options.vary_on:
            value = header_value(ctx.req.headers, name)
            if value is not None:
                headers[name] = value
        return headers
