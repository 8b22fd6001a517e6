"""Fallback to a stored copy when the origin fails.

:class:`StaleIfError` keeps a second copy of responses that carry
``stale-if-error`` in the ``stale`` segment, alive for ``max-age`` plus the
``stale-if-error`` grace period. When the downstream call raises, or
answers with a 5xx, that copy is served instead and the failure is
suppressed.

Request flow::

    connect -> call downstream -> ok:      maybe store in stale segment
                               -> failure: read stale segment
                                            -> hit:  serve stale copy
                                            -> miss: hand back the failure
"""

from __future__ import annotations

import logging

from stalecache.context import CacheContext
from stalecache.directives import MAX_AGE, STALE_IF_ERROR, is_cachable, parse_cache_control
from stalecache.events import STALE
from stalecache.exceptions import CacheOperationError, OriginError
from stalecache.keys import STALE_SEGMENT
from stalecache.middleware.base import CachePolicy, Next
from stalecache.models import CacheKey
from stalecache.response import HttpResponse

logger = logging.getLogger(__name__)


class StaleIfError(CachePolicy):
    """Stale-if-error caching middleware.

    A failure is either an exception raised downstream or a response with
    ``status_code >= 500``. With a stored copy available the context ends
    up with ``ctx.is_stale`` set and the copy in ``ctx.res``. Without one,
    an exception is re-raised unchanged and a 5xx response is left in
    place for the caller to deal with.

    If reading the copy fails, the cache error is raised, since it is what
    prevented the fallback. With ``ignore_cache_errors`` the original
    failure is handed back instead.
    """

    segment = STALE_SEGMENT

    async def __call__(self, ctx: CacheContext, call_next: Next) -> None:
        if not await self._connect(ctx):
            await call_next()
            return

        key = self._access.key_for(self.segment, ctx.req)
        try:
            await call_next()
        except Exception as exc:
            await self._serve_stale(ctx, key, exc)
            return

        res = ctx.res
        if res is not None and res.status_code >= 500:
            await self._serve_stale(ctx, key, OriginError(res))
            return
        if res is None or res.from_cache:
            return

        directives = parse_cache_control(res.cache_control)
        if not is_cachable(directives, STALE_IF_ERROR):
            return
        max_age = directives.get(MAX_AGE) or self.options.default_ttl or 0
        ttl = (max_age + directives[STALE_IF_ERROR]) * 1000
        self._spawn(self._access.write(ctx, key, res.to_json(), ttl))

    async def _serve_stale(
        self, ctx: CacheContext, key: CacheKey, failure: Exception
    ) -> None:
        try:
            cached = await self._access.read(ctx, key)
        except CacheOperationError as exc:
            if not self.options.ignore_cache_errors:
                raise
            logger.debug("Ignoring cache read failure for %s: %s", key.id, exc)
            cached = None

        if cached is not None:
            logger.debug("Serving stale copy of %s after: %s", key.id, failure)
            ctx.is_stale = True
            ctx.res = HttpResponse.from_entry(cached, stale=True)
            self._emit(STALE, ctx)
            return

        if not isinstance(failure, OriginError):
            raise failure
