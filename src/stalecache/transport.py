"""httpx integration.

:class:`CachingTransport` runs a middleware chain in front of any
:class:`httpx.AsyncBaseTransport`, so caching plugs into an ordinary
:class:`httpx.AsyncClient`::

    store = DiskStore("/var/cache/catalogue")
    origin = httpx.AsyncClient()
    policy = max_age(store, stale_while_revalidate=True, refresh=make_refresh(origin))
    client = httpx.AsyncClient(transport=CachingTransport([policy, stale_if_error(store)]))

Responses carry the cache flags in ``response.extensions["stalecache"]``.
"""

from __future__ import annotations

import time
from typing import Mapping, Optional, Sequence

import httpx

from stalecache.context import CacheContext
from stalecache.middleware.refresh import refresh_headers
from stalecache.models import RefreshFn
from stalecache.pipeline import Middleware, compose
from stalecache.response import HttpResponse, coerce_response
from stalecache.timing import elapsed_ms

EXTENSION_KEY = "stalecache"


class CachingTransport(httpx.AsyncBaseTransport):
    """Async transport applying cache middlewares around an inner transport.

    Args:
        middlewares: Policies in order, outermost first.
        transport: The transport performing real requests. Defaults to
            :class:`httpx.AsyncHTTPTransport`.
    """

    def __init__(
        self,
        middlewares: Sequence[Middleware],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._chain = compose(middlewares, self._fetch)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        ctx = CacheContext(req=request)
        await self._chain(ctx)
        if ctx.res is None:
            raise RuntimeError(f"No response produced for {request.method} {request.url}")

        response = ctx.res.to_httpx(request)
        response.extensions[EXTENSION_KEY] = {
            "from_cache": ctx.res.from_cache,
            "is_stale": ctx.is_stale or ctx.res.is_stale,
            "cache_status": list(ctx.cache_status),
        }
        return response

    async def _fetch(self, ctx: CacheContext) -> None:
        request = ctx.req
        started = time.perf_counter()
        response = await self._transport.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()
        ctx.res = HttpResponse.from_httpx(response, elapsed_ms(started), url=str(request.url))

    async def aclose(self) -> None:
        await self._transport.aclose()


def make_refresh(
    client: httpx.AsyncClient, headers: Optional[Mapping[str, str]] = None
) -> RefreshFn:
    """Build a ``refresh`` callable fetching URLs with *client*.

    *client* must reach the origin directly; a client routed through the
    same cache would answer refreshes from the stale entry.

    The vary headers of the request that triggered the refresh are sent
    along, overriding *headers*, so a policy with ``vary_on`` stores the
    refetched variant under the matching key.
    """

    async def refresh(url: str) -> HttpResponse:
        merged = {**dict(headers or {}), **refresh_headers()}
        response = await client.get(url, headers=merged)
        return coerce_response(response)

    return refresh
