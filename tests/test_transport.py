"""Tests for the httpx transport integration."""

from __future__ import annotations

import httpx
import pytest

from stalecache.keys import STALE_SEGMENT
from stalecache.middleware import max_age, stale_if_error
from stalecache.timing import now_ms
from stalecache.transport import EXTENSION_KEY, CachingTransport, make_refresh


class CountingHandler:
    """httpx.MockTransport handler with a configurable answer."""

    def __init__(self, status_code: int = 200, cache_control: str = "max-age=60") -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.cache_control = cache_control

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            headers={"Cache-Control": self.cache_control, "Content-Type": "application/json"},
            content=b'{"n": %d}' % len(self.requests),
        )


class TestCachingTransport:
    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, store) -> None:
        handler = CountingHandler()
        policy = max_age(store)
        transport = CachingTransport([policy], transport=httpx.MockTransport(handler))

        async with httpx.AsyncClient(transport=transport) as client:
            first = await client.get("http://x/")
            await policy.flush()
            second = await client.get("http://x/")

        assert len(handler.requests) == 1
        assert first.json() == {"n": 1}
        assert second.json() == {"n": 1}
        assert first.extensions[EXTENSION_KEY]["from_cache"] is False
        assert second.extensions[EXTENSION_KEY]["from_cache"] is True
        assert second.headers["cache-control"] == "max-age=60"

    @pytest.mark.asyncio
    async def test_stale_copy_on_server_error(self, store) -> None:
        store.seed(STALE_SEGMENT, "GET:http://x/", body=b'{"n": 0}')
        handler = CountingHandler(status_code=503)
        chain = [max_age(store), stale_if_error(store, include_cache_status=True)]
        transport = CachingTransport(chain, transport=httpx.MockTransport(handler))

        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get("http://x/")

        assert response.status_code == 200
        assert response.json() == {"n": 0}
        assert response.extensions[EXTENSION_KEY]["is_stale"] is True
        assert response.extensions[EXTENSION_KEY]["cache_status"] == ["stale"]

    @pytest.mark.asyncio
    async def test_origin_error_propagates(self, store) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = CachingTransport([stale_if_error(store)], transport=httpx.MockTransport(broken))

        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("http://x/")

    @pytest.mark.asyncio
    async def test_no_response_is_an_error(self, store) -> None:
        async def swallow(ctx, call_next) -> None:
            pass

        transport = CachingTransport([swallow], transport=httpx.MockTransport(CountingHandler()))

        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(RuntimeError, match="No response"):
                await client.get("http://x/")


class TestMakeRefresh:
    @pytest.mark.asyncio
    async def test_refresh_fetches_from_origin(self) -> None:
        handler = CountingHandler(cache_control="max-age=60, stale-while-revalidate=30")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as origin:
            refresh = make_refresh(origin, headers={"x-refresh": "1"})
            response = await refresh("http://x/items")

        assert response.status_code == 200
        assert response.url == "http://x/items"
        assert response.body == b'{"n": 1}'
        assert handler.requests[0].headers["x-refresh"] == "1"

    @pytest.mark.asyncio
    async def test_refresh_forwards_vary_headers(self, store) -> None:
        """The refetch carries the vary headers of the request that triggered it."""
        store.seed(
            "body",
            "GET:http://x/:accept-language=en",
            body=b'{"n": 0}',
            revalidate=now_ms() - 1,
        )
        handler = CountingHandler(cache_control="max-age=60, stale-while-revalidate=30")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as origin:
            policy = max_age(
                store,
                vary_on=["accept-language"],
                stale_while_revalidate=True,
                refresh=make_refresh(origin, headers={"accept-language": "fr", "x-refresh": "1"}),
            )
            transport = CachingTransport([policy], transport=httpx.MockTransport(handler))
            async with httpx.AsyncClient(transport=transport) as client:
                await client.get("http://x/", headers={"Accept-Language": "en"})
                await policy.flush()

        refetch = handler.requests[0]
        assert refetch.headers["accept-language"] == "en"
        assert refetch.headers["x-refresh"] == "1"

    @pytest.mark.asyncio
    async def test_background_refresh_through_transport(self, store) -> None:
        store.seed(
            "body",
            "GET:http://x/",
            body=b'{"n": 0}',
            revalidate=now_ms() - 1,
        )
        handler = CountingHandler(cache_control="max-age=60, stale-while-revalidate=30")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as origin:
            policy = max_age(store, stale_while_revalidate=True, refresh=make_refresh(origin))
            transport = CachingTransport([policy], transport=httpx.MockTransport(handler))
            async with httpx.AsyncClient(transport=transport) as client:
                stale = await client.get("http://x/")
                await policy.flush()
                fresh = await client.get("http://x/")

        assert stale.json() == {"n": 0}
        assert fresh.json() == {"n": 1}
        assert len(handler.requests) == 1
