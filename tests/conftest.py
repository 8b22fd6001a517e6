"""Shared test fixtures for stalecache.

Provides an in-memory store, request and context factories, and a fake
origin for driving the middlewares without a network or a disk. These
fixtures are automatically discovered by pytest and available to all
test modules without explicit imports.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import httpx
import pytest

from stalecache.context import CacheContext
from stalecache.keys import build_segment
from stalecache.models import CacheKey
from stalecache.response import HttpResponse
from stalecache.timing import now_ms


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryStore:
    """Dict-backed store with knobs for slowness and failures.

    Entries are kept as the ``{"item", "ttl", "stored"}`` dicts a real store
    would return, so reads exercise validation into ``CacheEntry``.
    """

    def __init__(self, ready: bool = True) -> None:
        self.entries: dict[tuple[str, str], dict[str, Any]] = {}
        self.writes: list[tuple[CacheKey, Any, int]] = []
        self.ready = ready
        self.start_calls = 0
        self.start_delay = 0.0
        self.get_delay = 0.0
        self.set_delay = 0.0
        self.start_error: Optional[Exception] = None
        self.get_error: Optional[Exception] = None
        self.set_error: Optional[Exception] = None

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        self.ready = True

    def is_ready(self) -> bool:
        return self.ready

    async def get(self, key: CacheKey) -> Optional[dict[str, Any]]:
        if self.get_delay:
            await asyncio.sleep(self.get_delay)
        if self.get_error is not None:
            raise self.get_error
        record = self.entries.get((key.segment, key.id))
        return dict(record) if record is not None else None

    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        if self.set_delay:
            await asyncio.sleep(self.set_delay)
        if self.set_error is not None:
            raise self.set_error
        self.writes.append((key, value, ttl))
        self.entries[(key.segment, key.id)] = {"item": value, "ttl": ttl, "stored": now_ms()}

    async def drop(self, key: CacheKey) -> None:
        self.entries.pop((key.segment, key.id), None)

    def seed(
        self,
        segment: str,
        request_id: str,
        body: Any = b"cached",
        status_code: int = 200,
        headers: Optional[dict[str, str]] = None,
        ttl: int = 60_000,
        revalidate: Optional[int] = None,
    ) -> None:
        """Place an entry directly, bypassing the write path."""
        self.entries[(build_segment(segment), request_id)] = {
            "item": {
                "body": body,
                "headers": headers or {"cache-control": "max-age=60"},
                "status_code": status_code,
                "elapsed_time": 12,
                "url": request_id.split(":", 1)[1],
                "revalidate": revalidate,
            },
            "ttl": ttl,
            "stored": now_ms(),
        }

    def stored(self, segment: str, request_id: str) -> Optional[dict[str, Any]]:
        return self.entries.get((build_segment(segment), request_id))


@pytest.fixture
def store() -> MemoryStore:
    """A started, empty in-memory store."""
    return MemoryStore()


# ---------------------------------------------------------------------------
# Requests and contexts
# ---------------------------------------------------------------------------


@pytest.fixture
def make_ctx() -> Callable[..., CacheContext]:
    """Factory for a fresh CacheContext around an httpx.Request."""

    def _make(
        method: str = "GET",
        url: str = "http://x/",
        headers: Optional[dict[str, str]] = None,
    ) -> CacheContext:
        return CacheContext(req=httpx.Request(method, url, headers=headers))

    return _make


# ---------------------------------------------------------------------------
# Fake origin
# ---------------------------------------------------------------------------


class FakeOrigin:
    """Stands in for everything downstream of a middleware.

    Calling ``origin.next(ctx)`` returns the zero-argument ``call_next``
    a middleware receives. Each call either raises ``error`` or sets
    ``ctx.res`` to a fresh response built from the current settings.
    """

    def __init__(self) -> None:
        self.calls = 0
        self.status_code = 200
        self.cache_control: Optional[str] = "max-age=60"
        self.body: Any = b"fresh"
        self.error: Optional[Exception] = None

    def response(self, url: str) -> HttpResponse:
        headers = {"content-type": "text/plain"}
        if self.cache_control is not None:
            headers["cache-control"] = self.cache_control
        return HttpResponse(
            status_code=self.status_code,
            headers=headers,
            body=self.body,
            url=url,
            elapsed_time=5,
        )

    def next(self, ctx: CacheContext):
        async def call_next() -> None:
            self.calls += 1
            if self.error is not None:
                raise self.error
            ctx.res = self.response(ctx.url)

        return call_next


@pytest.fixture
def origin() -> FakeOrigin:
    """A fake origin answering 200 with ``max-age=60``."""
    return FakeOrigin()
