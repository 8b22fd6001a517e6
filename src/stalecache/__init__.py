"""stalecache -- Cache-Control driven caching middleware for async HTTP pipelines.

This package caches HTTP responses according to the origin's
``Cache-Control`` header. It is built from two composable policies:

* :class:`~stalecache.middleware.MaxAge` serves stored responses while
  their ``max-age`` lasts and, with ``stale-while-revalidate``, refreshes
  them in the background once they go stale.
* :class:`~stalecache.middleware.StaleIfError` keeps a fallback copy and
  serves it when the origin raises or answers with a 5xx.

Storage is pluggable through the :class:`~stalecache.cache.Store`
protocol, and :class:`~stalecache.transport.CachingTransport` wires the
policies into :mod:`httpx`.

Typical use::

    store = DiskStore("/var/cache/catalogue")
    chain = [max_age(store, timeout=50), stale_if_error(store, timeout=50)]
    async with httpx.AsyncClient(transport=CachingTransport(chain)) as client:
        response = await client.get("https://api.example.com/items")

Modules:
    directives: Cache-Control parsing and the cacheability rule.
    keys: Cache key derivation.
    events: Lifecycle event emitter.
    models: Pydantic models for options and stored data.
    exceptions: Exception hierarchy.
    pipeline: Middleware composition.
    transport: httpx integration.
"""

from stalecache.cache import CacheConnection, DiskStore, Store
from stalecache.context import CacheContext
from stalecache.events import CacheEvents
from stalecache.exceptions import (
    CacheConnectionError,
    CacheOperationError,
    CacheTimeoutError,
    CircuitOpenError,
    OriginError,
    StaleCacheError,
)
from stalecache.middleware import MaxAge, RefreshRegistry, StaleIfError, max_age, stale_if_error
from stalecache.models import CacheEntry, CacheKey, CacheOptions, CircuitBreakerOptions
from stalecache.pipeline import compose
from stalecache.response import HttpResponse
from stalecache.transport import CachingTransport, make_refresh

__version__ = "0.1.0"

__all__ = [
    "CacheConnection",
    "CacheConnectionError",
    "CacheContext",
    "CacheEntry",
    "CacheEvents",
    "CacheKey",
    "CacheOperationError",
    "CacheOptions",
    "CacheTimeoutError",
    "CachingTransport",
    "CircuitBreakerOptions",
    "CircuitOpenError",
    "DiskStore",
    "HttpResponse",
    "MaxAge",
    "OriginError",
    "RefreshRegistry",
    "StaleCacheError",
    "StaleIfError",
    "Store",
    "compose",
    "make_refresh",
    "max_age",
    "stale_if_error",
]
