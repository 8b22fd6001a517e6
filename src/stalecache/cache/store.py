"""The store contract and a :mod:`diskcache` adapter.

The policies never talk to a storage engine directly. They need an object
satisfying :class:`Store`: something that can be started, reports
readiness, and gets/sets entries addressed by a
:class:`~stalecache.models.CacheKey` with a TTL in milliseconds. Eviction
at the end of the TTL is the store's job.

:class:`DiskStore` fulfils the contract on top of :class:`diskcache.Cache`.
diskcache is synchronous, so each call is pushed to a worker thread to
keep the event loop free.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional, Protocol, Union, runtime_checkable

import diskcache

from stalecache.models import CacheEntry, CacheKey
from stalecache.timing import now_ms


@runtime_checkable
class Store(Protocol):
    """Key-value store the cache policies read and write through."""

    async def start(self) -> None:
        """Connect or open the store. Must be idempotent."""
        ...

    def is_ready(self) -> bool:
        ...

    async def get(self, key: CacheKey) -> Optional[Union[CacheEntry, dict[str, Any]]]:
        """Return the entry for *key*, or ``None`` on a miss."""
        ...

    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        """Store *value* under *key* for *ttl* milliseconds."""
        ...

    async def drop(self, key: CacheKey) -> None:
        ...


class DiskStore:
    """Disk-backed :class:`Store` using :class:`diskcache.Cache`.

    Entries are kept as ``{"item": ..., "stored": ..., "ttl": ...}`` dicts
    and diskcache's own expiry evicts them. On read the remaining TTL is
    derived from diskcache's expire time.

    Args:
        directory: Directory holding the cache database. Created on
            :meth:`start`.

    Example::

        store = DiskStore("/var/cache/my-service")
        await store.start()
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._cache: Optional[diskcache.Cache] = None

    @property
    def directory(self) -> Path:
        return self._directory

    async def start(self) -> None:
        if self._cache is None:
            self._cache = await asyncio.to_thread(diskcache.Cache, str(self._directory))

    def is_ready(self) -> bool:
        return self._cache is not None

    async def get(self, key: CacheKey) -> Optional[CacheEntry]:
        cache = self._require_cache()
        record, expire_time = await asyncio.to_thread(
            cache.get, _disk_key(key), None, expire_time=True
        )
        if record is None:
            return None
        ttl = record["ttl"]
        if expire_time is not None:
            ttl = max(0, int(expire_time * 1000) - now_ms())
        return CacheEntry(item=record["item"], stored=record["stored"], ttl=ttl)

    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        cache = self._require_cache()
        record = {"item": value, "stored": now_ms(), "ttl": ttl}
        await asyncio.to_thread(cache.set, _disk_key(key), record, expire=ttl / 1000)

    async def drop(self, key: CacheKey) -> None:
        cache = self._require_cache()
        await asyncio.to_thread(cache.delete, _disk_key(key))

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`. Safe to call twice."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _require_cache(self) -> diskcache.Cache:
        if self._cache is None:
            raise RuntimeError("DiskStore used before start()")
        return self._cache


def _disk_key(key: CacheKey) -> tuple[str, str]:
    return (key.segment, key.id)
