"""Store-facing layer for stalecache.

This package holds everything between the cache policies and the storage
engine:

* :class:`Store` -- the protocol a storage engine must satisfy, and
  :class:`DiskStore`, an implementation over :mod:`diskcache`.
* :class:`CacheAccess` -- timed, classified reads and writes with events.
* :class:`CacheConnection` -- store start-up with timeout and circuit
  breaking (:class:`CircuitBreaker`, :class:`PassThroughBreaker`).
"""

from stalecache.cache.access import CacheAccess
from stalecache.cache.breaker import (
    Breaker,
    CircuitBreaker,
    CircuitBreakerState,
    PassThroughBreaker,
    build_breaker,
)
from stalecache.cache.connection import CacheConnection, ConnectionState
from stalecache.cache.store import DiskStore, Store

__all__ = [
    "Breaker",
    "CacheAccess",
    "CacheConnection",
    "CircuitBreaker",
    "CircuitBreakerState",
    "ConnectionState",
    "DiskStore",
    "PassThroughBreaker",
    "Store",
    "build_breaker",
]
