"""Cache policy middlewares.

Two policies, usually composed with :class:`MaxAge` outermost::

    chain = [max_age(store, timeout=50), stale_if_error(store, timeout=50)]

:func:`max_age` and :func:`stale_if_error` accept either a ready-made
:class:`~stalecache.models.CacheOptions` or its fields as keyword
arguments.
"""

from __future__ import annotations

from typing import Any, Optional

from stalecache.cache.store import Store
from stalecache.events import CacheEvents
from stalecache.middleware.base import CachePolicy, Next
from stalecache.middleware.max_age import MaxAge
from stalecache.middleware.refresh import RefreshRegistry, refresh_headers
from stalecache.middleware.stale_if_error import StaleIfError
from stalecache.models import CacheOptions


def _options(options: Optional[CacheOptions], fields: dict[str, Any]) -> CacheOptions:
    if options is None:
        return CacheOptions(**fields)
    if fields:
        return CacheOptions(**{**dict(options), **fields})
    return options


def max_age(
    store: Store,
    options: Optional[CacheOptions] = None,
    *,
    events: Optional[CacheEvents] = None,
    registry: Optional[RefreshRegistry] = None,
    **fields: Any,
) -> MaxAge:
    """Build a :class:`MaxAge` middleware."""
    return MaxAge(store, _options(options, fields), events=events, registry=registry)


def stale_if_error(
    store: Store,
    options: Optional[CacheOptions] = None,
    *,
    events: Optional[CacheEvents] = None,
    **fields: Any,
) -> StaleIfError:
    """Build a :class:`StaleIfError` middleware."""
    return StaleIfError(store, _options(options, fields), events=events)


__all__ = [
    "CachePolicy",
    "MaxAge",
    "Next",
    "RefreshRegistry",
    "StaleIfError",
    "max_age",
    "refresh_headers",
    "stale_if_error",
]
