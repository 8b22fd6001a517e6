"""Single-flight bookkeeping for background refreshes."""

from __future__ import annotations

from contextvars import ContextVar
from typing import Mapping, Optional

_refresh_headers: ContextVar[Optional[Mapping[str, str]]] = ContextVar(
    "stalecache_refresh_headers", default=None
)


def refresh_headers() -> dict[str, str]:
    """Vary headers of the request whose hit triggered the running refresh.

    Empty outside a background refresh, or when the policy does not vary
    on any header the request carried. ``refresh`` callables send these
    along so the refetched response matches the key it is stored under.
    """
    return dict(_refresh_headers.get() or {})


def set_refresh_headers(headers: Mapping[str, str]) -> None:
    """Record *headers* for the current refresh task only."""
    _refresh_headers.set(dict(headers))


class RefreshRegistry:
    """Set of resources with a background refresh in flight.

    :meth:`try_acquire` checks and marks in one synchronous step, so on a
    single event loop two requests can never both win for the same
    resource. The winner must call :meth:`release` once its refresh
    settles, whatever the outcome.

    One registry is created per :class:`~stalecache.middleware.max_age.MaxAge`
    by default. Pass the same instance to several middlewares to
    de-duplicate refreshes across them.
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def try_acquire(self, resource: str) -> bool:
        """Mark *resource* as refreshing; ``False`` if it already was."""
        if resource in self._in_flight:
            return False
        self._in_flight.add(resource)
        return True

    def release(self, resource: str) -> None:
        self._in_flight.discard(resource)

    def __contains__(self, resource: object) -> bool:
        return resource in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)
