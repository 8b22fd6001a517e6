"""Cache lifecycle events.

Every cache decision is reported through a :class:`CacheEvents` emitter.
An emitter is injected into each middleware (or created by it and exposed
as ``middleware.events``) so independently configured caches never share
listeners by accident.

Event names are ``cache.<event>``, or ``cache.<name>.<event>`` when the
policy options carry a ``name``. Listeners receive the request context
followed by the error (for ``error``, ``timeout`` and
``connection_error``) or the duration in milliseconds (for
``read_time`` and ``write_time``). The error is always a
:class:`~stalecache.exceptions.StaleCacheError`; a failure raised by the
store itself is its ``__cause__``::

    events = CacheEvents()
    events.on("cache.catalogue.timeout", lambda ctx, err: metrics.incr("timeouts"))
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from stalecache.context import CacheContext
    from stalecache.models import CacheOptions

logger = logging.getLogger(__name__)

HIT = "hit"
MISS = "miss"
ERROR = "error"
TIMEOUT = "timeout"
STALE = "stale"
CONNECTION_ERROR = "connection_error"
READ_TIME = "read_time"
WRITE_TIME = "write_time"

CACHE_EVENTS = frozenset(
    {HIT, MISS, ERROR, TIMEOUT, STALE, CONNECTION_ERROR, READ_TIME, WRITE_TIME}
)
"""Every event a middleware may emit."""

# Outcomes recorded on CacheContext.cache_status; timings are not outcomes.
_STATUS_EVENTS = CACHE_EVENTS - {READ_TIME, WRITE_TIME}

Listener = Callable[..., Any]


def event_name(event: str, name: Optional[str] = None) -> str:
    """Return the emitted name for *event*, namespaced by *name* when given."""
    return f"cache.{name}.{event}" if name else f"cache.{event}"


class CacheEvents:
    """Minimal event emitter for cache notifications.

    Listeners are called synchronously in registration order. A listener
    that raises is logged and skipped so that telemetry can never fail a
    request.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        """Register *listener* for the fully qualified *event* name."""
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a previously registered listener; unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        """Call every listener registered for *event* with *args*."""
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception as exc:
                logger.warning("Listener for '%s' raised: %s", event, exc)


def emit_cache_event(
    events: CacheEvents,
    event: str,
    options: CacheOptions,
    ctx: CacheContext,
    detail: Any = None,
) -> None:
    """Emit *event* for *ctx*, recording the outcome on the context if enabled.

    Args:
        events: The emitter to publish on.
        event: Bare event name, one of :data:`CACHE_EVENTS`.
        options: Policy options supplying ``name`` and ``include_cache_status``.
        ctx: The request context passed as the first listener argument.
        detail: The error or duration passed as the second argument, if any.
    """
    if options.include_cache_status and event in _STATUS_EVENTS:
        ctx.cache_status.append(event)

    name = event_name(event, options.name)
    if detail is None:
        events.emit(name, ctx)
    else:
        events.emit(name, ctx, detail)
