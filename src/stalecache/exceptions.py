"""Exception hierarchy for stalecache.

All exceptions inherit from :class:`StaleCacheError`, which carries an
``event`` attribute naming the lifecycle event emitted when the error is
observed (see :mod:`stalecache.events`). The access layer and the
middlewares emit ``exc.event`` rather than classifying errors by hand, so a
new subclass only has to pick its event.

Subclass hierarchy::

    StaleCacheError            (event "error")
    +-- CacheConnectionError   (event "connection_error")
    |   +-- CircuitOpenError
    +-- CacheOperationError    (event "error")
    |   +-- CacheTimeoutError  (event "timeout")
    +-- OriginError            (downstream answered with a 5xx)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from stalecache.response import HttpResponse


class StaleCacheError(Exception):
    """Base exception for all stalecache errors.

    Every subclass sets a class-level ``event`` naming the cache event
    that reports it.

    Args:
        message: Human-readable error description.
        event: Optional override for the class-level event name.
    """

    event: str = "error"

    def __init__(self, message: str, event: str | None = None):
        super().__init__(message)
        if event is not None:
            self.event = event


class CacheConnectionError(StaleCacheError):
    """Raised when the store fails to start or become ready, including a start timeout."""

    event = "connection_error"


class CircuitOpenError(CacheConnectionError):
    """Raised instead of calling ``start`` while the connection breaker is open."""


class CacheOperationError(StaleCacheError):
    """Raised when a store ``get`` or ``set`` fails.

    The underlying store exception is available as ``__cause__``.

    Args:
        message: Human-readable error description.
        operation: The store operation that failed (``"get"`` or ``"set"``).
    """

    event = "error"

    def __init__(self, message: str, operation: str = "get"):
        super().__init__(message)
        self.operation = operation


class CacheTimeoutError(CacheOperationError):
    """Raised when a store operation does not settle within its timeout."""

    event = "timeout"


class OriginError(StaleCacheError):
    """The downstream call returned a server error (status >= 500).

    Used by :class:`~stalecache.middleware.stale_if_error.StaleIfError` to
    route 5xx responses through the same fallback path as raised
    exceptions. It is never raised to callers: when no stale copy exists
    the origin response is handed back as-is.
    """

    def __init__(self, response: Optional[HttpResponse] = None):
        status = response.status_code if response is not None else None
        super().__init__(f"Origin responded with HTTP {status}")
        self.response = response
