"""Request context threaded through the middleware chain.

A :class:`CacheContext` is created per request by whoever drives the chain
(see :class:`~stalecache.transport.CachingTransport`). Middlewares read the
request from it and leave the response behind in ``ctx.res``, either from
the origin or from a store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from stalecache.response import HttpResponse


class CacheableRequest(Protocol):
    """What the policies need from a request. :class:`httpx.Request` qualifies."""

    method: str

    @property
    def url(self) -> Any: ...

    @property
    def headers(self) -> Mapping[str, str]: ...


@dataclass
class CacheContext:
    """Mutable per-request state shared by every middleware in a chain.

    Attributes:
        req: The outgoing request.
        res: The response, set by the origin call or by a cache hit.
        is_stale: Set when a stale-if-error substitute replaced a failure;
            outer policies must not store such a response.
        cache_status: Cache outcomes in the order they happened (``hit``,
            ``miss``, ``stale``, ``timeout``, ``error``,
            ``connection_error``). Only filled when the policy runs with
            ``include_cache_status``.
    """

    req: CacheableRequest
    res: Optional[HttpResponse] = None
    is_stale: bool = False
    cache_status: list[str] = field(default_factory=list)

    @property
    def method(self) -> str:
        return self.req.method.upper()

    @property
    def url(self) -> str:
        return str(self.req.url)
