"""The response record that flows through the middleware chain.

:class:`HttpResponse` is deliberately transport-neutral: middlewares only
read ``status_code`` and ``headers`` and flip the ``from_cache`` /
``is_stale`` flags. :meth:`HttpResponse.from_httpx` and
:meth:`HttpResponse.to_httpx` convert at the edges, and
:meth:`HttpResponse.to_json` produces what is written to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from stalecache.directives import CACHE_CONTROL
from stalecache.keys import header_value
from stalecache.models import CacheEntry, SerializedResponse

# httpx has already decoded and de-chunked the body we keep.
_TRANSPORT_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


@dataclass
class HttpResponse:
    """A response as seen by the cache policies.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers; keys are lower-cased when converted from httpx.
        body: Response body, ``bytes`` when converted from httpx.
        url: The URL that produced the response.
        elapsed_time: Origin round trip in milliseconds.
        from_cache: ``True`` when served from a store instead of the origin.
        is_stale: ``True`` when served as a stale-if-error substitute.
        ttl: Remaining store lifetime in ms, for responses read from a store.
        revalidate: Freshness deadline (epoch ms) carried by a cached entry.
    """

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    url: str = ""
    elapsed_time: int = 0
    from_cache: bool = False
    is_stale: bool = False
    ttl: Optional[int] = None
    revalidate: Optional[int] = None

    @property
    def cache_control(self) -> Optional[str]:
        return header_value(self.headers, CACHE_CONTROL)

    def to_json(self) -> dict[str, Any]:
        """Serialize to the stored shape (see :class:`~stalecache.models.SerializedResponse`)."""
        return SerializedResponse(
            body=self.body,
            headers=self.headers,
            status_code=self.status_code,
            elapsed_time=self.elapsed_time,
            url=self.url,
            revalidate=self.revalidate,
        ).model_dump()

    @classmethod
    def from_entry(cls, entry: CacheEntry, stale: bool = False) -> HttpResponse:
        """Rebuild a response from a store entry, flagged as served from cache."""
        item = entry.item
        return cls(
            status_code=item.status_code,
            headers=dict(item.headers),
            body=item.body,
            url=item.url,
            elapsed_time=item.elapsed_time,
            from_cache=True,
            is_stale=stale,
            ttl=entry.ttl,
            revalidate=item.revalidate,
        )

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        elapsed_time: int = 0,
        url: Optional[str] = None,
    ) -> HttpResponse:
        """Convert a fully read :class:`httpx.Response`.

        Args:
            response: The response; its body must already be read.
            elapsed_time: Round trip in milliseconds as measured by the caller.
            url: The request URL, when the response is not bound to a request.
        """
        headers = {
            key.lower(): value
            for key, value in response.headers.items()
            if key.lower() not in _TRANSPORT_HEADERS
        }
        return cls(
            status_code=response.status_code,
            headers=headers,
            body=response.content,
            url=url if url is not None else _request_url(response),
            elapsed_time=elapsed_time,
        )

    def to_httpx(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        """Convert back into an :class:`httpx.Response` bound to *request*."""
        body = self.body
        if body is None:
            content = b""
        elif isinstance(body, (bytes, bytearray)):
            content = bytes(body)
        else:
            content = str(body).encode()
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=content,
            request=request,
        )


def coerce_response(value: Any) -> HttpResponse:
    """Accept the response-like objects a ``refresh`` callable may return.

    Raises:
        TypeError: For anything other than an :class:`HttpResponse`, a read
            :class:`httpx.Response` or a serialized response ``dict``.
    """
    if isinstance(value, HttpResponse):
        return value
    if isinstance(value, httpx.Response):
        try:
            elapsed_time = int(value.elapsed.total_seconds() * 1000)
        except RuntimeError:
            elapsed_time = 0
        return HttpResponse.from_httpx(value, elapsed_time=elapsed_time)
    if isinstance(value, dict):
        return HttpResponse(**SerializedResponse.model_validate(value).model_dump())
    raise TypeError(f"Cannot use {type(value).__name__} as a refreshed response")


def _request_url(response: httpx.Response) -> str:
    try:
        return str(response.request.url)
    except RuntimeError:
        return ""
