"""Cache key derivation.

Keys have two parts (see :class:`~stalecache.models.CacheKey`):

* ``segment`` -- ``"stalecache:<version>:<logical segment>"``. Bumping
  :data:`KEY_VERSION` orphans every stored entry, which is how the stored
  shape is allowed to change between releases.
* ``id`` -- ``"<METHOD>:<URL>"``, followed by ``":name=value,..."`` when
  the policy varies on request headers. Names are emitted exactly as
  configured, in configured order; values are looked up
  case-insensitively and a missing header contributes an empty value.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from stalecache.models import CacheKey

KEY_NAMESPACE = "stalecache"
KEY_VERSION = "1"

BODY_SEGMENT = "body"
STALE_SEGMENT = "stale"


def header_value(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup returning ``None`` when absent."""
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    wanted = name.lower()
    for key, candidate in headers.items():
        if key.lower() == wanted:
            return candidate
    return None


def build_segment(segment: str) -> str:
    """Return the versioned store segment for a logical segment name."""
    return f"{KEY_NAMESPACE}:{KEY_VERSION}:{segment}"


def build_key(
    segment: str,
    method: str,
    url: str,
    vary_on: Optional[Sequence[str]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> CacheKey:
    """Build the store key for a request.

    Args:
        segment: Logical segment, :data:`BODY_SEGMENT` or :data:`STALE_SEGMENT`.
        method: HTTP method; upper-cased in the key.
        url: Full request URL including the query string.
        vary_on: Header names whose request values split the cache.
        headers: The request headers.

    Returns:
        The :class:`~stalecache.models.CacheKey`.

    Example::

        >>> build_key("body", "GET", "http://x/", ["accept-language"], {"Accept-Language": "en"}).id
        'GET:http://x/:accept-language=en'
    """
    request_id = f"{method.upper()}:{url}"
    if vary_on:
        varied = ",".join(
            f"{name}={header_value(headers, name) or ''}" for name in vary_on
        )
        request_id = f"{request_id}:{varied}"
    return CacheKey(segment=build_segment(segment), id=request_id)
