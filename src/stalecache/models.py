"""Canonical Pydantic models shared across all stalecache modules.

The models fall into two groups:

**Configuration models** -- supplied by whoever builds a middleware and
read-only afterwards: :class:`CircuitBreakerOptions` and
:class:`CacheOptions`.

**Storage models** -- the shapes written to and read from the store:
:class:`CacheKey`, :class:`SerializedResponse` and :class:`CacheEntry`.

All durations in these models are milliseconds except ``default_ttl`` and
the Cache-Control directive values, which follow HTTP and use seconds.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class CircuitBreakerOptions(BaseModel):
    """Connection circuit breaker settings.

    After ``max_failures`` consecutive failed store starts the breaker
    opens and further starts are refused for ``reset_timeout``
    milliseconds, after which a single probe start is allowed.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_failures: int = Field(
        default=1,
        ge=1,
        alias="maxFailures",
        description="Consecutive start failures before the breaker opens",
    )
    reset_timeout: float = Field(
        default=300_000,
        gt=0,
        alias="resetTimeout",
        description="Milliseconds the breaker stays open before a probe",
    )


RefreshFn = Callable[[str], Awaitable[Any]]


class CacheOptions(BaseModel):
    """Per-middleware cache policy options.

    Immutable once built. Every field is optional; the defaults give a
    middleware that surfaces cache errors, does not vary on headers and
    does not revalidate in the background.

    Example::

        CacheOptions(
            timeout=50,
            ignore_cache_errors=True,
            vary_on=["accept-language"],
            stale_while_revalidate=True,
            refresh=make_refresh(origin_client),
            name="catalogue",
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    timeout: Optional[float] = Field(
        default=None, gt=0, description="Deadline for a store get/set in ms"
    )
    connection_timeout: Optional[float] = Field(
        default=None, gt=0, description="Deadline for store start in ms"
    )
    ignore_cache_errors: bool = Field(
        default=False,
        description="Degrade to the origin instead of raising on cache failures",
    )
    vary_on: tuple[str, ...] = Field(
        default=(), description="Request header names folded into the cache key"
    )
    default_ttl: Optional[int] = Field(
        default=None,
        ge=0,
        description="TTL in seconds when a response carries no max-age",
    )
    stale_while_revalidate: bool = Field(
        default=False,
        description="Honour the stale-while-revalidate directive",
    )
    refresh: Optional[RefreshFn] = Field(
        default=None,
        description="Async callable fetching a fresh response for a URL",
    )
    name: Optional[str] = Field(
        default=None, description="Namespaces emitted events as cache.<name>.<event>"
    )
    connection_circuit_breaker_options: Optional[CircuitBreakerOptions] = None
    include_cache_status: bool = Field(
        default=False,
        description="Append cache outcomes to CacheContext.cache_status",
    )


# --- Storage ---


class CacheKey(BaseModel):
    """Two-part store address: a versioned segment and a request identifier."""

    model_config = ConfigDict(frozen=True)

    segment: str
    id: str


class SerializedResponse(BaseModel):
    """The response as written to the store.

    ``revalidate`` is the epoch-ms freshness deadline stamped when a
    response is stored with a stale-while-revalidate extension. Reads past
    it (but before eviction) trigger a background refresh.
    """

    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    status_code: int
    elapsed_time: int = 0
    url: str = ""
    revalidate: Optional[int] = None


class CacheEntry(BaseModel):
    """A store record: the serialized response plus its remaining lifetime."""

    item: SerializedResponse
    ttl: int = Field(description="Milliseconds until the store evicts the entry")
    stored: int = Field(description="Epoch ms when the entry was written")
