"""Clock helpers and the timeout race used around store calls.

:func:`with_timeout` lets the store call and a timer race; whichever
settles first wins. The losing store call is *abandoned*, not cancelled:
stores rarely tolerate cancellation mid-request, so the call keeps running
in the background and its eventual result or exception is consumed and
dropped. Nothing it produces reaches later operations.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Optional, TypeVar

from stalecache.exceptions import CacheTimeoutError

T = TypeVar("T")


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def elapsed_ms(started: float) -> int:
    """Milliseconds since *started*, a :func:`time.perf_counter` reading."""
    return int((time.perf_counter() - started) * 1000)


def _discard_outcome(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def with_timeout(
    pending: Awaitable[T],
    timeout_ms: Optional[float],
    message: str = "Cache operation timed out",
    operation: str = "get",
) -> T:
    """Await *pending*, failing with :class:`CacheTimeoutError` after *timeout_ms*.

    Args:
        pending: The store coroutine or future to await.
        timeout_ms: Deadline in milliseconds. ``None`` or ``0`` awaits
            without a deadline.
        message: Prefix of the timeout error message.
        operation: Store operation name recorded on the error.

    Returns:
        Whatever *pending* resolves to.

    Raises:
        CacheTimeoutError: If *pending* has not settled in time.
    """
    if not timeout_ms:
        return await pending

    task = asyncio.ensure_future(pending)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
    except asyncio.TimeoutError:
        task.add_done_callback(_discard_outcome)
        raise CacheTimeoutError(
            f"{message} after {timeout_ms:g}ms", operation=operation
        ) from None
