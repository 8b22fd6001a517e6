"""Middleware composition.

A middleware is an async callable ``middleware(ctx, call_next)``. It may
short-circuit by filling ``ctx.res`` and returning without awaiting
``call_next()``, or await it and inspect ``ctx.res`` afterwards.
:func:`compose` chains middlewares in order around a final handler that
performs the real request.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Sequence

from stalecache.context import CacheContext

Next = Callable[[], Awaitable[None]]
Middleware = Callable[[CacheContext, Next], Awaitable[None]]
Handler = Callable[[CacheContext], Awaitable[None]]


def compose(middlewares: Sequence[Middleware], handler: Handler) -> Handler:
    """Chain *middlewares* (outermost first) around *handler*.

    Returns:
        An async callable running the whole chain for one context.

    Raises:
        RuntimeError: At run time, if a middleware calls ``call_next``
            more than once.
    """
    chain = tuple(middlewares)

    async def run(ctx: CacheContext) -> None:
        reached = -1

        async def dispatch(index: int) -> None:
            nonlocal reached
            if index <= reached:
                raise RuntimeError("call_next() called multiple times")
            reached = index
            if index == len(chain):
                await handler(ctx)
                return
            await chain[index](ctx, lambda: dispatch(index + 1))

        await dispatch(0)

    return run
