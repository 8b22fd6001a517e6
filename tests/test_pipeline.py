"""Tests for middleware composition."""

from __future__ import annotations

import pytest

from stalecache.pipeline import compose
from stalecache.response import HttpResponse


class TestCompose:
    @pytest.mark.asyncio
    async def test_runs_in_order_around_handler(self, make_ctx) -> None:
        """Middlewares wrap the handler outermost first."""
        trace: list[str] = []

        def tracer(label: str):
            async def middleware(ctx, call_next):
                trace.append(f"{label}:in")
                await call_next()
                trace.append(f"{label}:out")

            return middleware

        async def handler(ctx):
            trace.append("handler")
            ctx.res = HttpResponse(status_code=200)

        ctx = make_ctx()
        await compose([tracer("a"), tracer("b")], handler)(ctx)

        assert trace == ["a:in", "b:in", "handler", "b:out", "a:out"]
        assert ctx.res.status_code == 200

    @pytest.mark.asyncio
    async def test_short_circuit_skips_handler(self, make_ctx) -> None:
        called = False

        async def answer(ctx, call_next):
            ctx.res = HttpResponse(status_code=203)

        async def handler(ctx):
            nonlocal called
            called = True

        ctx = make_ctx()
        await compose([answer], handler)(ctx)

        assert called is False
        assert ctx.res.status_code == 203

    @pytest.mark.asyncio
    async def test_empty_chain_runs_handler(self, make_ctx) -> None:
        async def handler(ctx):
            ctx.res = HttpResponse(status_code=204)

        ctx = make_ctx()
        await compose([], handler)(ctx)
        assert ctx.res.status_code == 204

    @pytest.mark.asyncio
    async def test_calling_next_twice_raises(self, make_ctx) -> None:
        async def greedy(ctx, call_next):
            await call_next()
            await call_next()

        async def handler(ctx):
            pass

        with pytest.raises(RuntimeError, match="multiple times"):
            await compose([greedy], handler)(make_ctx())

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self, make_ctx) -> None:
        async def passthrough(ctx, call_next):
            await call_next()

        async def handler(ctx):
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            await compose([passthrough], handler)(make_ctx())
