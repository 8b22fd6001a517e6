"""Tests for the cache event emitter."""

from __future__ import annotations

import logging

from stalecache.context import CacheContext
from stalecache.events import (
    HIT,
    READ_TIME,
    CacheEvents,
    emit_cache_event,
    event_name,
)
from stalecache.models import CacheOptions


class TestEventName:
    def test_unnamed(self) -> None:
        assert event_name("hit") == "cache.hit"

    def test_named(self) -> None:
        assert event_name("hit", "catalogue") == "cache.catalogue.hit"


class TestCacheEvents:
    def test_listeners_run_in_registration_order(self) -> None:
        events = CacheEvents()
        calls: list[str] = []
        events.on("cache.hit", lambda *_: calls.append("first"))
        events.on("cache.hit", lambda *_: calls.append("second"))

        events.emit("cache.hit", object())

        assert calls == ["first", "second"]

    def test_off_removes_listener(self) -> None:
        events = CacheEvents()
        calls: list[object] = []
        listener = calls.append
        events.on("cache.miss", listener)
        events.off("cache.miss", listener)

        events.emit("cache.miss", "ctx")

        assert calls == []
        assert events.listener_count("cache.miss") == 0

    def test_off_unknown_listener_is_ignored(self) -> None:
        CacheEvents().off("cache.miss", print)

    def test_raising_listener_is_logged_and_skipped(self, caplog) -> None:
        """A failing listener does not stop later listeners."""
        events = CacheEvents()
        calls: list[str] = []

        def broken(*_):
            raise ValueError("boom")

        events.on("cache.hit", broken)
        events.on("cache.hit", lambda *_: calls.append("after"))

        with caplog.at_level(logging.WARNING, logger="stalecache.events"):
            events.emit("cache.hit", "ctx")

        assert calls == ["after"]
        assert "boom" in caplog.text

    def test_instances_do_not_share_listeners(self) -> None:
        first, second = CacheEvents(), CacheEvents()
        first.on("cache.hit", print)
        assert second.listener_count("cache.hit") == 0


class TestEmitCacheEvent:
    def test_emits_ctx_only_without_detail(self, make_ctx) -> None:
        events = CacheEvents()
        received: list[tuple] = []
        events.on("cache.hit", lambda *args: received.append(args))
        ctx = make_ctx()

        emit_cache_event(events, HIT, CacheOptions(), ctx)

        assert received == [(ctx,)]

    def test_emits_detail_and_uses_name(self, make_ctx) -> None:
        events = CacheEvents()
        received: list[tuple] = []
        events.on("cache.api.read_time", lambda *args: received.append(args))
        ctx = make_ctx()

        emit_cache_event(events, READ_TIME, CacheOptions(name="api"), ctx, 7)

        assert received == [(ctx, 7)]

    def test_cache_status_recorded_when_enabled(self, make_ctx) -> None:
        """Outcomes are recorded, timings are not."""
        ctx: CacheContext = make_ctx()
        options = CacheOptions(include_cache_status=True)

        emit_cache_event(CacheEvents(), HIT, options, ctx)
        emit_cache_event(CacheEvents(), READ_TIME, options, ctx, 3)

        assert ctx.cache_status == ["hit"]

    def test_cache_status_left_alone_by_default(self, make_ctx) -> None:
        ctx: CacheContext = make_ctx()
        emit_cache_event(CacheEvents(), HIT, CacheOptions(), ctx)
        assert ctx.cache_status == []
