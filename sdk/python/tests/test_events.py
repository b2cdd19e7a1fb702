"""Tests for vaultsign/events.py."""

from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from vaultsign.events import EventEmitter


class TestWaitForEvent:

    @pytest.mark.asyncio
    async def test_resolves_with_next_payload(self) -> None:
        emitter = EventEmitter()
        waiter = asyncio.ensure_future(emitter.waitForEvent("connect"))
        await asyncio.sleep(0)

        emitter.emit("connect", {"chainId": "0x2105"})

        assert await waiter == {"chainId": "0x2105"}

    @pytest.mark.asyncio
    async def test_resolves_once(self) -> None:
        emitter = EventEmitter()
        future = emitter.once("connect")

        emitter.emit("connect", 1)
        emitter.emit("connect", 2)

        assert await future == 1

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        emitter = EventEmitter()
        with pytest.raises(asyncio.TimeoutError):
            await emitter.waitForEvent("connect", timeout=0.01)

        # the expired waiter is gone
        emitter.emit("connect", None)

    @pytest.mark.asyncio
    async def test_fail_rejects_waiters(self) -> None:
        emitter = EventEmitter()
        waiter = asyncio.ensure_future(emitter.waitForEvent("connect"))
        await asyncio.sleep(0)

        emitter.fail("connect", RuntimeError("boom"))

        with pytest.raises(RuntimeError, match="boom"):
            await waiter


class TestListeners:

    @pytest.mark.asyncio
    async def test_standing_subscription(self) -> None:
        emitter = EventEmitter()
        seen: list[str] = []
        emitter.on("disconnect", seen.append)

        emitter.emit("disconnect", "a")
        emitter.emit("disconnect", "b")

        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_off(self) -> None:
        emitter = EventEmitter()
        seen: list[str] = []
        emitter.on("disconnect", seen.append)
        emitter.off("disconnect", seen.append)

        emitter.emit("disconnect", "a")

        assert seen == []
        assert emitter.listenerCount("disconnect") == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self) -> None:
        emitter = EventEmitter()
        seen: list[str] = []

        def broken(payload):
            raise ValueError("listener bug")

        emitter.on("disconnect", broken)
        emitter.on("disconnect", seen.append)

        emitter.emit("disconnect", "a")

        assert seen == ["a"]

    @pytest.mark.asyncio
    async def test_failing_listener_is_logged(self) -> None:
        emitter = EventEmitter()

        def broken(payload):
            raise ValueError("listener bug")

        emitter.on("disconnect", broken)

        with capture_logs() as logs:
            emitter.emit("disconnect", "a")

        assert logs[0]["event"] == "events.listener_failed"
        assert logs[0]["event_name"] == "disconnect"
        assert logs[0]["error"] == "listener bug"

    @pytest.mark.asyncio
    async def test_async_listener_scheduled(self) -> None:
        emitter = EventEmitter()
        called = asyncio.Event()

        async def listener(payload):
            called.set()

        emitter.on("disconnect", listener)
        emitter.emit("disconnect", None)

        await asyncio.wait_for(called.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_clear_cancels_waiters(self) -> None:
        emitter = EventEmitter()
        future = emitter.once("connect")
        emitter.on("disconnect", lambda payload: None)

        emitter.clear()

        assert future.cancelled()
        assert emitter.listenerCount("disconnect") == 0
