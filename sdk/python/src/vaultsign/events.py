"""Minimal event emitter for provider lifecycle events.

Two primitives are offered: ``waitForEvent`` resolves a single future on
the next emission of an event, while ``on`` registers a standing listener
that is called for every emission until removed with ``off``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

import structlog

logger = structlog.get_logger("vaultsign.events")

Listener = Callable[[Any], Any]


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._waiters: dict[str, list[asyncio.Future[Any]]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    # ── Standing subscriptions ───────────────────────────────────

    def on(self, name: str, callback: Listener) -> None:
        self._listeners.setdefault(name, []).append(callback)

    def off(self, name: str, callback: Listener) -> None:
        listeners = self._listeners.get(name, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(name, None)

    def listenerCount(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    # ── One-shot waits ───────────────────────────────────────────

    def once(self, name: str) -> asyncio.Future[Any]:
        """Return a future resolved by the next ``emit(name, ...)``."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(name, []).append(future)
        return future

    async def waitForEvent(self, name: str, timeout: float | None = None) -> Any:
        future = self.once(name)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            waiters = self._waiters.get(name, [])
            if future in waiters:
                waiters.remove(future)

    # ── Emission ─────────────────────────────────────────────────

    def emit(self, name: str, payload: Any = None) -> None:
        for future in self._waiters.pop(name, []):
            if not future.done():
                future.set_result(payload)

        for callback in list(self._listeners.get(name, [])):
            try:
                result = callback(payload)
            except Exception as error:
                logger.error("events.listener_failed", event_name=name, error=str(error))
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._listenerDone)

    def _listenerDone(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("events.listener_failed", error=str(task.exception()))

    def fail(self, name: str, error: BaseException) -> None:
        for future in self._waiters.pop(name, []):
            if not future.done():
                future.set_exception(error)

    def clear(self) -> None:
        self._listeners.clear()
        for futures in self._waiters.values():
            for future in futures:
                future.cancel()
        self._waiters.clear()
