"""Countdown clock that forces a session to finish when time runs out."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from . import config

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _report_callback(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        log.error("timeout callback failed", exc_info=task.exception())


class SessionTimer:
    """Ticks once per ``tick_sec`` while running and fires ``on_timeout`` once at zero.

    ``sleep`` is injectable so tests can drive the clock without waiting; the
    synchronous ``tick()`` advances it by hand. With ``manual=True``, or outside
    a running event loop, ``start`` only arms the timer and ``tick()`` is the
    only way it advances.
    Once ``stop()`` returns, ``on_timeout`` can no longer fire.
    """

    def __init__(self, sleep: Optional[Sleep] = None, tick_sec: Optional[float] = None, manual: bool = False):
        self._sleep: Sleep = sleep or asyncio.sleep
        self.tick_sec = config.TIMER_TICK_SEC if tick_sec is None else tick_sec
        self.manual = manual
        self.duration = 0
        self.remaining = 0
        self.running = False
        self.fired = False
        self._on_timeout: Optional[Callable[[], Any]] = None
        self._task: Optional[asyncio.Task] = None
        self.callback_task: Optional["asyncio.Future[Any]"] = None

    @property
    def elapsed(self) -> int:
        return self.duration - self.remaining

    def start(self, duration_seconds: int, on_timeout: Callable[[], Any]) -> None:
        if self.running:
            raise RuntimeError("timer already running")
        duration = int(duration_seconds)
        if duration <= 0:
            raise ValueError("timer duration must be at least one second")
        self.duration = duration
        self.remaining = duration
        self.running = True
        self.fired = False
        self._on_timeout = on_timeout
        if self.manual:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._task = loop.create_task(self._run())

    def tick(self) -> bool:
        """Advance one second; True when this tick fired the timeout."""

        if not self.running:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self.remaining > 0:
            return False
        self.running = False
        self.fired = True
        callback, self._on_timeout = self._on_timeout, None
        log.info("session timer expired after %ss", self.duration)
        if callback is not None:
            result = callback()
            if inspect.isawaitable(result):
                self.callback_task = asyncio.ensure_future(result)
                self.callback_task.add_done_callback(_report_callback)
        return True

    async def _run(self) -> None:
        while self.running:
            await self._sleep(self.tick_sec)
            if not self.running:
                return
            self.tick()

    def stop(self) -> bool:
        """Stop before expiry; returns False when the timer was not running."""

        was_running = self.running
        self.running = False
        self._on_timeout = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()
        return was_running


__all__ = ["SessionTimer"]
