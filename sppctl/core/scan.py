"""Rolling scan window shared by every discovery and resolve call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sppctl.transports.base import Backend

LOGGER = logging.getLogger(__name__)

# Same shape as loop.call_later; the returned handle needs cancel() and when().
CallLater = Callable[[float, Callable[[], None]], Any]


class ScanWindow:
    """Keeps at most one backend scan running, stopping it after ``window_s``.

    Calling ``start`` while a scan is active re-arms the stop timer instead of
    starting a second scan. Backend start/stop errors are logged, not raised.
    """

    def __init__(self, backend: Backend, *, window_s: float, call_later: CallLater | None = None) -> None:
        self._backend = backend
        self.window_s = window_s
        self._call_later = call_later
        self._timer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> bool:
        return self._timer is not None

    @property
    def deadline(self) -> float | None:
        if self._timer is None:
            return None
        return self._timer.when()

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        if self._timer is not None and self._timer_is_orphaned(loop):
            # The stop timer died with its loop but the backend is still scanning.
            LOGGER.debug("Restarting %s scan left running by a finished event loop", self._backend.name)
            self._timer = None
            self._spawn(self._restart())
        elif self._timer is None:
            LOGGER.debug("Starting %s scan for %.1fs", self._backend.name, self.window_s)
            self._spawn(self._soft(self._backend.start_scan(), "start"))
        else:
            self._timer.cancel()
            LOGGER.debug("Extending %s scan window by %.1fs", self._backend.name, self.window_s)
        self._loop = loop
        self._timer = self._schedule(self.window_s, self._expire)

    async def stop(self) -> None:
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        await self._soft(self._backend.stop_scan(), "stop")

    def _timer_is_orphaned(self, loop: asyncio.AbstractEventLoop) -> bool:
        return self._call_later is None and self._loop is not loop

    def _schedule(self, delay: float, callback: Callable[[], None]) -> Any:
        if self._call_later is not None:
            return self._call_later(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def _expire(self) -> None:
        self._timer = None
        LOGGER.debug("Scan window elapsed, stopping %s scan", self._backend.name)
        self._spawn(self._soft(self._backend.stop_scan(), "stop"))

    async def _restart(self) -> None:
        await self._soft(self._backend.stop_scan(), "stop")
        await self._soft(self._backend.start_scan(), "start")

    def _spawn(self, action: Awaitable[None]) -> None:
        task = asyncio.ensure_future(action)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _soft(self, action: Awaitable[None], label: str) -> None:
        try:
            await action
        except Exception as exc:
            LOGGER.warning("Scan %s failed on %s backend: %s", label, self._backend.name, exc)
