"""Debounced event source on top of the asyncio event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class Debouncer:
    """Fire ``callback`` once after ``delay`` seconds without new triggers.

    ``trigger()`` rearms a pending timer or starts a new one. After
    ``close()`` the source ignores triggers and a timer that already left the
    loop's queue does nothing when it runs.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def trigger(self) -> None:
        if self._closed:
            return
        loop = self._loop or asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        self._closed = True
        self.cancel()

    def _fire(self) -> None:
        self._handle = None
        if self._closed:
            return
        self._callback()
