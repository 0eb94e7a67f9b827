"""
Coalescing of rapid edits.

Typing into a notes field should send one request when the user pauses,
not one per keystroke. Each edit target (a key such as (set_id, field))
has at most one live timer; a new edit to the same key cancels it and
starts over, so only the last value in the window is ever sent.

A failed send is reported through on_error and is not retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

Send = Callable[[], Awaitable[Any]]
ErrorCallback = Callable[[Hashable, Exception], None]


class DebounceHandle:
    """A scheduled send. cancel() stops it if it has not fired yet."""

    def __init__(self, debouncer: "Debouncer", key: Hashable, send: Send) -> None:
        self._debouncer = debouncer
        self.key = key
        self.send = send
        self._timer: Optional[asyncio.TimerHandle] = None
        self.cancelled = False
        self.fired = False

    def cancel(self) -> bool:
        if self.cancelled or self.fired:
            return False
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        self._debouncer._forget(self)
        return True


class Debouncer:
    """
    One cancellable delayed send per key.

    Must be used from inside a running event loop.
    """

    def __init__(self, delay: float = 1.5, on_error: Optional[ErrorCallback] = None) -> None:
        self.delay = delay
        self._on_error = on_error
        self._pending: dict[Hashable, DebounceHandle] = {}
        self._running: set[asyncio.Task] = set()

    def schedule(self, key: Hashable, send: Send, delay: Optional[float] = None) -> DebounceHandle:
        previous = self._pending.get(key)
        if previous is not None:
            previous.cancel()

        handle = DebounceHandle(self, key, send)
        loop = asyncio.get_running_loop()
        handle._timer = loop.call_later(self.delay if delay is None else delay, self._fire, handle)
        self._pending[key] = handle
        return handle

    def cancel(self, key: Hashable) -> bool:
        handle = self._pending.get(key)
        return handle.cancel() if handle is not None else False

    def cancel_all(self) -> int:
        handles = list(self._pending.values())
        for handle in handles:
            handle.cancel()
        return len(handles)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    @property
    def pending_keys(self) -> list[Hashable]:
        return list(self._pending)

    async def flush(self) -> None:
        """Send everything still waiting right now, then wait for all sends."""
        for handle in list(self._pending.values()):
            if handle._timer is not None:
                handle._timer.cancel()
            self._fire(handle)
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def _fire(self, handle: DebounceHandle) -> None:
        if handle.cancelled or handle.fired:
            return
        handle.fired = True
        self._forget(handle)
        task = asyncio.get_running_loop().create_task(self._send(handle))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def _forget(self, handle: DebounceHandle) -> None:
        if self._pending.get(handle.key) is handle:
            del self._pending[handle.key]

    async def _send(self, handle: DebounceHandle) -> None:
        try:
            await handle.send()
        except Exception as e:
            logger.error(
                "Debounced send failed",
                extra={"key": repr(handle.key), "error": str(e)},
            )
            if self._on_error is not None:
                self._on_error(handle.key, e)
