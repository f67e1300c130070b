"""Per-connection event buffer between the broadcaster and one SSE consumer."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field

from relaycode.core.models import StoreEvent


@dataclass
class ConnectionEventBuffer:
    """FIFO of store events with an ``asyncio.Event`` wake-up.

    ``push`` is synchronous so it can be registered directly as a
    broadcaster subscriber. Calls from a foreign thread are handed to the
    owning loop.
    """

    loop: asyncio.AbstractEventLoop = field(default_factory=asyncio.get_running_loop)
    events: deque[StoreEvent] = field(default_factory=deque)
    closed: bool = False
    _wakeup: asyncio.Event = field(default_factory=asyncio.Event)

    def push(self, event: StoreEvent) -> None:
        if self.closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self._append(event)
        else:
            self.loop.call_soon_threadsafe(self._append, event)

    def close(self) -> None:
        self.closed = True
        self._wakeup.set()

    def _append(self, event: StoreEvent) -> None:
        if self.closed:
            return
        self.events.append(event)
        self._wakeup.set()

    def drain(self) -> list[StoreEvent]:
        drained = list(self.events)
        self.events.clear()
        self._wakeup.clear()
        return drained

    async def read_with_timeout(self, timeout: float = 15) -> list[StoreEvent] | None:
        """Return pending events, waiting up to *timeout* seconds for one.

        Returns ``None`` on timeout and ``[]`` once the buffer is closed.
        """
        if self.events:
            return self.drain()
        if self.closed:
            return []
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except TimeoutError:
            return None
        return self.drain()
