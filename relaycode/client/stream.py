"""SSE consumer for the relaycode event stream.

Keeps one connection to ``/api/events`` open, decodes every frame into a
typed event and reconnects after failures. Two failure kinds are told
apart: a dropped or refused connection backs off exponentially and gives
up after a fixed number of attempts, while a read that stays idle past
``idle_timeout`` reconnects after the server's retry hint without
spending an attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from relaycode.core.models import ConnectedEvent, StoreEvent, decode_event

logger = logging.getLogger(__name__)

DEFAULT_RETRY_MS = 5000


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class StreamErrorKind(str, Enum):
    NETWORK_CLOSED = "network_closed"
    IDLE_TIMEOUT = "idle_timeout"


class StreamError(Exception):
    def __init__(self, kind: StreamErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    @property
    def is_network_error(self) -> bool:
        return self.kind is StreamErrorKind.NETWORK_CLOSED


@dataclass
class ReconnectPolicy:
    """Exponential backoff: ``min(base * 2**attempt, max)`` for ``max_attempts`` tries."""

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 5
    attempt: int = 0

    def next_delay(self) -> float | None:
        """Delay before the next attempt, or ``None`` once attempts are exhausted."""
        if self.attempt >= self.max_attempts:
            return None
        delay = min(self.base_delay * 2**self.attempt, self.max_delay)
        self.attempt += 1
        return delay

    def reset(self) -> None:
        self.attempt = 0


@dataclass
class SSEFrame:
    data: str | None = None
    event: str | None = None
    id: str | None = None
    retry: int | None = None


async def iter_sse_frames(lines: AsyncIterator[str]) -> AsyncIterator[SSEFrame]:
    """Assemble SSE lines into frames. Comment lines are dropped."""
    data: list[str] = []
    frame = SSEFrame()
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data or frame.retry is not None:
                frame.data = "\n".join(data) if data else None
                yield frame
            data = []
            frame = SSEFrame()
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
        elif name == "event":
            frame.event = value
        elif name == "id":
            frame.id = value
        elif name == "retry" and value.isdigit():
            frame.retry = int(value)
    if data:
        frame.data = "\n".join(data)
        yield frame


EventCallback = Callable[[ConnectedEvent | StoreEvent], Any]
StateCallback = Callable[[ConnectionState], Any]
ErrorCallback = Callable[[StreamError], Any]


class TransactionStreamConsumer:
    """Reconnecting consumer of the transaction event stream."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        on_event: EventCallback | None = None,
        on_state_change: StateCallback | None = None,
        on_error: ErrorCallback | None = None,
        policy: ReconnectPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        idle_timeout: float = 45.0,
        path: str = "/api/events",
    ):
        self.base_url = base_url.rstrip("/")
        self.path = path
        self.policy = policy or ReconnectPolicy()
        self.idle_timeout = idle_timeout
        self.retry_ms = DEFAULT_RETRY_MS
        self._on_event = on_event
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url)
        self._sleep = sleep or asyncio.sleep
        self._state = ConnectionState.DISCONNECTED
        self._closed = False
        self._task: asyncio.Task | None = None
        self._releasing: asyncio.Task | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Callable[[], None]:
        """Run the consumer in a background task. Returns its teardown.

        The teardown is synchronous; a client created by the consumer is
        closed in the background once the run task has finished.
        """
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run(), name="relaycode-stream")
        return self.close

    def close(self) -> None:
        """Stop reconnecting and drop the connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._state = ConnectionState.DISCONNECTED
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        if self._owns_client:
            self._releasing = self._task.get_loop().create_task(self._release_client())

    async def aclose(self) -> None:
        self.close()
        if self._releasing is not None:
            await self._releasing
            return
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    async def _release_client(self) -> None:
        await asyncio.gather(self._task, return_exceptions=True)
        await self._client.aclose()
        logger.debug("Closed HTTP client for %s", self.path)

    async def run(self) -> None:
        """Connect and keep reconnecting until closed or out of attempts."""
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._consume_once()
                error = StreamError(StreamErrorKind.NETWORK_CLOSED, "stream ended")
            except StreamError as e:
                error = e
            if self._closed:
                return

            self._set_state(ConnectionState.DISCONNECTED)
            self._report(error)
            if error.kind is StreamErrorKind.IDLE_TIMEOUT:
                delay = self.retry_ms / 1000
            else:
                delay = self.policy.next_delay()
                if delay is None:
                    logger.warning("Giving up on %s after %d attempts: %s", self.path, self.policy.attempt, error)
                    return
            logger.info("Event stream %s (%s); reconnecting in %.1fs", error.kind.value, error, delay)
            await self._sleep(delay)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _consume_once(self) -> None:
        timeout = httpx.Timeout(10.0, read=self.idle_timeout)
        try:
            async with self._client.stream(
                "GET",
                self.path,
                headers={"Accept": "text/event-stream"},
                timeout=timeout,
            ) as resp:
                if resp.status_code != 200:
                    raise StreamError(StreamErrorKind.NETWORK_CLOSED, f"unexpected status {resp.status_code}")
                self.policy.reset()
                self._set_state(ConnectionState.CONNECTED)
                async for frame in iter_sse_frames(resp.aiter_lines()):
                    if frame.retry is not None:
                        self.retry_ms = frame.retry
                    if frame.data is not None:
                        self._dispatch(frame.data)
                    if self._closed:
                        return
        except httpx.ReadTimeout as e:
            raise StreamError(StreamErrorKind.IDLE_TIMEOUT, f"no data for {self.idle_timeout}s") from e
        except httpx.TransportError as e:
            raise StreamError(StreamErrorKind.NETWORK_CLOSED, str(e) or type(e).__name__) from e

    def _dispatch(self, data: str) -> None:
        try:
            event = decode_event(data)
        except ValidationError as e:
            logger.warning("Skipping undecodable frame %r: %s", data[:200], e)
            return
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s", event.type)

    def _report(self, error: StreamError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error callback failed for %s", error.kind.value)

    def _set_state(self, state: ConnectionState) -> None:
        if self._closed or state is self._state:
            return
        self._state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                logger.exception("State callback failed for %s", state.value)
