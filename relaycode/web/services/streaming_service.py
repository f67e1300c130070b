"""SSE streaming service for store events."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from relaycode.core.broadcaster import EventBroadcaster
from relaycode.core.models import ConnectedEvent, encode_event

from .event_buffer import ConnectionEventBuffer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def subscribe_connection(broadcaster: EventBroadcaster) -> AsyncIterator[ConnectionEventBuffer]:
    """Register a buffer with *broadcaster* for the lifetime of the block."""
    buf = ConnectionEventBuffer()
    unsubscribe = broadcaster.subscribe(buf.push)
    logger.debug("SSE connection opened (%d subscribers)", broadcaster.subscriber_count)
    try:
        yield buf
    finally:
        unsubscribe()
        buf.close()
        logger.debug("SSE connection closed (%d subscribers)", broadcaster.subscriber_count)


async def observe_transaction_events(
    broadcaster: EventBroadcaster,
    heartbeat_seconds: float = 15,
    retry_ms: int = 5000,
) -> AsyncGenerator[dict[str, str | int], None]:
    """Relay broadcaster events to one client. Yields SSE event dicts.

    The first frame carries the reconnect hint and the ``connected`` event.
    A keep-alive comment is sent whenever the stream is idle for
    *heartbeat_seconds*. The subscription is released however the
    generator exits.
    """
    async with subscribe_connection(broadcaster) as buf:
        yield {"retry": retry_ms, "data": encode_event(ConnectedEvent())}
        while True:
            events = await buf.read_with_timeout(heartbeat_seconds)
            if events is None:
                yield {"comment": "keepalive"}
                continue
            if not events and buf.closed:
                break
            for event in events:
                yield {"data": encode_event(event)}
