"""Live transaction event stream."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from relaycode.config import RelaycodeSettings
from relaycode.core import EventBroadcaster
from relaycode.web.core.config import API_PREFIX, SSE_HEADERS
from relaycode.web.core.dependencies import get_broadcaster, get_settings
from relaycode.web.services.streaming_service import observe_transaction_events

router = APIRouter(prefix=API_PREFIX, tags=["events"])


@router.get("/events")
async def stream_events(
    broadcaster: Annotated[EventBroadcaster, Depends(get_broadcaster)] = None,
    settings: Annotated[RelaycodeSettings, Depends(get_settings)] = None,
) -> EventSourceResponse:
    """SSE stream of every transaction and file status change.

    Only events published while connected are delivered; clients refetch
    the list after reconnecting.
    """
    events = observe_transaction_events(
        broadcaster,
        heartbeat_seconds=settings.stream.heartbeat_seconds,
        retry_ms=settings.stream.retry_ms,
    )
    return EventSourceResponse(events, headers=SSE_HEADERS)
