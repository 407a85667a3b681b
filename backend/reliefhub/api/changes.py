"""Live change streams fed by the in-process fanout.

Observers receive `{"event": <channel>, "data": <message>}` frames over a
WebSocket, or the same payload as server-sent events. Nothing is replayed:
only changes published while the observer is connected are delivered.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sse_starlette.sse import EventSourceResponse
from starlette.websockets import WebSocketState

from reliefhub.api.deps import FANOUT_DEP, get_websocket_fanout
from reliefhub.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from reliefhub.services.fanout import ChangeEvent, ChangeFanout, Subscription

logger = get_logger(__name__)

router = APIRouter(prefix="/changes", tags=["changes"])
ws_router = APIRouter()
SSE_PING_SECONDS = 15


def _frame(event: ChangeEvent) -> dict[str, object]:
    return {"event": event.channel, "data": event.to_message()}


@router.get("/stream")
async def stream_changes(
    request: Request,
    fanout: ChangeFanout = FANOUT_DEP,
) -> EventSourceResponse:
    """Stream entity changes via server-sent events."""
    subscription = fanout.subscribe()

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        try:
            async for event in subscription:
                if await request.is_disconnected():
                    break
                yield {"event": event.channel, "data": json.dumps(event.to_message())}
        finally:
            fanout.unsubscribe(subscription)

    return EventSourceResponse(event_generator(), ping=SSE_PING_SECONDS)


async def _close_on_disconnect(
    websocket: WebSocket,
    fanout: ChangeFanout,
    subscription: Subscription,
) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        fanout.unsubscribe(subscription)


@ws_router.websocket("/ws/changes")
async def changes_websocket(
    websocket: WebSocket,
    fanout: ChangeFanout = Depends(get_websocket_fanout),
) -> None:
    """Push every entity change to the connected client until it disconnects."""
    await websocket.accept()
    subscription = fanout.subscribe()
    watcher = asyncio.create_task(_close_on_disconnect(websocket, fanout, subscription))
    logger.info("changes.ws.connected", extra={"subscription_id": subscription.id})
    try:
        async for event in subscription:
            await websocket.send_json(_frame(event))
    except WebSocketDisconnect:
        logger.info("changes.ws.disconnected", extra={"subscription_id": subscription.id})
    finally:
        fanout.unsubscribe(subscription)
        watcher.cancel()
    if websocket.client_state == WebSocketState.CONNECTED:
        # Dropped as a slow subscriber; let the client reconnect.
        await websocket.close()
    logger.info("changes.ws.closed", extra={"subscription_id": subscription.id})
