"""WebSocket endpoint streaming task-updated events."""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from do_in_time.dependencies import BroadcasterWsDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


async def _forward_events(
    websocket: WebSocket, queue: asyncio.Queue[dict[str, Any]]
) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event)


@router.websocket("/ws/events")
async def task_events_endpoint(
    websocket: WebSocket,
    broadcaster: BroadcasterWsDep,
) -> None:
    """Forward every task-updated event to the connected client."""
    queue = broadcaster.subscribe()
    sender: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_forward_events(websocket, queue))
        # Incoming messages are ignored, receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Event subscriber disconnected")
    finally:
        if sender is not None:
            sender.cancel()
        broadcaster.unsubscribe(queue)
