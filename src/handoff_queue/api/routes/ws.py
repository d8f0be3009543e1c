"""WebSocket endpoint for real-time queue updates."""

import asyncio
import contextlib
import json
import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from handoff_queue.events import Event, event_bus

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("")
async def websocket_endpoint(
    websocket: WebSocket,
    client_id: str | None = None,
) -> None:
    """Stream queue events to an operator console.

    Query Parameters:
        client_id: Optional client ID to filter events

    Each message is the JSON form of an event:
    {
        "id": "abc123",
        "type": "item.claimed",
        "timestamp": "2024-01-01T00:00:00+00:00",
        "data": {...},
        "client_id": "acme"
    }

    Clients may send {"action": "ping"} and receive {"action": "pong"}.
    """
    await websocket.accept()

    subscriber_id = f"ws-{uuid4().hex[:8]}"
    logger.info(f"WebSocket connected: {subscriber_id} (client: {client_id or 'all'})")

    queue = await event_bus.subscribe(subscriber_id, client_id)

    try:
        receive_task = asyncio.create_task(_handle_receive(websocket))
        send_task = asyncio.create_task(_handle_send(websocket, queue))

        # Either side finishing (disconnect or error) ends the session
        _done, pending = await asyncio.wait(
            [receive_task, send_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {subscriber_id}")

    finally:
        await event_bus.unsubscribe(subscriber_id)


async def _handle_receive(websocket: WebSocket) -> None:
    """Handle incoming WebSocket messages."""
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"error": "Invalid JSON"})
                continue

            if message.get("action") == "ping":
                await websocket.send_json({"action": "pong"})
    except WebSocketDisconnect:
        pass


async def _handle_send(websocket: WebSocket, queue: asyncio.Queue[Event]) -> None:
    """Forward events from the bus to the WebSocket."""
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event.to_json())
    except WebSocketDisconnect:
        pass
