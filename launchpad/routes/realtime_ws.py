"""
realtime_ws.py
~~~~~~~~~~~~~~

WebSocket endpoint at ``/v1/ws``.

Client messages::

    {"action": "subscribe" | "unsubscribe", "channel": "token" | "new_tokens" | "trending" | "trades",
     "token_address": "<mint>"}          # token_address only for the "token" channel

Each connection is one broadcaster observer. Deliveries go through a bounded
queue drained by a writer task; an observer whose queue is full is evicted
by the broadcaster.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from launchpad.core.broadcast_core.broadcaster import channel_key
from launchpad.core.logging import log

router = APIRouter(tags=["realtime"])

QUEUE_SIZE = 256
ACTIONS = ("subscribe", "unsubscribe")


class WebSocketObserver:
    def __init__(self, websocket: WebSocket, maxsize: int = QUEUE_SIZE):
        self.websocket = websocket
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=maxsize)

    def deliver(self, payload: Dict[str, Any]) -> None:
        # raises QueueFull for a stalled client
        self.queue.put_nowait(payload)

    async def writer(self) -> None:
        while True:
            payload = await self.queue.get()
            await self.websocket.send_json(payload)


def _error(message: str) -> Dict[str, Any]:
    return {"event": "error", "message": message}


def handle_message(broadcaster, observer, raw: str) -> Dict[str, Any]:
    """Apply one client message and return the reply."""
    try:
        msg = json.loads(raw)
    except ValueError:
        return _error("Invalid JSON")
    if not isinstance(msg, dict):
        return _error("Message must be an object")

    action = msg.get("action")
    channel = msg.get("channel")
    token_address = msg.get("token_address")
    if action not in ACTIONS:
        return _error(f"Unknown action: {action}")
    try:
        key = channel_key(channel, token_address)
    except ValueError as exc:
        return _error(str(exc))

    if action == "subscribe":
        try:
            broadcaster.subscribe(key, observer)
        except RuntimeError:
            return _error("Realtime feed is shutting down")
        event, message = "subscribed", "Successfully subscribed"
    else:
        broadcaster.unsubscribe(key, observer)
        event, message = "unsubscribed", "Successfully unsubscribed"
    return {"event": event, "channel": channel, "token_address": token_address, "message": message}


@router.websocket("/v1/ws")
async def realtime_socket(websocket: WebSocket):
    broadcaster = websocket.app.state.runtime.broadcaster
    await websocket.accept()
    observer = WebSocketObserver(websocket)
    try:
        broadcaster.register(observer)
    except RuntimeError:
        log.debug("Broadcaster closed; turning realtime client away", source="RealtimeWS")
        await websocket.close(code=1001)
        return
    writer = asyncio.create_task(observer.writer())
    log.debug("Realtime client connected", source="RealtimeWS")
    try:
        while True:
            raw = await websocket.receive_text()
            observer.deliver(handle_message(broadcaster, observer, raw))
    except WebSocketDisconnect:
        pass
    except asyncio.QueueFull:
        log.debug("Realtime client too slow; closing", source="RealtimeWS")
    finally:
        broadcaster.disconnect(observer)
        writer.cancel()
        try:
            await writer
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        log.debug("Realtime client disconnected", source="RealtimeWS")


__all__ = ["router", "WebSocketObserver", "handle_message"]
