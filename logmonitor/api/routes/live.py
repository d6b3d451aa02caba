# logmonitor/api/routes/live.py
"""
Live feed: WS /ws/logs

Protocol:
- server -> {"type": "status", "status": "connected"} right after accept
- client -> {"type": "subscribe", "fileId": "<id>"}
- server -> {"type": "subscribed", "fileId": "<id>", "fileName": "<name>"}
- server -> {"type": "logEntry", "data": {...}} for every new or merged record

The handler task reads client frames; a sibling task in the same anyio task
group drains the connection's bounded outbound queue. Whichever side finishes
first cancels the group, and the connection is unregistered from the
broadcaster on the way out.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import anyio
from fastapi import APIRouter, WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect, WebSocketState

from logmonitor.core.config import settings
from logmonitor.schemas.messages import StatusMessage, SubscribedMessage, SubscribeRequest, to_wire
from logmonitor.services.broadcaster import QueueSubscriber, SubscriberGone, SubscriptionBroadcaster
from logmonitor.services.log_store import LogStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _frame_text(message: dict) -> Optional[str]:
    text = message.get("text")
    if text is not None:
        return text
    raw = message.get("bytes")
    if raw is None:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


async def _receive_loop(
    websocket: WebSocket,
    subscriber: QueueSubscriber,
    broadcaster: SubscriptionBroadcaster,
    store: LogStore,
) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

        raw = _frame_text(message)
        if raw is None:
            logger.warning("Ignoring undecodable frame from %s", id(subscriber))
            continue
        try:
            request = SubscribeRequest.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed client message: %s", e.errors(include_url=False)[:1])
            continue

        file_id = request.target
        log_file = store.get_file(file_id)
        ack = SubscribedMessage(file_id=file_id, file_name=log_file.file_name if log_file else file_id)
        # Queue the ack first so every record of the new file follows it.
        try:
            subscriber.deliver(to_wire(ack))
        except SubscriberGone:
            return
        broadcaster.subscribe(subscriber, file_id)


async def _send_loop(websocket: WebSocket, subscriber: QueueSubscriber, scope: anyio.CancelScope) -> None:
    try:
        while True:
            message = await subscriber.drain()
            if message is None:
                return
            await websocket.send_json(message)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("Live feed send to %s failed: %r", id(subscriber), e)
    finally:
        scope.cancel()


@router.websocket("/ws/logs")
async def live_logs(websocket: WebSocket) -> None:
    broadcaster: SubscriptionBroadcaster = websocket.app.state.broadcaster
    store: LogStore = websocket.app.state.store

    await websocket.accept()
    await websocket.send_json(to_wire(StatusMessage()))

    subscriber = QueueSubscriber(asyncio.get_running_loop(), maxsize=settings.WS_SEND_QUEUE_SIZE)
    broadcaster.connect(subscriber)
    logger.info("Client connected (%s)", id(subscriber))

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_send_loop, websocket, subscriber, tg.cancel_scope)
            try:
                await _receive_loop(websocket, subscriber, broadcaster, store)
            except WebSocketDisconnect:
                pass
            finally:
                tg.cancel_scope.cancel()
    finally:
        dropped = subscriber.closed
        subscriber.close()
        broadcaster.disconnect(subscriber)
        logger.info("Client disconnected (%s)", id(subscriber))

    if dropped and websocket.client_state == WebSocketState.CONNECTED:
        # Slow consumer: its queue overflowed and the broadcaster let it go.
        try:
            await websocket.close(code=1013)
        except RuntimeError as e:
            logger.debug("Close after drop failed for %s: %s", id(subscriber), e)
