"""WebSocket endpoint streaming newly stored scan results."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket

from scanner_operator.hub import NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_until_closed(websocket: WebSocket) -> None:
    """Consume client frames until the client goes away. Content is ignored."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/subscribe")
async def subscribe(websocket: WebSocket) -> None:
    """Push the image id of every newly stored scan result.

    Each message is a JSON string literal, e.g. "sha256:...". The client
    sends nothing; the subscription lasts until either side closes the
    connection or a send fails.
    """
    hub: NotificationHub = websocket.app.state.hub

    # Register before accepting so no publish after the handshake is missed.
    subscriber = hub.subscribe()
    try:
        await websocket.accept()
        reader = asyncio.create_task(_read_until_closed(websocket))
        delivery = asyncio.create_task(hub.deliver(subscriber, websocket.send_text))
        done, pending = await asyncio.wait({reader, delivery}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug("Subscriber %d closed: %s", subscriber.id, task.exception())
    finally:
        hub.unsubscribe(subscriber)
