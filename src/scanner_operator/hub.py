"""Live fan-out of completed scans to connected subscribers.

Every publish goes through a single dispatcher task. publish() returns only
once the dispatcher has taken the message, and the dispatcher forwards each
message to every subscriber queue in registration order, waiting on each
put. A subscriber that stops draining its queue therefore delays delivery to
every subscriber registered after it for that message.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from scanner_operator.once import Once

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Subscriber:
    """Handle returned by NotificationHub.subscribe().

    Attributes:
        id: Registry key, unique per hub.
        queue: Outbound image ids waiting to be transmitted.
        closed: Set once the subscriber has been removed from the registry.
    """

    id: int
    queue: asyncio.Queue[str]
    closed: bool = field(default=False)


class NotificationHub:
    """Registry of live subscribers plus the broadcast dispatcher."""

    def __init__(self, queue_size: int = 1) -> None:
        self._queue_size = queue_size
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._subscribers: dict[int, Subscriber] = {}
        self._broadcast: asyncio.Queue[tuple[str, asyncio.Future[None]]] = asyncio.Queue(maxsize=1)
        self._dispatcher: Once[asyncio.Task[None]] = Once()
        self._task: asyncio.Task[None] | None = None

    def subscribe(self) -> Subscriber:
        """Register a new subscriber with its own outbound queue."""
        subscriber = Subscriber(id=next(self._ids), queue=asyncio.Queue(maxsize=self._queue_size))
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
            live = len(self._subscribers)
        logger.debug("Subscriber %d connected (%d live)", subscriber.id, live)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Calling this more than once is a no-op."""
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
            live = len(self._subscribers)
        if removed is None:
            return
        subscriber.closed = True
        # Free the queue so a dispatcher blocked on it can move on.
        while not subscriber.queue.empty():
            subscriber.queue.get_nowait()
        logger.debug("Subscriber %d disconnected (%d live)", subscriber.id, live)

    def snapshot(self) -> list[Subscriber]:
        """Current subscribers in registration order."""
        with self._lock:
            return list(self._subscribers.values())

    def start(self) -> None:
        """Start the dispatcher task on the running loop, exactly once."""
        self._task = self._dispatcher.do(
            lambda: asyncio.get_running_loop().create_task(
                self._dispatch(), name="notification-dispatcher"
            )
        )

    async def close(self) -> None:
        """Stop the dispatcher, if it was ever started."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def publish(self, image_id: str) -> None:
        """Hand image_id to the dispatcher and wait until it is accepted."""
        self.start()
        accepted: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._broadcast.put((image_id, accepted))
        await accepted

    async def _dispatch(self) -> None:
        while True:
            image_id, accepted = await self._broadcast.get()
            if not accepted.done():
                accepted.set_result(None)
            for subscriber in self.snapshot():
                if subscriber.closed:
                    continue
                await subscriber.queue.put(image_id)

    async def deliver(self, subscriber: Subscriber, send: Callable[[str], Awaitable[None]]) -> None:
        """Drain a subscriber's queue into its connection until sending fails.

        Each image id is transmitted as a JSON string literal. On a send
        failure the subscriber is unsubscribed and this coroutine returns.
        """
        try:
            while True:
                image_id = await subscriber.queue.get()
                await send(json.dumps(image_id))
        except Exception:
            logger.exception("Delivery to subscriber %d failed", subscriber.id)
        finally:
            self.unsubscribe(subscriber)
