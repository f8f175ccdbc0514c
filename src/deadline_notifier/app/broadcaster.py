"""Server-sent event fan-out to connected subscribers.

Beginner terms used in this file:
- Subscriber: one open GET /events connection.
- Frame: one SSE message, terminated by a blank line.
- Comment frame: a line starting with `:`; browsers ignore it, proxies see traffic.

Every subscriber owns a bounded queue. Broadcasting only enqueues, so a slow
client can never hold up the others or the scanner; a client whose queue is
full is dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from deadline_notifier.app.errors import BroadcastWriteError

logger = logging.getLogger(__name__)

CONNECTED_FRAME = ": connected\n\n"
HEARTBEAT_FRAME = ": heartbeat\n\n"

# Queued after the last frame to wake a reader blocked on an empty queue.
_CLOSED = object()


def format_event(event: str, payload: Any) -> str:
    """Frame a named event with a compact JSON data line."""
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event}\ndata: {data}\n\n"


class Subscriber:
    """Handle for one connected client."""

    def __init__(self, subscriber_id: int, *, queue_size: int) -> None:
        self.id = subscriber_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def send(self, frame: str) -> None:
        if self.closed:
            raise BroadcastWriteError(f"subscriber {self.id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as exc:
            raise BroadcastWriteError(f"subscriber {self.id} is not keeping up") from exc

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Reader is not blocked on get(); it sees `closed` on its next frame.
            pass

    async def next_frame(self) -> str | None:
        """Wait for the next frame; None once the subscriber is closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED or self.closed:
            return None
        return item

    def pending(self) -> int:
        return self._queue.qsize()


class EventBroadcaster:
    """Owns the set of live subscribers and pushes frames to all of them."""

    def __init__(self, *, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[int, Subscriber] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        subscriber = Subscriber(next(self._ids), queue_size=self._queue_size)
        subscriber.send(CONNECTED_FRAME)
        self._subscribers[subscriber.id] = subscriber
        logger.info(
            "sse event=subscribed subscriber_id=%s subscribers=%d",
            subscriber.id,
            len(self._subscribers),
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        subscriber.close()
        if self._subscribers.pop(subscriber.id, None) is not None:
            logger.info(
                "sse event=unsubscribed subscriber_id=%s subscribers=%d",
                subscriber.id,
                len(self._subscribers),
            )

    def broadcast(self, event: str, payload: Any) -> int:
        """Send one named event to every subscriber; returns how many received it."""
        delivered = self._send_all(format_event(event, payload))
        logger.info("sse event=broadcast name=%s delivered=%d data=%s", event, delivered, payload)
        return delivered

    def heartbeat(self) -> int:
        return self._send_all(HEARTBEAT_FRAME)

    def close(self) -> None:
        """Close every subscriber so their streams end (used at shutdown)."""
        for subscriber in list(self._subscribers.values()):
            self.unsubscribe(subscriber)

    def _send_all(self, frame: str) -> int:
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            try:
                subscriber.send(frame)
            except BroadcastWriteError as exc:
                logger.debug("sse event=write_failed subscriber_id=%s error=%s", subscriber.id, exc)
                self.unsubscribe(subscriber)
                continue
            delivered += 1
        return delivered


async def event_stream(broadcaster: EventBroadcaster, subscriber: Subscriber) -> AsyncIterator[str]:
    """Yield frames for one subscriber until it is closed or the client leaves."""
    try:
        while True:
            frame = await subscriber.next_frame()
            if frame is None:
                break
            yield frame
    finally:
        broadcaster.unsubscribe(subscriber)
