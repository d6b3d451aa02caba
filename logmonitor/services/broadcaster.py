# logmonitor/services/broadcaster.py
"""
Live fan-out of log records to subscribed connections.

Each connection is bound to at most one file id (a later subscribe replaces the
earlier binding). `publish(file_id, record)` pushes a `logEntry` message to every
connection bound to that file at the moment the recipient list is captured.

Rules:
- The subscription map is only touched under `_lock`; publish copies the
  recipients under the lock and delivers outside of it.
- Delivery is fire-and-forget. A subscriber whose `deliver` raises (closed socket,
  full outbound queue) is dropped; other subscribers are unaffected and nothing
  propagates to the publisher.
- No replay: late subscribers read history from the store.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol

from logmonitor.schemas.logs import LogRecord
from logmonitor.schemas.messages import LogEntryMessage, to_wire

logger = logging.getLogger(__name__)


class SubscriberGone(RuntimeError):
    """Raised by `deliver` when a subscriber can no longer take messages."""


class Subscriber(Protocol):
    def deliver(self, message: Dict[str, Any]) -> None:
        """Hand a JSON-ready message to the connection without blocking."""


class SubscriptionBroadcaster:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: Dict[Subscriber, Optional[str]] = {}

    def connect(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscriptions.setdefault(subscriber, None)

    def subscribe(self, subscriber: Subscriber, file_id: str) -> Optional[str]:
        """Bind `subscriber` to `file_id`, returning the previous binding."""
        with self._lock:
            previous = self._subscriptions.get(subscriber)
            self._subscriptions[subscriber] = file_id
        logger.info("Subscriber %s bound to file %s", id(subscriber), file_id)
        return previous

    def disconnect(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscriptions.pop(subscriber, None)

    def subscription_of(self, subscriber: Subscriber) -> Optional[str]:
        with self._lock:
            return self._subscriptions.get(subscriber)

    def subscriber_count(self, file_id: Optional[str] = None) -> int:
        with self._lock:
            if file_id is None:
                return len(self._subscriptions)
            return sum(1 for f in self._subscriptions.values() if f == file_id)

    def publish(self, file_id: str, record: LogRecord) -> int:
        """Deliver `record` to the current subscribers of `file_id`. Returns the delivery count."""
        with self._lock:
            recipients: List[Subscriber] = [s for s, f in self._subscriptions.items() if f == file_id]
        if not recipients:
            return 0

        message = to_wire(LogEntryMessage(data=record))
        delivered = 0
        for subscriber in recipients:
            try:
                subscriber.deliver(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping subscriber %s of file %s: %s", id(subscriber), file_id, e)
                self.disconnect(subscriber)
        return delivered


class QueueSubscriber:
    """
    Subscriber backed by a bounded asyncio.Queue on the connection's event loop.

    `deliver` may be called from any thread (ingestion runs in a worker thread);
    the message is handed to the loop with `call_soon_threadsafe`. A sender task
    drains the queue with `drain()`.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int) -> None:
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, message: Dict[str, Any]) -> None:
        if self.closed or self._loop.is_closed():
            raise SubscriberGone("connection closed")
        if self._queue.full():
            self.closed = True
            self._loop.call_soon_threadsafe(self._wake)
            raise SubscriberGone("outbound queue full")
        self._loop.call_soon_threadsafe(self._offer, message)

    def _offer(self, message: Dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.closed = True
            self._wake()

    def _wake(self) -> None:
        # Unblock a sender waiting on an empty queue so it can notice `closed`.
        if self._queue.empty():
            self._queue.put_nowait(None)

    def close(self) -> None:
        self.closed = True

    async def drain(self) -> Optional[Dict[str, Any]]:
        """Next message to send, or None once the subscriber has been closed."""
        if self.closed:
            return None
        message = await self._queue.get()
        if message is None or self.closed:
            return None
        return message
