import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CONNECTED = "connected"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    type: EventType
    version: int
    # only set on CONNECTED: the snapshot current at subscription time
    snapshot: Any = None

    def to_sse(self) -> str:
        return f"data: {json.dumps({'type': self.type.value})}\n\n"


class Subscription:
    """
    One observer's pending events.

    Events are handed over with ``call_soon_threadsafe`` so a writer running
    on any thread never waits on the subscriber. When the queue is full the
    oldest pending event is dropped.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, max_pending: int = 100):
        self._loop = loop
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0
        self.closed = False

    def _push(self, event: ChangeEvent) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    def deliver(self, event: ChangeEvent) -> bool:
        if self.closed:
            return False
        try:
            self._loop.call_soon_threadsafe(self._push, event)
        except RuntimeError:
            # event loop already closed
            self.closed = True
            return False
        return True

    async def get(self) -> ChangeEvent:
        return await self._queue.get()

    def get_nowait(self) -> ChangeEvent:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()


class ChangeNotifier:
    def __init__(self, max_pending: int = 100):
        self.max_pending = max_pending
        self._lock = threading.Lock()
        self._subscribers: set[Subscription] = set()

    def subscribe(self, current_snapshot: Callable[[], Any]) -> Subscription:
        """
        Register an observer; must be called from the observer's event loop.

        The subscription is registered before ``current_snapshot`` is read, so
        a write committing in between is either in the CONNECTED snapshot or
        delivered afterwards as its own event.
        """
        subscription = Subscription(asyncio.get_running_loop(), self.max_pending)
        with self._lock:
            self._subscribers.add(subscription)
        snapshot = current_snapshot()
        subscription._push(ChangeEvent(EventType.CONNECTED, getattr(snapshot, "version", 0), snapshot))
        logger.debug("Subscriber connected (total=%s)", self.subscriber_count())
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        with self._lock:
            self._subscribers.discard(subscription)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> int:
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            if subscription.deliver(event):
                delivered += 1
            else:
                self.unsubscribe(subscription)

        logger.info(
            "EVENT: type=%s version=%s subscribers=%s",
            event.type.value,
            event.version,
            delivered,
        )
        return delivered
