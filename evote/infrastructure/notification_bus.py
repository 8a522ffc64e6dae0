import logging
import queue
import threading
import time
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


def change_event(collection: str) -> dict:
    return {"event": "data_update", "collection": collection, "timestamp": int(time.time() * 1000)}


class Subscription:
    """A bounded stream of bus events; nothing published before subscribing is replayed."""

    def __init__(self, bus: "NotificationBus", maxsize: int = 100):
        self._bus = bus
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, event: dict):
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning("Subscriber queue full, dropping %s event", event.get("collection"))

    def get(self, timeout: Optional[float] = None) -> Optional[dict]:
        try:
            event = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        return None if event is _CLOSED else event

    def drain(self) -> List[dict]:
        events = []
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return events
            if event is not _CLOSED:
                events.append(event)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._bus._remove(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class NotificationBus:
    """Fan-out of change events: at most once per publish, no acknowledgement, no backlog."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._listeners: List[Callable[[Dict], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, maxsize: int = 100) -> Subscription:
        subscription = Subscription(self, maxsize=maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def add_listener(self, listener: Callable[[Dict], None]):
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Dict], None]):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, event: dict):
        with self._lock:
            subscriptions = list(self._subscriptions)
            listeners = list(self._listeners)
        for subscription in subscriptions:
            subscription.offer(event)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Live update listener failed for %s", event.get("collection"))


notification_bus = NotificationBus()
