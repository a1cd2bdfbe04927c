import queue
import threading
from typing import Any, Dict, Iterator, List, Optional


class Subscription:
    """The receiving end of a :class:`BroadcastChannel`.

    Events are delivered in the order in which they were published.
    """

    def __init__(self, subscriber_id: str) -> None:
        self.subscriber_id = subscriber_id
        self._queue: queue.Queue = queue.Queue()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def get(self, block: bool = True, timeout: Optional[float] = None) -> Any:
        """Return the next event.

        :raises queue.Empty: If no event arrives in time.
        """
        return self._queue.get(block=block, timeout=timeout)

    def drain(self) -> List[Any]:
        """Return every event delivered so far without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[Any]:
        return iter(self.drain())

    def _put(self, event: Any) -> None:
        self._queue.put(event)

    def _deactivate(self) -> None:
        self._active = False


class BroadcastChannel:
    """An ordered, in-process fan-out of events to explicit subscribers.

    Unsubscribing is the way to stop receiving events; an unsubscribed
    :class:`Subscription` keeps the events it already received.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Subscription] = {}

    def subscribe(self, subscriber_id: str) -> Subscription:
        with self._lock:
            subscription = self._subscribers.get(subscriber_id)
            if subscription is None:
                subscription = Subscription(subscriber_id)
                self._subscribers[subscriber_id] = subscription
            return subscription

    def unsubscribe(self, subscriber_id: str) -> bool:
        with self._lock:
            subscription = self._subscribers.pop(subscriber_id, None)
        if subscription is None:
            return False
        subscription._deactivate()
        return True

    def is_subscribed(self, subscriber_id: str) -> bool:
        with self._lock:
            return subscriber_id in self._subscribers

    def publish(self, event: Any, exclude: Optional[str] = None) -> int:
        """Deliver `event` to every subscriber but `exclude`.

        :return: The number of subscribers the event was delivered to.
        """
        with self._lock:
            receivers = [
                s for sid, s in self._subscribers.items() if sid != exclude
            ]
            for subscription in receivers:
                subscription._put(event)
        return len(receivers)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscribers.values())
            self._subscribers.clear()
        for subscription in subscriptions:
            subscription._deactivate()
