"""Broadcast publish/subscribe channel without buffering."""

import logging
import threading
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by EventChannel.subscribe()."""

    def __init__(self, channel: "EventChannel", callback: Callable):
        self._channel = channel
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Remove the callback from its channel. Safe to call twice."""
        if self._active:
            self._active = False
            self._channel._remove(self)


class EventChannel(Generic[T]):
    """
    Observer list with a synchronous ``push``.

    Values pushed while nobody is subscribed are dropped. A subscriber
    that raises is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str = "channel"):
        self.name = name
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        """
        Register a callback for future values.

        Args:
            callback: Called with each pushed value

        Returns:
            Subscription used to unregister the callback
        """
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def push(self, value: T) -> None:
        """Invoke every currently registered callback once with ``value``."""
        with self._lock:
            subscriptions = list(self._subscriptions)

        if not subscriptions:
            logger.debug(f"No subscribers on {self.name}, dropping {value!r}")
            return

        for subscription in subscriptions:
            if not subscription.active:
                continue
            try:
                subscription._callback(value)
            except Exception:
                logger.exception(f"Subscriber on {self.name} failed")

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass

    def __len__(self) -> int:
        """Return the number of subscribers."""
        with self._lock:
            return len(self._subscriptions)


class EventStream(Generic[T]):
    """Subscribe-only view of an EventChannel."""

    def __init__(self, channel: EventChannel):
        self._channel = channel

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        return self._channel.subscribe(callback)

    def __len__(self) -> int:
        return len(self._channel)
