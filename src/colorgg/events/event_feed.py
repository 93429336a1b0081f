"""
Publish/subscribe fan-out for live status snapshots and audit records.

Two kinds of consumers are supported:

- callback listeners, invoked synchronously on publish. A listener that raises
  is logged and skipped; the publisher and the remaining listeners carry on.
- queue subscribers, each owning a bounded ``asyncio.Queue``. When a slow
  subscriber's queue is full the oldest item is dropped to make room.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Generic, List, TypeVar

from colorgg.util.logger import get_logger

logger = get_logger("event_feed")

T = TypeVar("T")


class Subscription(Generic[T]):
    """A bounded queue attached to an :class:`EventFeed`."""

    def __init__(self, feed: "EventFeed[T]", maxsize: int) -> None:
        self._feed = feed
        self.queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)

    def offer(self, item: T) -> None:
        if self.queue.full():
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(item)

    async def get(self) -> T:
        return await self.queue.get()

    def close(self) -> None:
        self._feed.unsubscribe(self)


class EventFeed(Generic[T]):
    """Broadcast channel with isolated listeners."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: List[Callable[[T], None]] = []
        self._subscriptions: List[Subscription[T]] = []

    def add_listener(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback and return a function that removes it again."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def subscribe(self, maxsize: int = 100) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self, maxsize)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self._subscriptions)

    def publish(self, item: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception as exc:
                logger.warning("[EVENT FEED] Listener on %s failed: %s", self.name, exc)

        for subscription in list(self._subscriptions):
            try:
                subscription.offer(item)
            except Exception as exc:
                logger.warning("[EVENT FEED] Subscriber on %s failed: %s", self.name, exc)
