"""
In-memory broadcast channel for real-time notifications.

This module provides a topic-based pub/sub primitive where every subscriber
gets its own stream of events. In a real deployment with several processes,
this would be replaced by a broker like Redis pub/sub or NATS; the interface
(publish / subscribe / close) would stay the same.

Design decisions:
- Broadcast delivery: every subscription on a topic gets every event
- One unbounded asyncio.Queue per subscription, so publish never blocks and a
  slow consumer only ever delays itself
- publish() is synchronous; it can be called right after a store mutation
  without introducing a suspension point between the two
- No replay or buffering for late subscribers: a subscription only sees
  events published after subscribe() returned
- Must be used from the thread running the event loop (asyncio.Queue is not
  thread-safe)
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

logger = logging.getLogger("event_channel")

# Placed on a subscription's queue to wake a consumer blocked in __anext__
_CLOSED = object()


@dataclass
class Event:
    """
    Envelope for everything published on the channel.

    Attributes:
        event_id: Unique identifier for this event instance
        event_type: String name of the event type
        timestamp: When the event occurred
        source: Which component published the event
        payload: The event-specific data
    """
    event_type: str
    payload: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


class Subscription:
    """
    One listener's stream of events on a single topic.

    A subscription is registered as soon as it is created and stays
    registered until close() is called. It is an async iterator that never
    finishes on its own; iteration ends only after close(), for every task
    iterating it. Each payload goes to whichever task reads it first.

    Example:
        subscription = channel.subscribe("bookSub")
        try:
            async for event in subscription:
                ...
        finally:
            subscription.close()
    """

    def __init__(self, channel: "EventChannel", topic: str):
        self.topic = topic
        self.subscription_id = str(uuid4())
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def __repr__(self) -> str:
        return f"Subscription({self.topic!r}, id={self.subscription_id[:8]})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of delivered events not yet consumed."""
        if self._closed:
            return 0
        return self._queue.qsize()

    def deliver(self, payload: Any) -> bool:
        """Hand a payload to this subscription. Returns False once closed."""
        if self._closed:
            return False
        self._queue.put_nowait(payload)
        return True

    def close(self) -> None:
        """
        Unregister and end the stream.

        Undelivered events are discarded. Safe to call more than once and
        has no effect on other subscriptions to the same topic.
        """
        if self._closed:
            return
        self._closed = True
        self._channel._unregister(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._closed:
            raise StopAsyncIteration
        payload = await self._queue.get()
        if payload is _CLOSED:
            # Leave the marker for any other task waiting on this stream
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        if self._closed:
            raise StopAsyncIteration
        return payload

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class EventChannel:
    """
    Topic-keyed broadcast channel.

    Example usage:
        channel = EventChannel()
        subscription = channel.subscribe("bookSub")

        channel.publish("bookSub", book_created(book))
        event = await anext(subscription)
    """

    def __init__(self):
        """Initialize the channel with no subscriptions."""
        # Map of topic -> subscriptions in registration order
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str) -> Subscription:
        """
        Open a new, independent stream on a topic.

        The subscription receives every payload published on the topic from
        this moment until it is closed.
        """
        subscription = Subscription(self, topic)
        self._subscriptions[topic].append(subscription)
        logger.debug(f"Opened {subscription}")
        return subscription

    def publish(self, topic: str, payload: Any) -> int:
        """
        Deliver a payload to every subscription on a topic.

        Args:
            topic: The topic to publish on
            payload: Delivered as-is to each subscription

        Returns:
            Number of subscriptions that received the payload

        Note: Publishing with no subscribers is a no-op. A failure while
        handing the payload to one subscription is logged and does not stop
        delivery to the others.
        """
        subscriptions = list(self._subscriptions.get(topic, []))
        if not subscriptions:
            logger.debug(f"No subscribers on '{topic}', dropping {payload}")
            return 0

        delivered = 0
        for subscription in subscriptions:
            try:
                if subscription.deliver(payload):
                    delivered += 1
            except Exception as e:
                logger.error(f"Delivery to {subscription} failed for {payload}: {e}")

        logger.info(f"Published {payload} on '{topic}' to {delivered} subscriber(s)")
        return delivered

    def _unregister(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.topic)
        if subscriptions is None:
            return
        try:
            subscriptions.remove(subscription)
        except ValueError:
            return
        if not subscriptions:
            del self._subscriptions[subscription.topic]
        logger.debug(f"Closed {subscription}")

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        """Number of open subscriptions on a topic, or on all topics."""
        if topic is None:
            return sum(len(subs) for subs in self._subscriptions.values())
        return len(self._subscriptions.get(topic, []))

    def topics(self) -> list[str]:
        """Topics that currently have at least one subscription."""
        return list(self._subscriptions)

    def close_all(self) -> int:
        """
        Close every open subscription on every topic.

        Called at shutdown so no stream outlives the process. The channel can
        still be used afterwards. Returns the number of subscriptions closed.
        """
        subscriptions = [
            subscription
            for subs in self._subscriptions.values()
            for subscription in subs
        ]
        for subscription in subscriptions:
            subscription.close()
        if subscriptions:
            logger.info(f"Closed {len(subscriptions)} open subscription(s)")
        return len(subscriptions)


# Module-level singleton for convenience
_default_channel: Optional[EventChannel] = None


def get_event_channel() -> EventChannel:
    """Get the default event channel singleton."""
    global _default_channel
    if _default_channel is None:
        _default_channel = EventChannel()
    return _default_channel


def reset_event_channel(channel: Optional[EventChannel] = None) -> EventChannel:
    """Replace the default event channel (useful for testing)."""
    global _default_channel
    _default_channel = channel if channel is not None else EventChannel()
    return _default_channel
