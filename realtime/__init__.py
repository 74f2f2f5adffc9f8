"""
Real-time notification channel.

This package implements the push side of the catalog:
- Mutations publish events on a named topic
- Each subscriber gets its own ordered stream of every later event
- Publishers and subscribers never reference each other directly
"""

from realtime.event_channel import (
    Event,
    EventChannel,
    Subscription,
    get_event_channel,
    reset_event_channel,
)
from realtime.events import EventTypes, Topics, book_created, unwrap_book

__all__ = [
    "Event",
    "EventChannel",
    "Subscription",
    "get_event_channel",
    "reset_event_channel",
    "EventTypes",
    "Topics",
    "book_created",
    "unwrap_book",
]
