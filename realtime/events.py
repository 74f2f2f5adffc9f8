"""
Event definitions for the book catalog.

Design decisions:
- Events are named in past tense (BookCreated, not CreateBook)
- Events carry a copy of the book, so subscribers never need to query back
  and never hold a reference to the store's live entry
- Helper functions create properly structured Event objects
"""

from catalog.models import Book
from realtime.event_channel import Event


class Topics:
    """
    Constants for channel topic names.

    The topic name matches the subscription operation that listens on it.
    """
    BOOK_CREATED = "bookSub"


class EventTypes:
    """Constants for event type names."""
    BOOK_CREATED = "BookCreated"


def book_created(book: Book, source: str = "book-api") -> Event:
    """
    Create a BookCreated event.

    Published after a book has been stored by addBook.
    """
    return Event(
        event_type=EventTypes.BOOK_CREATED,
        source=source,
        payload={"book": book.model_copy()},
    )


def unwrap_book(event: Event) -> Book:
    """Extract the book carried by a BookCreated event."""
    return event.payload["book"].model_copy()
