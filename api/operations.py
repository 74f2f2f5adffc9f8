"""
Operation resolvers for the catalog API.

This module binds each named operation to a BookStore call, and the one
subscription operation to the book-creation topic on the EventChannel. It
holds no state of its own besides references to those two collaborators.

Key constraint:
- addBook stores the book and publishes the BookCreated event with no await
  in between, so a subscriber that receives the event can immediately find
  the book with getBook/allBooks
"""

import logging
from typing import Any, Callable, Optional

import pydantic

from api.schema import (
    OPERATIONS,
    BookInput,
    BookUpdate,
    Operation,
    OperationKind,
    OperationNames,
    UpdateBookInput,
)
from catalog.models import Book
from catalog.store import BookStore, get_book_store
from realtime.event_channel import EventChannel, Subscription, get_event_channel
from realtime.events import Topics, book_created, unwrap_book

logger = logging.getLogger("book_api")


class OperationError(Exception):
    """Base class for requests rejected before reaching the store."""


class UnknownOperation(OperationError):
    """The operation name is not in the catalog, or has the wrong kind."""

    def __init__(self, name: str, expected: str):
        self.name = name
        super().__init__(f"Unknown {expected} operation: {name!r}")


class OperationValidationError(OperationError):
    """The argument bundle does not match the operation's schema."""

    def __init__(self, name: str, error: pydantic.ValidationError):
        self.name = name
        self.errors = error.errors(include_url=False, include_context=False, include_input=False)
        super().__init__(f"Invalid arguments for {name!r}: {error.error_count()} error(s)")


class BookFeed:
    """
    Stream of newly created books for one bookSub caller.

    Wraps a channel Subscription and unwraps each BookCreated event into
    the Book it carries.
    """

    def __init__(self, subscription: Subscription):
        self.subscription = subscription

    def close(self) -> None:
        self.subscription.close()

    @property
    def closed(self) -> bool:
        return self.subscription.closed

    def __aiter__(self) -> "BookFeed":
        return self

    async def __anext__(self) -> Book:
        event = await self.subscription.__anext__()
        return unwrap_book(event)

    async def __aenter__(self) -> "BookFeed":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class BookOperations:
    """
    Resolvers for every operation in the catalog.

    Example:
        operations = BookOperations(store=BookStore(), channel=EventChannel())

        feed = operations.book_sub()
        book = operations.add_book(BookInput(title="Dune", author="Herbert"))
        assert await anext(feed) == book

        # Or by name, as the transport does it
        operations.execute("getBook", {"id": book.id})
    """

    def __init__(
        self,
        store: Optional[BookStore] = None,
        channel: Optional[EventChannel] = None,
    ):
        """
        Args:
            store: Book store to resolve against (defaults to singleton)
            channel: Event channel for bookSub (defaults to singleton)
        """
        self.store = store or get_book_store()
        self.channel = channel or get_event_channel()

        self._resolvers: dict[str, Callable[[Any], Any]] = {
            OperationNames.ALL_BOOKS: lambda args: self.all_books(args.search),
            OperationNames.GET_BOOK: lambda args: self.get_book(args.id),
            OperationNames.ADD_BOOK: lambda args: self.add_book(args.input),
            OperationNames.UPDATE_BOOK: lambda args: self.update_book(args.input),
            OperationNames.DELETE_BOOK: lambda args: self.delete_book(args.id),
        }

    # =========================================================================
    # Queries
    # =========================================================================

    def all_books(self, search: Optional[str] = None) -> list[Book]:
        return self.store.list_books(search)

    def get_book(self, book_id: str) -> Optional[Book]:
        return self.store.get_book(book_id)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_book(self, book_input: BookInput) -> Book:
        """
        Store a new book, then announce it to bookSub subscribers.

        Raises:
            catalog.models.ValidationError: if title or author is empty
        """
        book = self.store.create_book(book_input.model_dump())
        self.channel.publish(Topics.BOOK_CREATED, book_created(book))
        return book

    def update_book(self, update: UpdateBookInput) -> Optional[Book]:
        return self.store.update_book(update.id, update.model_dump(exclude={"id"}))

    def patch_book(self, book_id: str, update: BookUpdate) -> Optional[Book]:
        """updateBook with the id supplied separately (REST-style callers)."""
        return self.store.update_book(book_id, update.model_dump())

    def delete_book(self, book_id: str) -> Optional[Book]:
        return self.store.delete_book(book_id)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def book_sub(self) -> BookFeed:
        """
        Open a stream of every book created from now on.

        The caller owns the feed and must close it when its connection goes
        away.
        """
        return BookFeed(self.channel.subscribe(Topics.BOOK_CREATED))

    # =========================================================================
    # Dispatch by name
    # =========================================================================

    def execute(self, name: str, variables: Optional[dict[str, Any]] = None) -> Any:
        """
        Run a query or mutation by name.

        Returns the resolver's result; None for lookups on unknown ids.

        Raises:
            UnknownOperation: name is not a query or mutation
            OperationValidationError: variables do not match the schema
            catalog.models.ValidationError: the store rejected the input
        """
        operation = OPERATIONS.get(name)
        if operation is None or operation.kind == OperationKind.SUBSCRIPTION:
            raise UnknownOperation(name, "query or mutation")

        args = self._parse_arguments(operation, variables)
        logger.info(f"Executing {operation.kind.value} {name}")
        return self._resolvers[name](args)

    def subscribe(self, name: str, variables: Optional[dict[str, Any]] = None) -> BookFeed:
        """
        Open a subscription by name.

        Raises:
            UnknownOperation: name is not a subscription
            OperationValidationError: variables do not match the schema
        """
        operation = OPERATIONS.get(name)
        if operation is None or operation.kind != OperationKind.SUBSCRIPTION:
            raise UnknownOperation(name, "subscription")

        self._parse_arguments(operation, variables)
        logger.info(f"Opening subscription {name}")
        return self.book_sub()

    def _parse_arguments(self, operation: Operation, variables: Optional[dict[str, Any]]):
        try:
            return operation.arguments.model_validate(variables or {})
        except pydantic.ValidationError as e:
            logger.info(f"Rejected {operation.name}: {e.error_count()} validation error(s)")
            raise OperationValidationError(operation.name, e) from e
