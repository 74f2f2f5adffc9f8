"""
Tests for the operation resolvers and name-based dispatch.

These tests call BookOperations directly, without HTTP, and cover the
end-to-end notification scenarios: a book added through addBook reaches
every subscriber that was listening at the time.
"""

import asyncio

import pytest
from api.operations import (
    BookFeed,
    BookOperations,
    OperationValidationError,
    UnknownOperation,
)
from api.schema import OPERATIONS, BookInput, OperationKind, UpdateBookInput
from catalog.models import ValidationError
from catalog.store import BookStore
from realtime.event_channel import EventChannel
from realtime.events import Topics


async def _next(feed: BookFeed, timeout: float = 1.0):
    return await asyncio.wait_for(feed.__anext__(), timeout)


class TestOperationCatalog:
    """Tests for the declared operations."""

    def test_operation_kinds(self):
        """Test that each operation is declared with the right kind."""
        kinds = {name: op.kind for name, op in OPERATIONS.items()}

        assert kinds == {
            "allBooks": OperationKind.QUERY,
            "getBook": OperationKind.QUERY,
            "addBook": OperationKind.MUTATION,
            "updateBook": OperationKind.MUTATION,
            "deleteBook": OperationKind.MUTATION,
            "bookSub": OperationKind.SUBSCRIPTION,
        }


class TestResolvers:
    """Tests for the resolver methods."""

    def test_all_books(self, operations: BookOperations):
        """Test listing with and without a search term."""
        assert len(operations.all_books()) == 7
        assert [b.title for b in operations.all_books("shining")] == ["The Shining"]

    def test_get_book_unknown(self, operations: BookOperations):
        """Test that an unknown id resolves to None."""
        assert operations.get_book("never-created") is None

    def test_add_book_publishes_after_store(self, operations: BookOperations, channel: EventChannel):
        """Test that the event is published once the book is already stored."""
        seen_in_store = []
        original_publish = channel.publish

        def checking_publish(topic, payload):
            book = payload.payload["book"]
            seen_in_store.append(operations.get_book(book.id) == book)
            return original_publish(topic, payload)

        channel.publish = checking_publish
        operations.add_book(BookInput(title="Dune", author="Herbert"))

        assert seen_in_store == [True]

    def test_add_book_without_subscribers(self, operations: BookOperations):
        """Test that adding a book with nobody listening still works."""
        book = operations.add_book(BookInput(title="Dune", author="Herbert"))
        assert operations.get_book(book.id) == book

    def test_update_book(self, operations: BookOperations, train_id: str):
        """Test that updateBook merges truthy fields only."""
        updated = operations.update_book(UpdateBookInput(id=train_id, title="Renamed", rating=0))

        assert updated.title == "Renamed"
        assert updated.rating == 4.2

    def test_update_with_only_id(self, operations: BookOperations, train_id: str):
        """Test that an update with nothing but the id changes nothing."""
        before = operations.get_book(train_id)
        assert operations.update_book(UpdateBookInput(id=train_id)) == before

    def test_update_does_not_publish(self, operations: BookOperations, channel: EventChannel, train_id: str):
        """Test that only creations are announced."""
        async def scenario():
            feed = operations.book_sub()
            operations.update_book(UpdateBookInput(id=train_id, title="Renamed"))
            operations.delete_book(train_id)
            return feed.subscription.pending

        assert asyncio.run(scenario()) == 0

    def test_delete_book(self, operations: BookOperations, foundation_id: str):
        """Test that deleteBook returns the removed book."""
        deleted = operations.delete_book(foundation_id)

        assert deleted.title == "Foundation"
        assert operations.get_book(foundation_id) is None
        assert operations.delete_book(foundation_id) is None


class TestBookSubScenarios:
    """End-to-end notification scenarios."""

    def test_dune_reaches_active_subscriber_only(self, empty_store: BookStore, channel: EventChannel):
        """
        Starting from an empty store, a subscriber registered before addBook
        receives exactly that book; one registered afterwards receives nothing.
        """
        operations = BookOperations(store=empty_store, channel=channel)

        async def scenario():
            early = operations.book_sub()
            book = operations.add_book(BookInput(title="Dune", author="Herbert"))
            late = operations.book_sub()
            received = await _next(early)
            return book, received, early.subscription.pending, late.subscription.pending

        book, received, early_pending, late_pending = asyncio.run(scenario())

        assert book.id
        assert book.description == ""
        assert book.rating is None
        assert received == book
        assert early_pending == 0
        assert late_pending == 0

    def test_two_subscribers_each_get_a_copy(self, operations: BookOperations):
        """Test broadcast: both subscribers get the book, not one each."""
        async def scenario():
            first = operations.book_sub()
            second = operations.book_sub()
            book = operations.add_book(BookInput(title="Dune", author="Herbert"))
            return book, await _next(first), await _next(second), first.subscription.pending

        book, first_received, second_received, leftover = asyncio.run(scenario())

        assert first_received == book
        assert second_received == book
        assert first_received is not second_received
        assert leftover == 0

    def test_subscriber_sees_books_in_creation_order(self, operations: BookOperations):
        """Test that several creations arrive in the order they happened."""
        titles = ["Dune", "Hyperion", "Solaris"]

        async def scenario():
            feed = operations.book_sub()
            for title in titles:
                operations.add_book(BookInput(title=title, author="Someone"))
            return [(await _next(feed)).title for _ in titles]

        assert asyncio.run(scenario()) == titles

    def test_event_book_is_visible_to_queries(self, operations: BookOperations):
        """Test that a book received from bookSub can be fetched right away."""
        async def scenario():
            feed = operations.book_sub()
            operations.add_book(BookInput(title="Dune", author="Herbert"))
            received = await _next(feed)
            return received, operations.get_book(received.id), operations.all_books("dune")

        received, fetched, searched = asyncio.run(scenario())

        assert fetched == received
        assert searched == [received]

    def test_failed_create_publishes_nothing(self, operations: BookOperations):
        """Test that a rejected create leaves store and subscribers untouched."""
        async def scenario():
            feed = operations.book_sub()
            with pytest.raises(ValidationError):
                operations.add_book(BookInput.model_construct(title="", author="Herbert"))
            return feed.subscription.pending

        assert asyncio.run(scenario()) == 0
        assert len(operations.all_books()) == 7

    def test_closing_feed_unregisters(self, operations: BookOperations, channel: EventChannel):
        """Test that closing a feed removes it from the book topic."""
        feed = operations.book_sub()
        assert channel.subscriber_count(Topics.BOOK_CREATED) == 1

        feed.close()

        assert feed.closed
        assert channel.subscriber_count(Topics.BOOK_CREATED) == 0


class TestExecute:
    """Tests for dispatch by operation name."""

    def test_execute_query(self, operations: BookOperations):
        """Test running allBooks by name."""
        books = operations.execute("allBooks", {"search": "fahrenheit"})
        assert [b.title for b in books] == ["Fahrenheit 451"]

    def test_execute_without_variables(self, operations: BookOperations):
        """Test that variables may be omitted."""
        assert len(operations.execute("allBooks")) == 7

    def test_execute_get_unknown(self, operations: BookOperations):
        """Test that getBook on an unknown id returns None."""
        assert operations.execute("getBook", {"id": "never-created"}) is None

    def test_execute_add_book(self, operations: BookOperations):
        """Test running addBook by name."""
        book = operations.execute("addBook", {"input": {"title": "Dune", "author": "Herbert", "year": 1965}})

        assert book.year == 1965
        assert operations.get_book(book.id) == book

    def test_execute_update_and_delete(self, operations: BookOperations, train_id: str):
        """Test running updateBook and deleteBook by name."""
        updated = operations.execute("updateBook", {"input": {"id": train_id, "year": 2015}})
        deleted = operations.execute("deleteBook", {"id": train_id})

        assert updated.year == 2015
        assert deleted == updated

    @pytest.mark.parametrize("variables", [
        {"input": {"author": "Herbert"}},
        {"input": {"title": "Dune"}},
        {"input": {"title": "", "author": "Herbert"}},
        {"input": {"title": "Dune", "author": "Herbert", "publisher": "Chilton"}},
        {},
    ])
    def test_execute_rejects_bad_input(self, operations: BookOperations, variables):
        """Test that schema failures are rejected before the store runs."""
        with pytest.raises(OperationValidationError) as exc_info:
            operations.execute("addBook", variables)

        assert exc_info.value.name == "addBook"
        assert exc_info.value.errors
        assert len(operations.all_books()) == 7

    def test_execute_update_requires_id(self, operations: BookOperations):
        """Test that updateBook without an id is rejected."""
        with pytest.raises(OperationValidationError):
            operations.execute("updateBook", {"input": {"title": "No id"}})

    def test_execute_unknown_operation(self, operations: BookOperations):
        """Test that unknown names are rejected."""
        with pytest.raises(UnknownOperation):
            operations.execute("dropAllBooks", {})

    def test_execute_rejects_subscription(self, operations: BookOperations):
        """Test that bookSub is not available on the request/response path."""
        with pytest.raises(UnknownOperation):
            operations.execute("bookSub", {})

    def test_subscribe_by_name(self, operations: BookOperations, channel: EventChannel):
        """Test opening bookSub by name."""
        feed = operations.subscribe("bookSub")

        assert isinstance(feed, BookFeed)
        assert channel.subscriber_count(Topics.BOOK_CREATED) == 1
        feed.close()

    def test_subscribe_rejects_queries(self, operations: BookOperations):
        """Test that only subscription operations can be subscribed to."""
        with pytest.raises(UnknownOperation):
            operations.subscribe("allBooks")
