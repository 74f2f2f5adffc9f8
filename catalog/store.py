"""
In-memory book store for the catalog.

This module provides the only component allowed to mutate the collection of
books. Everything else (API resolvers, the event channel) goes through the
operations below and only ever receives copies of the stored books.

Design decisions:
- Entries are kept in a dict keyed by id; dicts preserve insertion order, so
  listing is stable without sorting
- Seed books are loaded from a JSON fixture, the same way the rest of the
  project loads its fixtures
- No locking: every operation runs to completion without awaiting, so on a
  single asyncio loop nothing can observe a half-applied mutation
- Unknown ids are a normal outcome (None), never an exception
"""

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional
from uuid import uuid4

from catalog.models import Book, BOOK_FIELDS, REQUIRED_FIELDS, ValidationError

logger = logging.getLogger("book_store")


class BookStore:
    """
    Owns the mutable collection of books.

    Example usage:
        store = BookStore(seed=False)
        book = store.create_book({"title": "Dune", "author": "Herbert"})
        store.get_book(book.id)          # -> copy of the stored book
        store.list_books("dune")         # -> [copy of the stored book]
        store.delete_book(book.id)       # -> the removed book
    """

    def __init__(self, data_dir: Optional[Path] = None, seed: bool = True):
        """
        Initialize the store.

        Args:
            data_dir: Directory containing books.json. Defaults to ./data
                      relative to project root.
            seed: Load the fixture books on construction. Pass False for an
                  empty store.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self._seed = seed
        self._books: dict[str, Book] = {}

        if seed:
            self._load_fixtures()

    # =========================================================================
    # Data Loading
    # =========================================================================

    def _load_json(self, filename: str) -> list[dict]:
        """Load a JSON fixture file."""
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"Fixture file not found: {filepath}")
            return []
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)

    def _load_fixtures(self) -> None:
        for entry in self._load_json("books.json"):
            book = Book(**entry)
            self._books[book.id] = book
        logger.debug(f"Loaded {len(self._books)} seed books")

    def _new_id(self) -> str:
        book_id = str(uuid4())
        while book_id in self._books:
            book_id = str(uuid4())
        return book_id

    # =========================================================================
    # Queries
    # =========================================================================

    def list_books(self, search: Optional[str] = None) -> list[Book]:
        """
        List books in insertion order.

        With a search term, only books whose title contains it
        (case-insensitively) are returned. An empty term means "no filter".
        """
        if not search:
            return [book.model_copy() for book in self._books.values()]

        needle = search.lower()
        return [
            book.model_copy()
            for book in self._books.values()
            if needle in book.title.lower()
        ]

    def get_book(self, book_id: str) -> Optional[Book]:
        """Get a book by id, or None if there is no such book."""
        book = self._books.get(book_id)
        return book.model_copy() if book else None

    def count(self) -> int:
        """Number of books currently stored."""
        return len(self._books)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_book(self, fields: Mapping[str, Any]) -> Book:
        """
        Create and store a new book.

        Args:
            fields: title and author (required, non-empty), plus optional
                    description, rating and year. Unknown keys are ignored.

        Returns:
            A copy of the stored book, including its generated id.

        Raises:
            ValidationError: if title or author is missing or empty.
        """
        missing = [name for name in REQUIRED_FIELDS if not fields.get(name)]
        if missing:
            raise ValidationError(missing)

        description = fields.get("description")
        book = Book(
            id=self._new_id(),
            title=fields["title"],
            description=description if description is not None else "",
            rating=fields.get("rating"),
            author=fields["author"],
            year=fields.get("year"),
        )
        self._books[book.id] = book

        logger.info(f"Created {book}")
        return book.model_copy()

    def update_book(self, book_id: str, fields: Mapping[str, Any]) -> Optional[Book]:
        """
        Merge fields into an existing book.

        Only truthy values overwrite: an empty string, 0, 0.0 or None leaves
        the stored field untouched. So an update cannot clear a description
        or set a rating to zero.

        Returns:
            A copy of the updated book, or None if the id is unknown.
        """
        book = self._books.get(book_id)
        if book is None:
            return None

        changes = {name: fields[name] for name in BOOK_FIELDS if fields.get(name)}
        if changes:
            book = book.model_copy(update=changes)
            self._books[book_id] = book
            logger.info(f"Updated {book}: {sorted(changes)}")

        return book.model_copy()

    def delete_book(self, book_id: str) -> Optional[Book]:
        """Remove a book and return it, or None if the id is unknown."""
        book = self._books.pop(book_id, None)
        if book is not None:
            logger.info(f"Deleted {book}")
        return book

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def reload(self) -> None:
        """
        Drop all books and reload the seed fixtures (if this store was seeded).

        Useful for tests and demos that want a clean catalog.
        """
        self._books.clear()
        if self._seed:
            self._load_fixtures()


# Module-level singleton for convenience
_default_store: Optional[BookStore] = None


def get_book_store() -> BookStore:
    """Get the default book store singleton."""
    global _default_store
    if _default_store is None:
        _default_store = BookStore()
    return _default_store


def reset_book_store(store: Optional[BookStore] = None) -> BookStore:
    """Replace the default book store (useful for testing)."""
    global _default_store
    _default_store = store if store is not None else BookStore()
    return _default_store
