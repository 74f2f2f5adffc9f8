"""
Book catalog domain.

This package contains:
- The Book model and the ValidationError raised on bad create input
- The in-memory BookStore that owns the collection of books
"""

from catalog.models import Book, ValidationError
from catalog.store import BookStore, get_book_store, reset_book_store

__all__ = [
    "Book",
    "ValidationError",
    "BookStore",
    "get_book_store",
    "reset_book_store",
]
