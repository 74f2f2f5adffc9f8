"""
Domain models for the book catalog.

Design decisions:
- Using Pydantic for validation and serialization
- The store hands out copies of these models, never the live entries
- Required-field checks for creation live in the store (see ValidationError),
  the API schema layer repeats them before the store is ever called
"""

from typing import Optional
from pydantic import BaseModel, Field


# Fields a caller may supply on create/update. The id is never caller-supplied.
BOOK_FIELDS = ("title", "description", "author", "year", "rating")

# Fields that must be present and non-empty on create
REQUIRED_FIELDS = ("title", "author")


class ValidationError(ValueError):
    """
    Raised when a book cannot be created because required input is missing.

    The store is left unchanged when this is raised.
    """

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required field(s): {', '.join(missing)}")


class Book(BaseModel):
    """
    A single book in the catalog.

    The id is generated by the store on creation and never changes afterwards.
    """
    id: str = Field(..., description="Store-generated unique identifier")
    title: str = Field(..., description="Book title")
    description: str = Field(default="", description="Free-form description")
    rating: Optional[float] = Field(default=None, description="Average rating, if known")
    author: str = Field(..., description="Author display name")
    year: Optional[int] = Field(default=None, description="Publication year")

    def __str__(self) -> str:
        return f"Book({self.title!r} by {self.author}, id={self.id[:8]})"
