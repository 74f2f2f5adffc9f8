"""
Schema contract for the catalog API.

These Pydantic models define what callers may send and which operations
exist. Every request is validated against them before the store is touched,
so a request missing a required field never reaches the store.

Operation catalog:
- Queries: allBooks, getBook
- Mutations: addBook, updateBook, deleteBook
- Subscriptions: bookSub
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Input Shapes
# =============================================================================

class BookInput(BaseModel):
    """Input for addBook. Title and author are required and must be non-empty."""
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Author display name")
    description: Optional[str] = Field(default=None)
    rating: Optional[float] = Field(default=None)
    year: Optional[int] = Field(default=None)

    model_config = ConfigDict(extra="forbid")


class BookUpdate(BaseModel):
    """
    Partial update for an existing book.

    Only truthy values are applied by the store; sending "" or 0 leaves the
    stored field as it was.
    """
    title: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    rating: Optional[float] = Field(default=None)
    author: Optional[str] = Field(default=None)
    year: Optional[int] = Field(default=None)

    model_config = ConfigDict(extra="forbid")


class UpdateBookInput(BookUpdate):
    """Input for updateBook: the id of the book plus the fields to merge."""
    id: str = Field(..., min_length=1, description="Book to update")


# =============================================================================
# Operation Arguments
# =============================================================================

class AllBooksArgs(BaseModel):
    search: Optional[str] = None


class BookIdArgs(BaseModel):
    id: str = Field(..., min_length=1)


class AddBookArgs(BaseModel):
    input: BookInput


class UpdateBookArgs(BaseModel):
    input: UpdateBookInput


class NoArgs(BaseModel):
    pass


# =============================================================================
# Operation Catalog
# =============================================================================

class OperationKind(str, Enum):
    """How an operation is executed by the transport."""
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class Operation:
    name: str
    kind: OperationKind
    arguments: type[BaseModel]


class OperationNames:
    """Constants for operation names."""
    ALL_BOOKS = "allBooks"
    GET_BOOK = "getBook"
    ADD_BOOK = "addBook"
    UPDATE_BOOK = "updateBook"
    DELETE_BOOK = "deleteBook"
    BOOK_SUB = "bookSub"


OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (
        Operation(OperationNames.ALL_BOOKS, OperationKind.QUERY, AllBooksArgs),
        Operation(OperationNames.GET_BOOK, OperationKind.QUERY, BookIdArgs),
        Operation(OperationNames.ADD_BOOK, OperationKind.MUTATION, AddBookArgs),
        Operation(OperationNames.UPDATE_BOOK, OperationKind.MUTATION, UpdateBookArgs),
        Operation(OperationNames.DELETE_BOOK, OperationKind.MUTATION, BookIdArgs),
        Operation(OperationNames.BOOK_SUB, OperationKind.SUBSCRIPTION, NoArgs),
    )
}


# =============================================================================
# Transport Envelopes
# =============================================================================

class OperationRequest(BaseModel):
    """A named operation plus its argument bundle."""
    operation: str = Field(..., description="Operation name, e.g. allBooks")
    variables: dict[str, Any] = Field(default_factory=dict)


class OperationResponse(BaseModel):
    operation: str
    data: Any = None
