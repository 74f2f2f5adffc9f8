"""
FastAPI application for the book catalog.

This application provides:
1. Named-operation dispatch (/operations) for queries and mutations
2. REST-style routes over the same resolvers (/books)
3. The bookSub subscription over a WebSocket (/subscriptions)

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.

Subscription protocol (JSON text frames):
    client -> {"type": "subscribe", "operation": "bookSub"}
    server -> {"type": "subscribed", "operation": "bookSub", "id": "..."}
    server -> {"type": "next", "operation": "bookSub", "data": {...book...}}
    client -> {"type": "stop"}
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

from api.operations import (
    BookFeed,
    BookOperations,
    OperationError,
    OperationValidationError,
    UnknownOperation,
)
from api.schema import BookInput, BookUpdate, OperationRequest, OperationResponse
from catalog.models import Book, ValidationError
from catalog.store import BookStore
from realtime.event_channel import EventChannel

logger = logging.getLogger("book_api")

# Module-level instance (would use proper DI in production)
_operations: Optional[BookOperations] = None


def get_operations() -> BookOperations:
    """Get the resolvers bound to the default store and channel."""
    global _operations
    if _operations is None:
        _operations = BookOperations()
    return _operations


def reset_api_state(
    store: Optional[BookStore] = None,
    channel: Optional[EventChannel] = None,
) -> BookOperations:
    """Rebind the API to a store and channel (for testing)."""
    global _operations
    _operations = BookOperations(store=store, channel=channel)
    return _operations


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logging.info("Starting Book Catalog API")
    yield
    closed = get_operations().channel.close_all()
    logging.info(f"Shutting down, closed {closed} subscription(s)")


# Create the FastAPI app
app = FastAPI(
    title="Book Catalog",
    description="""
    A book catalog with real-time notifications of newly added books.

    ## Endpoints

    - `/operations` - Run a named query or mutation (allBooks, getBook, addBook, updateBook, deleteBook)
    - `/books` - REST-style access to the same operations
    - `/subscriptions` - WebSocket stream for the bookSub subscription
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# CORS (browser clients on other origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    """Report store-level validation failures as 422, like schema failures."""
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "missing": exc.missing},
    )


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check(operations: BookOperations = Depends(get_operations)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "book-catalog",
        "books": operations.store.count(),
        "subscribers": operations.channel.subscriber_count(),
    }


# =============================================================================
# Named Operations
# =============================================================================

@app.post("/operations", response_model=OperationResponse, tags=["Operations"])
async def run_operation(
    request: OperationRequest,
    operations: BookOperations = Depends(get_operations),
) -> OperationResponse:
    """
    Run a query or mutation by name.

    Lookups on unknown ids return `data: null` rather than an error.
    Subscriptions are only available over `/subscriptions`.
    """
    try:
        data = operations.execute(request.operation, request.variables)
    except UnknownOperation as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OperationValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)

    return OperationResponse(operation=request.operation, data=jsonable_encoder(data))


# =============================================================================
# REST-style Routes
# =============================================================================

@app.get("/books", response_model=list[Book], tags=["Books"])
async def list_books(
    search: Optional[str] = None,
    operations: BookOperations = Depends(get_operations),
):
    """List books, optionally filtered by a case-insensitive title search."""
    return operations.all_books(search)


@app.get("/books/{book_id}", response_model=Book, tags=["Books"])
async def get_book(book_id: str, operations: BookOperations = Depends(get_operations)):
    book = operations.get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail=f"Book not found: {book_id}")
    return book


@app.post("/books", response_model=Book, status_code=201, tags=["Books"])
async def add_book(book_input: BookInput, operations: BookOperations = Depends(get_operations)):
    """Add a book. bookSub subscribers are notified."""
    return operations.add_book(book_input)


@app.patch("/books/{book_id}", response_model=Book, tags=["Books"])
async def update_book(
    book_id: str,
    update: BookUpdate,
    operations: BookOperations = Depends(get_operations),
):
    """
    Update a book.

    Empty strings and zeros are ignored, so they cannot be used to clear a
    field.
    """
    book = operations.patch_book(book_id, update)
    if not book:
        raise HTTPException(status_code=404, detail=f"Book not found: {book_id}")
    return book


@app.delete("/books/{book_id}", response_model=Book, tags=["Books"])
async def delete_book(book_id: str, operations: BookOperations = Depends(get_operations)):
    book = operations.delete_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail=f"Book not found: {book_id}")
    return book


# =============================================================================
# Subscriptions
# =============================================================================

async def _receive_message(websocket: WebSocket) -> Optional[dict]:
    """
    Read one client frame.

    Returns the decoded message, or None when the frame is binary or not a
    JSON object. Raises WebSocketDisconnect when the client goes away.
    """
    frame = await websocket.receive()
    if frame["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))

    text = frame.get("text")
    if text is None:
        return None
    try:
        message = json.loads(text)
    except ValueError:
        return None
    return message if isinstance(message, dict) else None


async def _watch_client(websocket: WebSocket, feed: BookFeed) -> None:
    """Close the feed when the client disconnects or asks to stop."""
    try:
        while True:
            message = await _receive_message(websocket)
            if message is None:
                logger.warning(f"Ignoring malformed message on {feed.subscription}")
                continue
            if message.get("type") == "stop":
                break
    except WebSocketDisconnect:
        pass
    finally:
        feed.close()


@app.websocket("/subscriptions")
async def subscriptions(websocket: WebSocket, operations: BookOperations = Depends(get_operations)):
    """
    Stream a subscription operation to the client.

    The first message must be {"type": "subscribe", "operation": <name>}.
    The subscription is registered before "subscribed" is sent back, so any
    book created after the client sees that message will be delivered.
    """
    await websocket.accept()

    try:
        message = await _receive_message(websocket)
    except WebSocketDisconnect:
        return

    name = message.get("operation") if message else None
    try:
        if message is None or message.get("type") != "subscribe":
            raise OperationError("Expected a subscribe message")
        feed = operations.subscribe(name, message.get("variables"))
    except OperationError as e:
        await websocket.send_json({"type": "error", "operation": name, "message": str(e)})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.send_json({
        "type": "subscribed",
        "operation": name,
        "id": feed.subscription.subscription_id,
    })

    watcher = asyncio.create_task(_watch_client(websocket, feed))
    try:
        async for book in feed:
            await websocket.send_json({"type": "next", "operation": name, "data": jsonable_encoder(book)})
    except WebSocketDisconnect:
        logger.info(f"Client went away during delivery on {feed.subscription}")
    finally:
        feed.close()
        watcher.cancel()
        for result in await asyncio.gather(watcher, return_exceptions=True):
            if isinstance(result, Exception):
                logger.error(f"Client watcher failed on {feed.subscription}: {result}")

    if (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    ):
        await websocket.close()
