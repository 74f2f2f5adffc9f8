"""
Shared pytest fixtures for the book catalog tests.

These fixtures provide consistent test data and reset state between tests.
"""

import pytest
from pathlib import Path
from fastapi.testclient import TestClient

from api.main import app, reset_api_state
from api.operations import BookOperations
from catalog.store import BookStore
from realtime.event_channel import EventChannel


@pytest.fixture
def data_dir() -> Path:
    """Path to the fixture data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def store(data_dir: Path) -> BookStore:
    """
    Fresh seeded BookStore for each test.

    Uses the real JSON fixture but creates a new instance
    so tests don't interfere with each other.
    """
    return BookStore(data_dir=data_dir)


@pytest.fixture
def empty_store() -> BookStore:
    """BookStore with no seed books."""
    return BookStore(seed=False)


@pytest.fixture
def channel() -> EventChannel:
    """Fresh EventChannel for each test."""
    return EventChannel()


@pytest.fixture
def operations(store: BookStore, channel: EventChannel) -> BookOperations:
    """Resolvers bound to the fresh store and channel."""
    return BookOperations(store=store, channel=channel)


@pytest.fixture
def api_client(store: BookStore, channel: EventChannel):
    """
    Test client with fresh state.

    Entered as a context manager so HTTP requests and WebSocket sessions
    share one event loop, and the lifespan shutdown runs at the end.
    """
    reset_api_state(store=store, channel=channel)
    with TestClient(app) as client:
        yield client
    reset_api_state()


# =============================================================================
# Book Fixtures
# =============================================================================

@pytest.fixture
def guardians_id() -> str:
    """Id of 'The Guardians', the first seed book."""
    return "n12clfp3K"


@pytest.fixture
def train_id() -> str:
    """Id of 'The Girl on the Train' (rating 4.2, year 2016)."""
    return "TaFvKQmgQ"


@pytest.fixture
def foundation_id() -> str:
    """Id of 'Foundation' by Isaak Asimov."""
    return "HVL-jHzdH"


@pytest.fixture
def seed_titles() -> list[str]:
    """Seed titles in fixture order."""
    return [
        "The Guardians",
        "The Girl on the Train",
        "Fahrenheit 451",
        "To Kill a Mockingbird",
        "The Shining",
        "Foundation",
        "The Catcher in the Rye",
    ]
