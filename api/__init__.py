"""
HTTP and WebSocket surface for the book catalog.

This package provides:
- The schema contract (input shapes and the operation catalog)
- Resolvers binding each operation to the store or the event channel
- A FastAPI application exposing them
"""

from api.main import app

__all__ = ["app"]
