"""In-memory storage for unit tests."""

from __future__ import annotations

from .datastore import InMemoryDatastore, InMemoryTransaction

__all__ = ["InMemoryDatastore", "InMemoryTransaction"]
