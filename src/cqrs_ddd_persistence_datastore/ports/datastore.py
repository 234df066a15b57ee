"""Storage contract the adapter talks to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from ..entity import Entity, Key
    from ..query import DatastoreQuery


@runtime_checkable
class IDatastoreTransaction(Protocol):
    """Work scope opened by :meth:`IDatastore.transaction`.

    Saves are buffered and committed when the scope exits cleanly; an
    exception inside the scope rolls everything back.
    """

    async def allocate_ids(self, incomplete_key: Key, count: int) -> list[Key]:
        """Reserve ``count`` complete keys derived from ``incomplete_key``."""
        ...

    async def save(self, entities: list[Entity]) -> dict[str, Any]: ...


@runtime_checkable
class IDatastore(Protocol):
    """
    Hierarchical key-value store with a single-field-predicate query model.

    Implementations must be safe to share between concurrent calls.
    Failures surface as exceptions and are never retried by the adapter.
    """

    def key(self, *path: Any) -> Key: ...

    def query(self, kind: str) -> DatastoreQuery: ...

    async def get(self, key: Key) -> Entity | None: ...

    async def run_query(self, query: DatastoreQuery) -> list[Entity]: ...

    async def save(self, entities: list[Entity]) -> dict[str, Any]: ...

    async def delete(self, keys: Key | list[Key]) -> dict[str, Any]:
        """Delete ``keys``; the acknowledgment carries ``deleted``, the
        number of entities that existed and were removed."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[IDatastoreTransaction]: ...
