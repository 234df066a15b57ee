"""
CloudDatastoreClient: :class:`~.ports.IDatastore` over google-cloud-datastore.

The Google client is blocking, so every call runs in a worker thread via
:func:`asyncio.to_thread`.  Backend failures are re-raised as
:class:`~.exceptions.StorageError`.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from .entity import Entity, Key
from .exceptions import StorageError
from .query import DatastoreQuery

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from google.cloud import datastore

    from .connection import DatastoreConnectionManager

logger = logging.getLogger("cqrs_ddd.datastore.client")


async def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    from google.api_core.exceptions import GoogleAPIError

    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except GoogleAPIError as e:
        raise StorageError(str(e)) from e


class CloudDatastoreTransaction:
    """Transaction scope; saves are buffered on the Google transaction."""

    def __init__(self, client: CloudDatastoreClient, transaction: Any) -> None:
        self._client = client
        self._transaction = transaction

    async def allocate_ids(self, incomplete_key: Key, count: int) -> list[Key]:
        return await self._client.allocate_ids(incomplete_key, count)

    async def save(self, entities: list[Entity]) -> dict[str, Any]:
        for entity in entities:
            self._transaction.put(self._client.to_native_entity(entity))
        return {"mutation_results": [list(e.key.path) for e in entities]}


class CloudDatastoreClient:
    """Async storage binding over a connected :class:`DatastoreConnectionManager`."""

    def __init__(self, connection: DatastoreConnectionManager) -> None:
        self._connection = connection

    @property
    def _native(self) -> datastore.Client:
        return self._connection.client

    # -- conversions -----------------------------------------------------------

    def to_native_key(self, key: Key) -> Any:
        namespace = key.namespace or self._connection.namespace
        return self._native.key(*key.path, namespace=namespace)

    @staticmethod
    def from_native_key(native_key: Any) -> Key:
        return Key(tuple(native_key.flat_path), namespace=native_key.namespace)

    def to_native_entity(self, entity: Entity) -> Any:
        from google.cloud import datastore

        native = datastore.Entity(key=self.to_native_key(entity.key))
        native.update(entity.data)
        return native

    def from_native_entity(self, native: Any) -> Entity:
        return Entity(key=self.from_native_key(native.key), data=dict(native))

    def to_native_query(self, query: DatastoreQuery) -> Any:
        from google.cloud.datastore.query import PropertyFilter

        native = self._native.query(
            kind=query.kind,
            namespace=query.namespace or self._connection.namespace,
        )
        for prop_filter in query.filters:
            native.add_filter(
                filter=PropertyFilter(prop_filter.field, prop_filter.op, prop_filter.value)
            )
        if query.orders:
            native.order = [
                f"-{order.field}" if order.descending else order.field
                for order in query.orders
            ]
        if query.is_keys_only:
            native.keys_only()
        elif query.projection:
            native.projection = list(query.projection)
        return native

    # -- IDatastore ------------------------------------------------------------

    def key(self, *path: Any) -> Key:
        return Key(tuple(path), namespace=self._connection.namespace)

    def query(self, kind: str) -> DatastoreQuery:
        return DatastoreQuery(kind, namespace=self._connection.namespace)

    async def get(self, key: Key) -> Entity | None:
        native = await _call(self._native.get, self.to_native_key(key))
        if native is None:
            return None
        return self.from_native_entity(native)

    async def run_query(self, query: DatastoreQuery) -> list[Entity]:
        native = self.to_native_query(query)

        def fetch() -> list[Any]:
            return list(native.fetch(limit=query.limit_value, offset=query.offset_value))

        return [self.from_native_entity(e) for e in await _call(fetch)]

    async def save(self, entities: list[Entity]) -> dict[str, Any]:
        await _call(self._native.put_multi, [self.to_native_entity(e) for e in entities])
        return {"mutation_results": [list(e.key.path) for e in entities]}

    async def delete(self, keys: Key | list[Key]) -> dict[str, Any]:
        keys = [keys] if isinstance(keys, Key) else list(keys)
        native_keys = [self.to_native_key(k) for k in keys]
        existing = await _call(self._native.get_multi, native_keys)
        await _call(self._native.delete_multi, native_keys)
        return {"deleted": len(existing)}

    async def allocate_ids(self, incomplete_key: Key, count: int) -> list[Key]:
        native_keys = await _call(
            self._native.allocate_ids, self.to_native_key(incomplete_key), count
        )
        return [self.from_native_key(k) for k in native_keys]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CloudDatastoreTransaction]:
        native = self._native.transaction()
        await _call(native.begin)
        try:
            yield CloudDatastoreTransaction(self, native)
        except BaseException:
            logger.warning("Rolling back Datastore transaction", exc_info=True)
            await _call(native.rollback)
            raise
        await _call(native.commit)
