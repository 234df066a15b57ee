"""Dict-backed fake of the Datastore contract for unit tests."""

from __future__ import annotations

import copy
import logging
import operator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from ...entity import Entity, Key
from ...query import DatastoreQuery
from ...utils import get_path

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from ...query import PropertyFilter

logger = logging.getLogger("cqrs_ddd.datastore.memory")

_MISSING = object()


def _ordered(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def evaluate(field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return bool(compare(field_value, condition_value))

    return evaluate


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": _ordered(operator.gt),
    ">=": _ordered(operator.ge),
    "<": _ordered(operator.lt),
    "<=": _ordered(operator.le),
    "IN": lambda field_value, values: field_value in values,
    "NOT_IN": lambda field_value, values: field_value not in values,
}


def _matches(data: dict[str, Any], prop_filter: PropertyFilter) -> bool:
    # Datastore never matches entities lacking the filtered property.
    if not _has_path(data, prop_filter.field):
        return False
    return _COMPARATORS[prop_filter.op](
        get_path(data, prop_filter.field), prop_filter.value
    )


def _has_path(data: dict[str, Any], path: str) -> bool:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False
        current = current[part]
    return True


def _sort_key(field: str) -> Callable[[tuple[Key, dict[str, Any]]], tuple[bool, Any]]:
    def key(item: tuple[Key, dict[str, Any]]) -> tuple[bool, Any]:
        value = get_path(item[1], field)
        return (value is not None, value)

    return key


class InMemoryTransaction:
    """Buffers saves until the enclosing scope commits."""

    def __init__(self, datastore: InMemoryDatastore) -> None:
        self._datastore = datastore
        self._pending: list[Entity] = []

    async def allocate_ids(self, incomplete_key: Key, count: int) -> list[Key]:
        return self._datastore.allocate_ids(incomplete_key, count)

    async def save(self, entities: list[Entity]) -> dict[str, Any]:
        self._pending.extend(entities)
        return {"mutation_results": [list(e.key.path) for e in entities]}

    async def commit(self) -> None:
        if self._pending:
            await self._datastore.save(self._pending)
        self._pending = []

    def rollback(self) -> None:
        self._pending = []


class InMemoryDatastore:
    """In-memory implementation of :class:`~..ports.IDatastore`.

    Entities are stored as deep copies keyed by their key path, so callers
    can never mutate stored state through a returned record.
    """

    def __init__(self, namespace: str | None = None) -> None:
        self._namespace = namespace
        self._store: dict[tuple[Any, ...], dict[str, Any]] = {}
        self._last_id = 0

    def key(self, *path: Any) -> Key:
        return Key(tuple(path), namespace=self._namespace)

    def query(self, kind: str) -> DatastoreQuery:
        return DatastoreQuery(kind, namespace=self._namespace)

    def allocate_ids(self, incomplete_key: Key, count: int) -> list[Key]:
        if not incomplete_key.is_partial:
            raise ValueError(f"Key {incomplete_key.path!r} is not partial")
        keys = []
        for _ in range(count):
            self._last_id += 1
            keys.append(incomplete_key.complete(self._last_id))
        return keys

    async def get(self, key: Key) -> Entity | None:
        data = self._store.get(key.path)
        if data is None:
            return None
        return Entity(key=key, data=copy.deepcopy(data))

    async def run_query(self, query: DatastoreQuery) -> list[Entity]:
        items = [
            (Key(path, namespace=self._namespace), data)
            for path, data in self._store.items()
            if len(path) >= 2 and path[-2] == query.kind
        ]
        items = [
            item
            for item in items
            if all(_matches(item[1], f) for f in query.filters)
            and all(_has_path(item[1], o.field) for o in query.orders)
        ]
        for order in reversed(query.orders):
            items.sort(key=_sort_key(order.field), reverse=order.descending)
        start = query.offset_value or 0
        end = start + query.limit_value if query.limit_value else None
        items = items[start:end]
        return [self._project(key, data, query) for key, data in items]

    @staticmethod
    def _project(key: Key, data: dict[str, Any], query: DatastoreQuery) -> Entity:
        if query.is_keys_only:
            return Entity(key=key, data={})
        if query.projection:
            return Entity(
                key=key,
                data={f: copy.deepcopy(data[f]) for f in query.projection if f in data},
            )
        return Entity(key=key, data=copy.deepcopy(data))

    async def save(self, entities: list[Entity]) -> dict[str, Any]:
        for entity in entities:
            if entity.key.is_partial:
                raise ValueError(f"Cannot save entity with partial key {entity.key.path!r}")
            self._store[entity.key.path] = copy.deepcopy(entity.data)
        return {"mutation_results": [list(e.key.path) for e in entities]}

    async def delete(self, keys: Key | list[Key]) -> dict[str, Any]:
        keys = [keys] if isinstance(keys, Key) else list(keys)
        deleted = 0
        for key in keys:
            if self._store.pop(key.path, _MISSING) is not _MISSING:
                deleted += 1
        return {"deleted": deleted}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        transaction = InMemoryTransaction(self)
        try:
            yield transaction
        except BaseException:
            transaction.rollback()
            logger.warning("In-memory transaction rolled back")
            raise
        await transaction.commit()

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
