"""
Backend query handle.

``DatastoreQuery`` is an immutable, progressively-built description of a
Datastore query.  Every builder method returns a *new* handle, so filter
builders must thread the returned value forward::

    q = DatastoreQuery("user")
    q = q.filter("age", ">", 18).order("age", descending=True).limit(10)

Storage bindings translate the finished handle into their native query.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

KEY_PROPERTY = "__key__"

#: Comparison operators understood by Datastore property filters.
FILTER_OPERATORS = frozenset({"=", "!=", ">", ">=", "<", "<=", "IN", "NOT_IN"})


@dataclass(frozen=True)
class PropertyFilter:
    """A single-field predicate: ``field op value``."""

    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class PropertyOrder:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class DatastoreQuery:
    """
    Immutable query over one kind.

    Attributes:
        kind: Datastore kind to query.
        filters: Property filters, combined with AND, in application order.
        orders: Sort clauses in application order.
        offset_value: Number of results to skip.
        limit_value: Maximum number of results.
        projection: Properties to return; ``("__key__",)`` is a keys-only scan.
        namespace: Optional Datastore namespace.
    """

    kind: str
    filters: tuple[PropertyFilter, ...] = ()
    orders: tuple[PropertyOrder, ...] = ()
    offset_value: int | None = None
    limit_value: int | None = None
    projection: tuple[str, ...] = ()
    namespace: str | None = None

    def filter(self, field: str, op: str, value: Any) -> DatastoreQuery:
        """Return a copy with one more property filter."""
        if op not in FILTER_OPERATORS:
            raise ValueError(f"Invalid Datastore filter operator: {op!r}")
        return replace(self, filters=(*self.filters, PropertyFilter(field, op, value)))

    def order(self, field: str, *, descending: bool = False) -> DatastoreQuery:
        """Return a copy with one more sort clause."""
        return replace(self, orders=(*self.orders, PropertyOrder(field, descending)))

    def offset(self, n: int) -> DatastoreQuery:
        return replace(self, offset_value=n)

    def limit(self, n: int) -> DatastoreQuery:
        return replace(self, limit_value=n)

    def select(self, fields: list[str] | tuple[str, ...]) -> DatastoreQuery:
        """Return a copy projecting only ``fields``."""
        return replace(self, projection=tuple(fields))

    def keys_only(self) -> DatastoreQuery:
        return self.select((KEY_PROPERTY,))

    @property
    def is_keys_only(self) -> bool:
        return self.projection == (KEY_PROPERTY,)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary (for logging / debugging)."""
        result: dict[str, Any] = {"kind": self.kind}
        if self.filters:
            result["filters"] = [[f.field, f.op, f.value] for f in self.filters]
        if self.orders:
            result["orders"] = [
                [o.field, "desc" if o.descending else "asc"] for o in self.orders
            ]
        if self.offset_value is not None:
            result["offset"] = self.offset_value
        if self.limit_value is not None:
            result["limit"] = self.limit_value
        if self.projection:
            result["projection"] = list(self.projection)
        return result
