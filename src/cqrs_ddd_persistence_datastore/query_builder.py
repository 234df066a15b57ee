"""Datastore query builder from declarative selection queries."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .exceptions import UnsupportedOperatorError
from .operators import OR_PREFIX, OperatorRegistry

if TYPE_CHECKING:
    from .operators import FilterBuilder
    from .query import DatastoreQuery

RESERVED = ("orderBy", "sort", "limit", "offset", "skip", "where")


def _normalize_criteria(criteria: Any) -> dict[str, Any]:
    """A bare value is sugar for ``{'==': value}``."""
    if isinstance(criteria, Mapping):
        return dict(criteria)
    return {"==": criteria}


def _normalize_order(order_by: Any) -> list[list[str]]:
    if not order_by:
        return []
    if isinstance(order_by, str):
        return [[order_by, "asc"]]
    clauses: list[list[str]] = []
    for clause in order_by:
        if isinstance(clause, str):
            clauses.append([clause, "asc"])
        else:
            field = clause[0]
            direction = clause[1] if len(clause) > 1 and clause[1] else "asc"
            clauses.append([field, str(direction)])
    return clauses


def normalize_query(query: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Return the canonical form of a selection query.

    The caller's mapping (and its ``where``) is never mutated.  Non-reserved
    top-level keys become equality filters, so ``{"status": "active"}`` and
    ``{"where": {"status": {"==": "active"}}}`` normalize identically.
    Normalizing an already-normalized query returns an equal mapping.
    """
    query = dict(query or {})
    where: dict[str, Any] = {
        field: _normalize_criteria(criteria)
        for field, criteria in dict(query.get("where") or {}).items()
    }
    order_by = query.get("orderBy") or query.get("sort")
    skip = query.get("skip") or query.get("offset")

    for keyword, config in query.items():
        if keyword not in RESERVED:
            where[keyword] = _normalize_criteria(config)

    return {
        "where": where,
        "orderBy": _normalize_order(order_by),
        "skip": skip,
        "limit": query.get("limit"),
    }


class DatastoreQueryBuilder:
    """
    Applies a selection query to a :class:`DatastoreQuery` handle.

    Clauses are applied in a fixed order: filters, then ordering, then
    offset, then limit.
    """

    def __init__(self, registry: OperatorRegistry | None = None) -> None:
        self._registry = registry or OperatorRegistry()

    @property
    def registry(self) -> OperatorRegistry:
        return self._registry

    def build(
        self,
        query: Mapping[str, Any] | None,
        handle: DatastoreQuery,
        operators: Mapping[str, FilterBuilder] | None = None,
    ) -> DatastoreQuery:
        """Return ``handle`` with filters, ordering, offset and limit applied."""
        normalized = normalize_query(query)
        handle = self.build_filters(normalized["where"], handle, operators)
        handle = self.build_order(normalized["orderBy"], handle)
        return self.build_page(normalized["skip"], normalized["limit"], handle)

    def build_filters(
        self,
        where: Mapping[str, Mapping[str, Any]],
        handle: DatastoreQuery,
        operators: Mapping[str, FilterBuilder] | None = None,
    ) -> DatastoreQuery:
        for field, criteria in where.items():
            for operator, value in _normalize_criteria(criteria).items():
                if operator.startswith(OR_PREFIX):
                    raise UnsupportedOperatorError(
                        operator, list(self._registry.supported_operators(operators))
                    )
                builder = self._registry.resolve(operator, operators)
                if builder is None:
                    raise UnsupportedOperatorError(
                        operator, list(self._registry.supported_operators(operators))
                    )
                handle = builder(handle, field, value)
        return handle

    def build_order(
        self, order_by: Any, handle: DatastoreQuery
    ) -> DatastoreQuery:
        for field, direction in _normalize_order(order_by):
            handle = handle.order(field, descending=direction.upper() == "DESC")
        return handle

    def build_page(
        self, skip: Any, limit: Any, handle: DatastoreQuery
    ) -> DatastoreQuery:
        if skip:
            handle = handle.offset(int(skip))
        if limit:
            handle = handle.limit(int(limit))
        return handle
