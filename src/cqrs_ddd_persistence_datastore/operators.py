"""
Predicate registry: comparison operator symbol -> filter builder.

A filter builder applies one comparison to a backend query and returns
the *updated* query::

    def builder(query: DatastoreQuery, field: str, value: Any) -> DatastoreQuery

Resolution order is call-level overrides, then instance-level overrides,
then the read-only :data:`OPERATORS` defaults.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from .query import DatastoreQuery

FilterBuilder = Callable[[DatastoreQuery, str, Any], DatastoreQuery]

#: Prefix marking a logical-OR variant of an operator (``|==``).
OR_PREFIX = "|"


def _comparison(native_op: str) -> FilterBuilder:
    def builder(query: DatastoreQuery, field: str, value: Any) -> DatastoreQuery:
        return query.filter(field, native_op, value)

    builder.__name__ = f"filter_{native_op}"
    return builder


equal = _comparison("=")
not_equal = _comparison("!=")
greater_than = _comparison(">")
greater_equal = _comparison(">=")
less_than = _comparison("<")
less_equal = _comparison("<=")

OPERATORS: Mapping[str, FilterBuilder] = MappingProxyType(
    {
        "==": equal,
        "===": equal,
        "!=": not_equal,
        "!==": not_equal,
        ">": greater_than,
        ">=": greater_equal,
        "<": less_than,
        "<=": less_equal,
    }
)


class OperatorRegistry:
    """
    Three-level operator lookup.

    Usage::

        registry = OperatorRegistry({"in": lambda q, f, v: q.filter(f, "IN", v)})
        builder = registry.resolve(">=", call_operators)
    """

    def __init__(self, overrides: Mapping[str, FilterBuilder] | None = None) -> None:
        self._overrides: dict[str, FilterBuilder] = dict(overrides or {})

    @property
    def overrides(self) -> Mapping[str, FilterBuilder]:
        return MappingProxyType(self._overrides)

    def resolve(
        self,
        operator: str,
        call_operators: Mapping[str, FilterBuilder] | None = None,
    ) -> FilterBuilder | None:
        """Return the filter builder for ``operator`` or ``None``."""
        if call_operators and call_operators.get(operator) is not None:
            return call_operators[operator]
        if self._overrides.get(operator) is not None:
            return self._overrides[operator]
        return OPERATORS.get(operator)

    def supported_operators(
        self, call_operators: Mapping[str, FilterBuilder] | None = None
    ) -> set[str]:
        return set(OPERATORS) | set(self._overrides) | set(call_operators or {})
