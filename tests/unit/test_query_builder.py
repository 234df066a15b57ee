"""Tests for normalize_query, OperatorRegistry and DatastoreQueryBuilder."""

from __future__ import annotations

import copy

import pytest

from cqrs_ddd_persistence_datastore.exceptions import UnsupportedOperatorError
from cqrs_ddd_persistence_datastore.operators import OPERATORS, OperatorRegistry
from cqrs_ddd_persistence_datastore.query import (
    DatastoreQuery,
    PropertyFilter,
    PropertyOrder,
)
from cqrs_ddd_persistence_datastore.query_builder import (
    DatastoreQueryBuilder,
    normalize_query,
)


def _in_builder(query: DatastoreQuery, field: str, value: object) -> DatastoreQuery:
    return query.filter(field, "IN", value)


# ═══════════════════════════════════════════════════════════════════════
# normalize_query
# ═══════════════════════════════════════════════════════════════════════


class TestNormalizeQuery:
    def test_empty(self) -> None:
        assert normalize_query(None) == {
            "where": {},
            "orderBy": [],
            "skip": None,
            "limit": None,
        }

    def test_shorthand_moves_into_where(self) -> None:
        normalized = normalize_query({"status": "active", "limit": 5})
        assert normalized["where"] == {"status": {"==": "active"}}
        assert normalized["limit"] == 5

    def test_shorthand_equals_explicit_where(self) -> None:
        assert normalize_query({"status": "active"}) == normalize_query(
            {"where": {"status": {"==": "active"}}}
        )

    def test_aliases(self) -> None:
        normalized = normalize_query({"sort": "name", "offset": 10})
        assert normalized["orderBy"] == [["name", "asc"]]
        assert normalized["skip"] == 10

    def test_order_forms(self) -> None:
        normalized = normalize_query({"orderBy": ["name", ["age", "DESC"], ["id"]]})
        assert normalized["orderBy"] == [
            ["name", "asc"],
            ["age", "DESC"],
            ["id", "asc"],
        ]

    def test_idempotent(self) -> None:
        once = normalize_query(
            {"where": {"age": {">": 18}}, "status": "x", "sort": "age", "skip": 2}
        )
        assert normalize_query(once) == once

    def test_does_not_mutate_input(self) -> None:
        query = {"where": {"age": {">": 18}}, "status": "active"}
        snapshot = copy.deepcopy(query)
        normalize_query(query)
        assert query == snapshot


# ═══════════════════════════════════════════════════════════════════════
# OperatorRegistry
# ═══════════════════════════════════════════════════════════════════════


class TestOperatorRegistry:
    def test_defaults(self) -> None:
        registry = OperatorRegistry()
        assert registry.resolve("==") is OPERATORS["=="]
        assert registry.resolve("===") is OPERATORS["=="]
        assert registry.resolve("!==") is OPERATORS["!="]
        assert registry.resolve("in") is None

    def test_defaults_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            OPERATORS["in"] = _in_builder  # type: ignore[index]

    def test_instance_overrides_default(self) -> None:
        registry = OperatorRegistry({"==": _in_builder})
        assert registry.resolve("==") is _in_builder
        assert "in" not in registry.supported_operators()

    def test_call_overrides_instance(self) -> None:
        def call_level(q: DatastoreQuery, f: str, v: object) -> DatastoreQuery:
            return q

        registry = OperatorRegistry({"in": _in_builder})
        assert registry.resolve("in", {"in": call_level}) is call_level
        assert registry.resolve("in", {}) is _in_builder

    def test_none_call_override_falls_through(self) -> None:
        registry = OperatorRegistry({"in": _in_builder})
        assert registry.resolve("in", {"in": None}) is _in_builder  # type: ignore[dict-item]


# ═══════════════════════════════════════════════════════════════════════
# DatastoreQueryBuilder
# ═══════════════════════════════════════════════════════════════════════


class TestDatastoreQueryBuilder:
    @pytest.fixture
    def builder(self) -> DatastoreQueryBuilder:
        return DatastoreQueryBuilder()

    def test_filters_in_declaration_order(self, builder: DatastoreQueryBuilder) -> None:
        handle = builder.build(
            {"where": {"age": {">=": 18, "<": 65}, "status": "active"}},
            DatastoreQuery("user"),
        )
        assert handle.filters == (
            PropertyFilter("age", ">=", 18),
            PropertyFilter("age", "<", 65),
            PropertyFilter("status", "=", "active"),
        )

    def test_order_offset_limit(self, builder: DatastoreQueryBuilder) -> None:
        handle = builder.build(
            {"orderBy": [["age", "desc"], "name"], "skip": "5", "limit": 10},
            DatastoreQuery("user"),
        )
        assert handle.orders == (
            PropertyOrder("age", descending=True),
            PropertyOrder("name"),
        )
        assert handle.offset_value == 5
        assert handle.limit_value == 10

    def test_zero_skip_and_limit_are_not_applied(
        self, builder: DatastoreQueryBuilder
    ) -> None:
        handle = builder.build({"skip": 0, "limit": 0}, DatastoreQuery("user"))
        assert handle.offset_value is None
        assert handle.limit_value is None

    def test_handle_is_not_mutated(self, builder: DatastoreQueryBuilder) -> None:
        base = DatastoreQuery("user")
        built = builder.build({"status": "x", "limit": 1}, base)
        assert base == DatastoreQuery("user")
        assert built is not base

    def test_or_operator_raises(self, builder: DatastoreQueryBuilder) -> None:
        with pytest.raises(UnsupportedOperatorError, match=r"Operator \|== not supported!"):
            builder.build({"where": {"status": {"|==": "a"}}}, DatastoreQuery("user"))

    def test_unknown_operator_raises_with_suggestions(
        self, builder: DatastoreQueryBuilder
    ) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            builder.build({"where": {"age": {"=>": 1}}}, DatastoreQuery("user"))
        assert exc_info.value.operator == "=>"
        assert ">=" in exc_info.value.valid_operators
        assert exc_info.value.to_dict()["error"] == "UNSUPPORTED_OPERATOR"

    def test_call_operator_enables_custom_symbol(
        self, builder: DatastoreQueryBuilder
    ) -> None:
        handle = builder.build(
            {"where": {"status": {"in": ["a", "b"]}}},
            DatastoreQuery("user"),
            {"in": _in_builder},
        )
        assert handle.filters == (PropertyFilter("status", "IN", ["a", "b"]),)

    def test_instance_registry(self) -> None:
        builder = DatastoreQueryBuilder(OperatorRegistry({"in": _in_builder}))
        handle = builder.build({"where": {"id": {"in": [1]}}}, DatastoreQuery("user"))
        assert handle.filters == (PropertyFilter("id", "IN", [1]),)


class TestDatastoreQuery:
    def test_invalid_native_operator(self) -> None:
        with pytest.raises(ValueError, match="Invalid Datastore filter operator"):
            DatastoreQuery("user").filter("age", "~", 1)

    def test_keys_only(self) -> None:
        handle = DatastoreQuery("user").keys_only()
        assert handle.is_keys_only
        assert handle.to_dict() == {"kind": "user", "projection": ["__key__"]}
