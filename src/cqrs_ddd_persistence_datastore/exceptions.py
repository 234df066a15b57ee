"""Datastore adapter exception hierarchy.

All exceptions inherit from ``DatastoreAdapterError`` and provide
``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class DatastoreAdapterError(Exception):
    """Root exception for the datastore adapter."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class UnsupportedOperatorError(DatastoreAdapterError):
    """
    A query used a comparison operator with no registered filter builder.

    Logical-OR operators (``|==``, ``|>`` ...) always land here: the
    backend only supports a conjunction of single-field predicates.
    """

    def __init__(
        self,
        operator: str,
        valid_operators: list[str] | None = None,
    ) -> None:
        self.operator = operator
        self.valid_operators = sorted(valid_operators or [])
        self.suggestions = get_close_matches(
            operator.lstrip("|"), self.valid_operators, n=3, cutoff=0.6
        )

        message = f"Operator {operator} not supported!"
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_OPERATOR",
            "operator": self.operator,
            "suggestions": self.suggestions,
            "valid_operators": self.valid_operators,
        }


class NotFoundError(DatastoreAdapterError):
    """Raised when ``update`` targets a record that does not exist."""

    def __init__(self, kind: str, record_id: object) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} with id={record_id!r} not found")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "NOT_FOUND",
            "kind": self.kind,
            "id": self.record_id,
        }


class UnsupportedOperationError(DatastoreAdapterError):
    """The adapter refuses an operation it cannot perform on this backend."""


class UnsupportedRelationShapeError(UnsupportedOperationError):
    """
    Relation loading was requested in a shape the adapter will not resolve.

    Every relation costs extra round trips because the backend has no
    joins, so bulk (``find_all``) eager loading and ``foreignKeys``
    relations are rejected instead of fanning out.
    """

    def __init__(self, operation: str, relation_type: str, shape: str | None = None) -> None:
        self.operation = operation
        self.relation_type = relation_type
        self.shape = shape
        described = f"{relation_type} & {shape}" if shape else relation_type
        super().__init__(f"{operation} with {described} not supported!")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_RELATION_SHAPE",
            "operation": self.operation,
            "relation_type": self.relation_type,
            "shape": self.shape,
        }


class StorageError(DatastoreAdapterError):
    """Failure reported by the storage backend (network, permission, quota...)."""


class DatastoreConnectionError(StorageError):
    """Raised when the Datastore client cannot be created or is not connected."""
