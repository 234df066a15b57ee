"""Google Cloud Datastore persistence for CQRS/DDD.

Includes the selection-query adapter (filter / sort / paginate / CRUD with
lifecycle hooks and relation loading), the Datastore client binding, and an
in-memory backend for tests.
"""

from __future__ import annotations

from .adapter import CloudDatastoreAdapter
from .adapters.memory import InMemoryDatastore, InMemoryTransaction
from .client import CloudDatastoreClient, CloudDatastoreTransaction
from .connection import DatastoreConnectionManager
from .entity import Entity, Key
from .exceptions import (
    DatastoreAdapterError,
    DatastoreConnectionError,
    NotFoundError,
    StorageError,
    UnsupportedOperationError,
    UnsupportedOperatorError,
    UnsupportedRelationShapeError,
)
from .hooks import LifecycleHooks
from .mapper import Mapper, RelationDefinition, RelationType
from .operators import OPERATORS, OperatorRegistry
from .options import OperationOptions
from .ports import IDatastore, IDatastoreTransaction
from .query import DatastoreQuery, PropertyFilter, PropertyOrder
from .query_builder import DatastoreQueryBuilder, normalize_query
from .response import Response
from .settings import DatastoreAdapterSettings

__all__ = [
    # Adapter
    "CloudDatastoreAdapter",
    "DatastoreAdapterSettings",
    "LifecycleHooks",
    "OperationOptions",
    "Response",
    # Mapping
    "Mapper",
    "RelationDefinition",
    "RelationType",
    # Queries
    "DatastoreQuery",
    "DatastoreQueryBuilder",
    "OPERATORS",
    "OperatorRegistry",
    "PropertyFilter",
    "PropertyOrder",
    "normalize_query",
    # Storage
    "CloudDatastoreClient",
    "CloudDatastoreTransaction",
    "DatastoreConnectionManager",
    "Entity",
    "IDatastore",
    "IDatastoreTransaction",
    "InMemoryDatastore",
    "InMemoryTransaction",
    "Key",
    # Exceptions
    "DatastoreAdapterError",
    "DatastoreConnectionError",
    "NotFoundError",
    "StorageError",
    "UnsupportedOperationError",
    "UnsupportedOperatorError",
    "UnsupportedRelationShapeError",
]
