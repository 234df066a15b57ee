"""Storage ports consumed by the adapter."""

from __future__ import annotations

from .datastore import IDatastore, IDatastoreTransaction

__all__ = ["IDatastore", "IDatastoreTransaction"]
