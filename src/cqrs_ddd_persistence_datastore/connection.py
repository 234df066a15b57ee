"""DatastoreConnectionManager — google-cloud-datastore client lifecycle."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from .exceptions import DatastoreConnectionError

if TYPE_CHECKING:
    from google.cloud.datastore import Client


class DatastoreConnectionManager:
    """Wrap the Datastore client with lifecycle and health-check helpers.

    ``project`` defaults to the environment the Google client library
    detects (``GOOGLE_CLOUD_PROJECT``, the emulator, or ADC).
    """

    def __init__(
        self,
        project: str | None = None,
        *,
        namespace: str | None = None,
        database: str | None = None,
        credentials: Any = None,
        **kwargs: Any,
    ) -> None:
        self._project = project
        self._namespace = namespace
        self._database = database
        self._credentials = credentials
        self._kwargs = kwargs
        self._client: Client | None = None

    @property
    def namespace(self) -> str | None:
        return self._namespace

    async def connect(self) -> Client:
        """Create and cache the Datastore client. Idempotent."""
        if self._client is not None:
            return self._client
        try:
            from google.cloud import datastore
        except ImportError as e:
            raise DatastoreConnectionError(
                "google-cloud-datastore is required; "
                "install with google-cloud-datastore>=2.15"
            ) from e
        kwargs = dict(self._kwargs)
        if self._database is not None:
            kwargs["database"] = self._database
        try:
            self._client = datastore.Client(
                project=self._project,
                namespace=self._namespace,
                credentials=self._credentials,
                **kwargs,
            )
            return self._client
        except Exception as e:
            raise DatastoreConnectionError(str(e)) from e

    @property
    def client(self) -> Client:
        """Return the Datastore client; raises if not connected."""
        if self._client is None:
            raise DatastoreConnectionError("Not connected; call connect() first")
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    async def health_check(self) -> bool:
        """Run a one-entity keys-only query; return True if the backend answers."""
        if self._client is None:
            return False
        client = self._client
        try:
            query = client.query(kind="__kind__")
            query.keys_only()
            await asyncio.to_thread(lambda: list(query.fetch(limit=1)))
            return True
        except Exception:  # noqa: BLE001
            return False
