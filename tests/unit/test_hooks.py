"""Tests for lifecycle hooks around adapter operations."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from cqrs_ddd_persistence_datastore import (
    CloudDatastoreAdapter,
    InMemoryDatastore,
    LifecycleHooks,
    Mapper,
)
from cqrs_ddd_persistence_datastore.hooks import call_hook, stage_name


class TestLifecycleHooks:
    def test_stage_names(self) -> None:
        assert stage_name("before", "find_all") == "beforeFindAll"
        assert stage_name("after", "create_many") == "afterCreateMany"

    def test_get_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            LifecycleHooks().get("around", "create")
        with pytest.raises(KeyError):
            LifecycleHooks().get("before", "upsert")

    @pytest.mark.asyncio
    async def test_call_hook_sync_and_async(self) -> None:
        async def async_hook(value: int) -> int:
            return value + 1

        assert await call_hook(lambda value: value * 2, 4) == 8
        assert await call_hook(async_hook, 4) == 5


@pytest.mark.asyncio
class TestAdapterHooks:
    async def test_before_create_replaces_props(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        async def stamp(mapper: Mapper, props: dict, opts: Any) -> dict:
            return {**props, "stamped": True}

        adapter = CloudDatastoreAdapter(datastore, hooks=LifecycleHooks(before_create=stamp))

        user = await adapter.create(user_mapper, {"name": "Ada"})

        assert user["stamped"] is True

    async def test_after_find_replaces_response(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        def redact(mapper: Mapper, record_id: Any, opts: Any, response: Any) -> Any:
            return {"id": record_id, "redacted": True}

        adapter = CloudDatastoreAdapter(datastore, hooks=LifecycleHooks(after_find=redact))
        user = await adapter.create(user_mapper, {"name": "Ada"})

        assert await adapter.find(user_mapper, user["id"]) == {
            "id": user["id"],
            "redacted": True,
        }

    async def test_none_result_keeps_response(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        calls: list[str] = []

        def record(*args: Any) -> None:
            calls.append(args[-2].op)

        adapter = CloudDatastoreAdapter(
            datastore, hooks=LifecycleHooks(after_create=record)
        )

        user = await adapter.create(user_mapper, {"name": "Ada"})

        assert user["name"] == "Ada"
        assert calls == ["afterCreate"]

    async def test_before_find_all_replaces_query(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        def only_active(mapper: Mapper, query: dict, opts: Any) -> dict:
            return {**query, "status": "active"}

        adapter = CloudDatastoreAdapter(
            datastore, hooks=LifecycleHooks(before_find_all=only_active)
        )
        await adapter.create_many(
            user_mapper, [{"status": "active"}, {"status": "banned"}]
        )

        assert [u["status"] for u in await adapter.find_all(user_mapper)] == ["active"]

    async def test_before_destroy_replaces_id(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        adapter = CloudDatastoreAdapter(datastore)
        keep, drop = await adapter.create_many(user_mapper, [{"n": 1}, {"n": 2}])
        adapter.hooks.before_destroy = lambda mapper, record_id, opts: drop["id"]

        await adapter.destroy(user_mapper, keep["id"])

        assert await adapter.find(user_mapper, keep["id"]) is not None
        assert await adapter.find(user_mapper, drop["id"]) is None

    async def test_hook_receives_stage_and_arguments(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        seen: list[tuple] = []

        def spy(*args: Any) -> None:
            seen.append((args[-1].op, args[1:-1]))

        adapter = CloudDatastoreAdapter(
            datastore, hooks=LifecycleHooks(before_update_all=spy)
        )

        await adapter.update_all(user_mapper, {"a": 1}, {"b": 2})

        assert seen == [("beforeUpdateAll", ({"a": 1}, {"b": 2}))]

    async def test_hook_exception_propagates(
        self, datastore: InMemoryDatastore, user_mapper: Mapper
    ) -> None:
        async def deny(*args: Any) -> None:
            raise PermissionError("read-only")

        adapter = CloudDatastoreAdapter(datastore, hooks=LifecycleHooks(before_create=deny))

        with pytest.raises(PermissionError, match="read-only"):
            await adapter.create(user_mapper, {"name": "Ada"})
        assert len(datastore) == 0

    async def test_default_hooks_log_at_debug(
        self,
        adapter: CloudDatastoreAdapter,
        user_mapper: Mapper,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="cqrs_ddd.datastore.hooks"):
            await adapter.find(user_mapper, 1)

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("beforeFind") for m in messages)
        assert any(m.startswith("afterFind") for m in messages)
