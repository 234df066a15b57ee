"""Store-agnostic CRUD over a Datastore-style backend."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .entity import Entity
from .exceptions import NotFoundError
from .hooks import LifecycleHooks, call_hook, stage_name
from .operators import OPERATORS, OperatorRegistry
from .options import OperationOptions
from .query_builder import DatastoreQueryBuilder
from .relations import RelationLoader
from .response import Response, respond
from .settings import DatastoreAdapterSettings
from .utils import deep_mix_in, get_path, set_path, without_relations

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .entity import Key
    from .mapper import Mapper
    from .operators import FilterBuilder
    from .options import OptionsLike
    from .ports import IDatastore
    from .query import DatastoreQuery

logger = logging.getLogger("cqrs_ddd.datastore.adapter")


class CloudDatastoreAdapter:
    """
    Runs filter / sort / paginate queries and CRUD operations for mappers
    against an :class:`~.ports.IDatastore`.

    Usage::

        adapter = CloudDatastoreAdapter(CloudDatastoreClient(connection))
        user = await adapter.create(user_mapper, {"name": "Ada"})
        adults = await adapter.find_all(
            user_mapper, {"where": {"age": {">=": 18}}, "orderBy": "name"}
        )

    Every operation runs ``before<Op>`` / ``after<Op>`` hooks from
    :class:`~.hooks.LifecycleHooks` and returns only the record data unless
    ``raw`` is set, in which case the whole :class:`~.response.Response`
    is returned.
    """

    OPERATORS = OPERATORS

    def __init__(
        self,
        datastore: IDatastore,
        *,
        settings: DatastoreAdapterSettings | None = None,
        hooks: LifecycleHooks | None = None,
        query_builder: DatastoreQueryBuilder | None = None,
        **overrides: Any,
    ) -> None:
        if settings is None:
            settings = DatastoreAdapterSettings(**overrides)
        elif overrides:
            settings = settings.model_copy(update=overrides)
        self._datastore = datastore
        self.settings = settings
        self.hooks = hooks or LifecycleHooks()
        self._query_builder = query_builder or DatastoreQueryBuilder(
            OperatorRegistry(settings.operators)
        )
        self._relations = RelationLoader(self)

    @property
    def datastore(self) -> IDatastore:
        return self._datastore

    # -- helpers ---------------------------------------------------------------

    def _dbg(self, message: str, *args: Any) -> None:
        if self.settings.debug:
            logger.debug(message, *args)

    def get_kind(self, mapper: Mapper, opts: OptionsLike = None) -> str:
        """Resolve the storage kind: call option, then ``mapper.kind``, then name."""
        opts = OperationOptions.coerce(opts)
        if opts.kind is not None:
            return opts.kind
        if mapper.kind is not None:
            return mapper.kind
        return mapper.name

    def get_operator(
        self, operator: str, opts: OptionsLike = None
    ) -> FilterBuilder | None:
        """Resolve the filter builder for ``operator`` (call > instance > default)."""
        opts = OperationOptions.coerce(opts)
        return self._query_builder.registry.resolve(operator, opts.operators)

    def get_opt(self, name: str, opts: OptionsLike = None) -> Any:
        """Return the call option ``name``, falling back to the adapter setting."""
        opts = OperationOptions.coerce(opts)
        value = getattr(opts, name, None)
        if value is None:
            value = getattr(self.settings, name, None)
        return value

    def filter_query(
        self,
        mapper: Mapper,
        query: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> DatastoreQuery:
        """Apply a selection query to ``opts.query`` or a fresh query on the kind."""
        opts = OperationOptions.coerce(opts)
        handle = opts.query or self._datastore.query(self.get_kind(mapper, opts))
        return self._query_builder.build(query, handle, opts.operators)

    def _key(self, mapper: Mapper, opts: OperationOptions, record_id: Any) -> Key:
        return self._datastore.key(self.get_kind(mapper, opts), record_id)

    def _to_record(self, mapper: Mapper, entity: Entity) -> dict[str, Any]:
        record = dict(entity.data)
        if get_path(record, mapper.id_attribute) is None and not entity.key.is_partial:
            set_path(record, mapper.id_attribute, entity.key.id_or_name)
        return record

    def _respond(self, response: Response, opts: OperationOptions) -> Any:
        return respond(response, bool(self.get_opt("raw", opts)))

    @staticmethod
    def _internal_opts(opts: OperationOptions) -> OperationOptions:
        """Options for reads an operation issues on its own behalf."""
        return OperationOptions(
            raw=False, kind=opts.kind, operators=dict(opts.operators)
        )

    async def _before(
        self, operation: str, mapper: Mapper, *args: Any, opts: OperationOptions
    ) -> Any:
        opts.op = stage_name("before", operation)
        self._dbg("%s %s", opts.op, mapper.name)
        return await call_hook(self.hooks.get("before", operation), mapper, *args, opts)

    async def _after(
        self,
        operation: str,
        mapper: Mapper,
        *args: Any,
        opts: OperationOptions,
        response: Any,
    ) -> Any:
        opts.op = stage_name("after", operation)
        self._dbg("%s %s", opts.op, mapper.name)
        replacement = await call_hook(
            self.hooks.get("after", operation), mapper, *args, opts, response
        )
        return response if replacement is None else replacement

    # -- create ----------------------------------------------------------------

    async def _create(
        self,
        mapper: Mapper,
        records: list[Mapping[str, Any]],
        opts: OperationOptions,
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Allocate ids and save ``records`` in one transaction."""
        prepared = [without_relations(mapper, record) for record in records]
        if not prepared:
            return {}, []
        incomplete_key = self._datastore.key(self.get_kind(mapper, opts))
        async with self._datastore.transaction() as transaction:
            keys = await transaction.allocate_ids(incomplete_key, len(prepared))
            entities = []
            for record, key in zip(prepared, keys):
                set_path(record, mapper.id_attribute, key.id_or_name)
                entities.append(Entity(key=key, data=record))
            api_response = await transaction.save(entities)
        self._dbg("Created %d %s record(s)", len(prepared), mapper.name)
        return dict(api_response or {}), prepared

    async def create(
        self,
        mapper: Mapper,
        props: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Create a new record."""
        props = props or {}
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("create", mapper, props, opts=opts)
        props = props if replacement is None else replacement

        api_response, records = await self._create(mapper, [props], opts)
        record = records[0] if records else None
        response = Response(
            data=record,
            op="create",
            created=1 if record else 0,
            api_response=api_response,
        )
        return await self._after(
            "create", mapper, props, opts=opts, response=self._respond(response, opts)
        )

    async def create_many(
        self,
        mapper: Mapper,
        props: list[Mapping[str, Any]] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Create multiple records in a single transaction."""
        props = list(props or [])
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("create_many", mapper, props, opts=opts)
        props = props if replacement is None else list(replacement)

        api_response, records = await self._create(mapper, props, opts)
        response = Response(
            data=records,
            op="create_many",
            created=len(records),
            api_response=api_response,
        )
        return await self._after(
            "create_many",
            mapper,
            props,
            opts=opts,
            response=self._respond(response, opts),
        )

    # -- read ------------------------------------------------------------------

    async def find(
        self,
        mapper: Mapper,
        record_id: Any,
        opts: OptionsLike = None,
    ) -> Any:
        """Retrieve the record with the given primary key, or ``None``."""
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("find", mapper, record_id, opts=opts)
        record_id = record_id if replacement is None else replacement

        self._relations.ensure_single_supported(mapper, opts)
        entity = await self._datastore.get(self._key(mapper, opts, record_id))
        record = self._to_record(mapper, entity) if entity is not None else None
        await self._relations.load(mapper, record, opts)

        response = Response(data=record, op="find", found=1 if record else 0)
        return await self._after(
            "find", mapper, record_id, opts=opts, response=self._respond(response, opts)
        )

    async def find_all(
        self,
        mapper: Mapper,
        query: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Retrieve the records matching the selection ``query``."""
        query = query or {}
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("find_all", mapper, query, opts=opts)
        query = query if replacement is None else replacement

        self._relations.ensure_bulk_supported(mapper, opts)
        handle = self.filter_query(mapper, query, opts)
        self._dbg("Running query %s", handle.to_dict())
        entities = await self._datastore.run_query(handle)
        records = [self._to_record(mapper, entity) for entity in entities or []]

        response = Response(data=records, op="find_all", found=len(records))
        return await self._after(
            "find_all", mapper, query, opts=opts, response=self._respond(response, opts)
        )

    # -- update ----------------------------------------------------------------

    async def _update(
        self,
        mapper: Mapper,
        records: list[dict[str, Any]],
        props: list[Mapping[str, Any]],
        opts: OperationOptions,
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Merge ``props[i]`` into ``records[i]`` and save them in one batch.

        Records without an id are skipped.
        """
        entities: list[Entity] = []
        updated: list[dict[str, Any]] = []
        for record, record_props in zip(records, props):
            record_id = get_path(record, mapper.id_attribute)
            if record_id is None:
                continue
            deep_mix_in(record, record_props)
            entities.append(
                Entity(
                    key=self._key(mapper, opts, record_id),
                    data=without_relations(mapper, record),
                )
            )
            updated.append(record)
        if not entities:
            return {}, []
        api_response = await self._datastore.save(entities)
        self._dbg("Updated %d %s record(s)", len(entities), mapper.name)
        return dict(api_response or {}), updated

    async def update(
        self,
        mapper: Mapper,
        record_id: Any,
        props: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Merge ``props`` into the stored record.

        Raises:
            NotFoundError: If no record has the given primary key.
        """
        props = props or {}
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("update", mapper, record_id, props, opts=opts)
        props = props if replacement is None else replacement

        record = await self.find(mapper, record_id, self._internal_opts(opts))
        if record is None:
            raise NotFoundError(self.get_kind(mapper, opts), record_id)
        api_response, records = await self._update(mapper, [record], [props], opts)

        response = Response(
            data=records[0] if records else record,
            op="update",
            updated=1,
            api_response=api_response,
        )
        return await self._after(
            "update",
            mapper,
            record_id,
            props,
            opts=opts,
            response=self._respond(response, opts),
        )

    async def update_all(
        self,
        mapper: Mapper,
        props: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Merge ``props`` into every record matching ``query``."""
        props = props or {}
        query = query or {}
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("update_all", mapper, props, query, opts=opts)
        props = props if replacement is None else replacement

        records = await self.find_all(mapper, query, self._internal_opts(opts))
        api_response: dict[str, Any] = {}
        if records:
            api_response, records = await self._update(
                mapper, records, [props] * len(records), opts
            )

        response = Response(
            data=records,
            op="update_all",
            updated=len(records),
            api_response=api_response,
        )
        return await self._after(
            "update_all",
            mapper,
            props,
            query,
            opts=opts,
            response=self._respond(response, opts),
        )

    async def update_many(
        self,
        mapper: Mapper,
        records: list[Mapping[str, Any]] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Update the given records in a single batch.

        Each record is re-fetched by id first and merged into the stored
        state; records without an id, or no longer stored, are skipped.
        """
        records = list(records or [])
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("update_many", mapper, records, opts=opts)
        records = records if replacement is None else list(replacement)

        id_attribute = mapper.id_attribute
        with_ids = [r for r in records if get_path(r, id_attribute) is not None]
        current = await asyncio.gather(
            *(
                self.find(mapper, get_path(r, id_attribute), self._internal_opts(opts))
                for r in with_ids
            )
        )
        pairs = [
            (stored, record)
            for stored, record in zip(current, with_ids)
            if stored is not None
        ]

        api_response: dict[str, Any] = {}
        updated: list[dict[str, Any]] = []
        if pairs:
            api_response, updated = await self._update(
                mapper,
                [stored for stored, _ in pairs],
                [record for _, record in pairs],
                opts,
            )

        response = Response(
            data=updated,
            op="update_many",
            updated=len(updated),
            api_response=api_response,
        )
        return await self._after(
            "update_many",
            mapper,
            records,
            opts=opts,
            response=self._respond(response, opts),
        )

    # -- destroy ---------------------------------------------------------------

    async def destroy(
        self,
        mapper: Mapper,
        record_id: Any,
        opts: OptionsLike = None,
    ) -> Any:
        """Destroy the record with the given primary key."""
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("destroy", mapper, record_id, opts=opts)
        record_id = record_id if replacement is None else replacement

        api_response = dict(
            await self._datastore.delete(self._key(mapper, opts, record_id)) or {}
        )
        response = Response(
            data=None,
            op="destroy",
            deleted=1 if api_response.get("deleted") else 0,
            api_response=api_response,
        )
        return await self._after(
            "destroy",
            mapper,
            record_id,
            opts=opts,
            response=self._respond(response, opts),
        )

    async def destroy_all(
        self,
        mapper: Mapper,
        query: Mapping[str, Any] | None = None,
        opts: OptionsLike = None,
    ) -> Any:
        """Destroy the records matching the selection ``query``.

        ``deleted`` counts the records matched before the delete call.
        """
        query = query or {}
        opts = OperationOptions.coerce(opts)

        replacement = await self._before("destroy_all", mapper, query, opts=opts)
        query = query if replacement is None else replacement

        handle = opts.query or self._datastore.query(self.get_kind(mapper, opts))
        handle = self._query_builder.build(query, handle.keys_only(), opts.operators)
        entities = await self._datastore.run_query(handle)
        keys = [entity.key for entity in entities or []]

        api_response: dict[str, Any] = {}
        if keys:
            api_response = dict(await self._datastore.delete(keys) or {})
        self._dbg("Destroyed %d %s record(s)", len(keys), mapper.name)

        response = Response(
            data=None,
            op="destroy_all",
            deleted=len(keys),
            api_response=api_response,
        )
        return await self._after(
            "destroy_all",
            mapper,
            query,
            opts=opts,
            response=self._respond(response, opts),
        )
