"""
Relation loading for ``find`` results.

The backend has no joins, so every relation costs at least one extra round
trip.  Shapes that would fan out per result record (anything requested on
``find_all``) and ``foreignKeys`` relations are rejected up front.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from .exceptions import UnsupportedRelationShapeError
from .mapper import RelationType, for_each_relation
from .utils import get_path, set_path, unique

if TYPE_CHECKING:
    from .mapper import Mapper, RelationDefinition
    from .options import OperationOptions

logger = logging.getLogger("cqrs_ddd.datastore.relations")


class IRecordFinder(Protocol):
    async def find(self, mapper: Mapper, record_id: Any, opts: Any = None) -> Any: ...

    async def find_all(
        self, mapper: Mapper, query: Mapping[str, Any] | None = None, opts: Any = None
    ) -> Any: ...


def _shape(definition: RelationDefinition) -> str | None:
    if definition.foreign_key:
        return None
    if definition.local_keys:
        return "localKeys"
    return "foreignKeys"


def _selected(
    mapper: Mapper, opts: OperationOptions
) -> list[tuple[RelationDefinition, OperationOptions]]:
    selected: list[tuple[RelationDefinition, OperationOptions]] = []
    for_each_relation(
        mapper, opts, lambda definition, sub_opts: selected.append((definition, sub_opts))
    )
    return selected


class RelationLoader:
    """Resolves the relations selected by ``opts.with_`` for one record."""

    def __init__(self, finder: IRecordFinder) -> None:
        self._finder = finder

    def ensure_bulk_supported(self, mapper: Mapper, opts: OperationOptions) -> None:
        """Raise if any relation is requested for a multi-record result."""
        selected = _selected(mapper, opts)
        if selected:
            definition = selected[0][0]
            shape = None
            if definition.type is not RelationType.BELONGS_TO:
                shape = _shape(definition)
            raise UnsupportedRelationShapeError("findAll", definition.type.value, shape)

    def ensure_single_supported(self, mapper: Mapper, opts: OperationOptions) -> None:
        """Raise if a selected relation cannot be resolved for one record."""
        for definition, _ in _selected(mapper, opts):
            if definition.foreign_key:
                continue
            if definition.type is RelationType.HAS_MANY and definition.local_keys:
                continue
            raise UnsupportedRelationShapeError(
                "find", definition.type.value, _shape(definition)
            )

    async def load(
        self,
        mapper: Mapper,
        record: dict[str, Any] | None,
        opts: OperationOptions,
    ) -> None:
        """Attach every selected relation of ``record`` under its ``local_field``.

        Shapes must already be checked with :meth:`ensure_single_supported`.
        """
        selected = _selected(mapper, opts)
        if record is None or not selected:
            return
        logger.debug(
            "Loading relations %s for %s",
            [definition.local_field for definition, _ in selected],
            mapper.name,
        )
        await asyncio.gather(
            *(
                self._load_one(mapper, definition, record, sub_opts)
                for definition, sub_opts in selected
            )
        )

    async def _load_one(
        self,
        mapper: Mapper,
        definition: RelationDefinition,
        record: dict[str, Any],
        opts: OperationOptions,
    ) -> None:
        if definition.type is RelationType.BELONGS_TO:
            await self.load_belongs_to(definition, record, opts)
        elif definition.foreign_key:
            await self.load_has_many_or_one(mapper, definition, record, opts)
        else:
            await self.load_local_keys(definition, record, opts)

    async def load_belongs_to(
        self,
        definition: RelationDefinition,
        record: dict[str, Any],
        opts: OperationOptions,
    ) -> None:
        foreign_id = get_path(record, definition.foreign_key or "")
        if foreign_id is None:
            return
        related = await self._finder.find(definition.get_relation(), foreign_id, opts)
        set_path(record, definition.local_field, related)

    async def load_has_many_or_one(
        self,
        mapper: Mapper,
        definition: RelationDefinition,
        record: dict[str, Any],
        opts: OperationOptions,
    ) -> None:
        related_items = await self._finder.find_all(
            definition.get_relation(),
            {definition.foreign_key or "": get_path(record, mapper.id_attribute)},
            opts,
        )
        if definition.type is RelationType.HAS_ONE:
            if related_items:
                set_path(record, definition.local_field, related_items[0])
        else:
            set_path(record, definition.local_field, list(related_items))

    async def load_local_keys(
        self,
        definition: RelationDefinition,
        record: dict[str, Any],
        opts: OperationOptions,
    ) -> None:
        item_keys = get_path(record, definition.local_keys or "") or []
        if isinstance(item_keys, Mapping):
            item_keys = list(item_keys.keys())
        ids = [key for key in unique(item_keys) if key]
        related_mapper = definition.get_relation()
        found = await asyncio.gather(
            *(self._finder.find(related_mapper, key, opts.copy()) for key in ids)
        )
        set_path(
            record,
            definition.local_field,
            [item for item in found if item is not None],
        )
