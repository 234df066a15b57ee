"""
Mapper metadata consumed by the adapter.

A :class:`Mapper` describes one record kind: its name, optional storage
kind override, primary-key attribute and declared relations.  Mappers are
read-only to the adapter; the host application owns them.

Mutually-referencing mappers declare ``related`` lazily::

    user = Mapper(
        name="user",
        relations=[
            RelationDefinition(
                type=RelationType.HAS_MANY,
                local_field="posts",
                foreign_key="user_id",
                related=lambda: post,
            )
        ],
    )
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from .options import OperationOptions


class RelationType(str, Enum):
    BELONGS_TO = "belongsTo"
    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"


class RelationDefinition(BaseModel):
    """
    One declared relation.

    Attributes:
        type: ``belongsTo``, ``hasOne`` or ``hasMany``.
        local_field: Field of the owning record where related data is attached.
        foreign_key: Field pointing at the other side's id.  For
            ``belongsTo`` it lives on the owning record; for ``hasOne`` /
            ``hasMany`` it lives on the related records.
        local_keys: Field of the owning record holding a list (or a mapping
            keyed by id) of related ids.
        foreign_keys: Field of the related records holding a list of owner ids.
        related: The related :class:`Mapper`, or a zero-argument callable
            returning it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: RelationType
    local_field: str
    foreign_key: str | None = None
    local_keys: str | None = None
    foreign_keys: str | None = None
    related: Mapper | Callable[[], Mapper]

    @model_validator(mode="after")
    def _check_keys(self) -> RelationDefinition:
        if not (self.foreign_key or self.local_keys or self.foreign_keys):
            raise ValueError(
                f"Relation '{self.local_field}' needs one of "
                "foreign_key, local_keys or foreign_keys"
            )
        return self

    def get_relation(self) -> Mapper:
        """Resolve the related mapper."""
        if isinstance(self.related, Mapper):
            return self.related
        return self.related()

    @property
    def relation(self) -> str:
        """Name of the related mapper."""
        return self.get_relation().name


class Mapper(BaseModel):
    """Schema descriptor for one record kind."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    kind: str | None = None
    id_attribute: str = "id"
    relation_fields: list[str] | None = None
    relations: list[RelationDefinition] = Field(default_factory=list)

    def get_relation_fields(self) -> list[str]:
        """Fields stripped before writes; defaults to every relation's local field."""
        if self.relation_fields is not None:
            return list(self.relation_fields)
        return [definition.local_field for definition in self.relations]


RelationDefinition.model_rebuild()


def _selection(names: list[str], definition: RelationDefinition) -> tuple[bool, list[str]]:
    """Return whether ``definition`` is selected and the nested selections."""
    aliases = {definition.local_field, definition.relation}
    selected = False
    nested: list[str] = []
    for name in names:
        head, _, rest = name.partition(".")
        if head in aliases:
            selected = True
            if rest:
                nested.append(rest)
    return selected, nested


def for_each_relation(
    mapper: Mapper,
    opts: OperationOptions,
    visitor: Callable[[RelationDefinition, OperationOptions], Any],
) -> None:
    """
    Call ``visitor(definition, relation_opts)`` for each relation selected
    by ``opts.with_``.

    ``relation_opts`` is a copy of ``opts`` with ``raw`` off and ``with_``
    narrowed to the nested selections for that relation.  A call-level
    ``kind`` applies to the primary mapper only, so it is cleared.
    """
    if not opts.with_:
        return
    for definition in mapper.relations:
        selected, nested = _selection(opts.with_, definition)
        if not selected:
            continue
        visitor(
            definition,
            opts.copy(raw=False, with_=nested, op=None, query=None, kind=None),
        )
