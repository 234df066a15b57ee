"""Shared fixtures: in-memory backend, mappers and adapter."""

from __future__ import annotations

import pytest

from cqrs_ddd_persistence_datastore import (
    CloudDatastoreAdapter,
    InMemoryDatastore,
    Mapper,
    RelationDefinition,
    RelationType,
)


@pytest.fixture
def tag_mapper() -> Mapper:
    return Mapper(name="tag")


@pytest.fixture
def profile_mapper() -> Mapper:
    return Mapper(name="profile")


@pytest.fixture
def mappers(tag_mapper: Mapper, profile_mapper: Mapper) -> dict[str, Mapper]:
    """``user`` and ``post`` reference each other, so ``related`` is lazy."""
    registry: dict[str, Mapper] = {"tag": tag_mapper, "profile": profile_mapper}
    registry["user"] = Mapper(
        name="user",
        relations=[
            RelationDefinition(
                type=RelationType.HAS_MANY,
                local_field="posts",
                foreign_key="user_id",
                related=lambda: registry["post"],
            ),
            RelationDefinition(
                type=RelationType.HAS_ONE,
                local_field="profile",
                foreign_key="user_id",
                related=profile_mapper,
            ),
            RelationDefinition(
                type=RelationType.HAS_MANY,
                local_field="tags",
                local_keys="tag_ids",
                related=tag_mapper,
            ),
            RelationDefinition(
                type=RelationType.HAS_MANY,
                local_field="groups",
                foreign_keys="member_ids",
                related=tag_mapper,
            ),
        ],
    )
    registry["post"] = Mapper(
        name="post",
        relations=[
            RelationDefinition(
                type=RelationType.BELONGS_TO,
                local_field="author",
                foreign_key="user_id",
                related=lambda: registry["user"],
            ),
        ],
    )
    return registry


@pytest.fixture
def user_mapper(mappers: dict[str, Mapper]) -> Mapper:
    return mappers["user"]


@pytest.fixture
def post_mapper(mappers: dict[str, Mapper]) -> Mapper:
    return mappers["post"]


@pytest.fixture
def datastore() -> InMemoryDatastore:
    return InMemoryDatastore()


@pytest.fixture
def adapter(datastore: InMemoryDatastore) -> CloudDatastoreAdapter:
    return CloudDatastoreAdapter(datastore)
