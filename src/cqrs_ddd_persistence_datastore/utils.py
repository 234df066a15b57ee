"""
Record helpers: dotted-path access, deep merge and relation stripping.

Records are plain ``dict[str, Any]`` mappings; nested fields are addressed
with dot-notation (``"profile.city"``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .mapper import Mapper


def get_path(record: Mapping[str, Any] | None, path: str) -> Any:
    """Resolve a dot-separated path on ``record``; missing parts give ``None``."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def set_path(record: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dot-separated path, creating intermediate dicts."""
    parts = path.split(".")
    current = record
    for part in parts[:-1]:
        nested = current.get(part)
        if not isinstance(nested, dict):
            nested = {}
            current[part] = nested
        current = nested
    current[parts[-1]] = value


def deep_mix_in(target: dict[str, Any], source: Mapping[str, Any] | None) -> dict[str, Any]:
    """Recursively merge ``source`` into ``target`` in place and return it.

    Nested mappings are merged key by key; any other value replaces the
    existing one.
    """
    for key, value in (source or {}).items():
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            deep_mix_in(existing, value)
        elif isinstance(value, Mapping):
            target[key] = deep_mix_in({}, value)
        else:
            target[key] = value
    return target


def without_relations(mapper: Mapper, props: Mapping[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of ``props`` without the mapper's relation fields."""
    relation_fields = set(mapper.get_relation_fields())
    return {key: value for key, value in props.items() if key not in relation_fields}


def unique(values: Iterable[Any]) -> list[Any]:
    """De-duplicate ``values`` keeping first-seen order."""
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
