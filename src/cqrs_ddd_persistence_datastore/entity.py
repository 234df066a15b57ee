"""Key and Entity values exchanged with the storage backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Key:
    """
    Hierarchical key: ``path`` alternates kind and id.

    ``Key(("user", 42))`` is complete; ``Key(("user",))`` is *partial*
    (incomplete) and only usable for id allocation.
    """

    path: tuple[Any, ...]
    namespace: str | None = None

    @property
    def kind(self) -> str:
        if len(self.path) % 2:
            return str(self.path[-1])
        return str(self.path[-2])

    @property
    def id_or_name(self) -> Any:
        if self.is_partial:
            return None
        return self.path[-1]

    @property
    def is_partial(self) -> bool:
        return len(self.path) % 2 == 1

    def complete(self, id_or_name: Any) -> Key:
        """Return a copy of a partial key with ``id_or_name`` appended."""
        if not self.is_partial:
            raise ValueError(f"Key {self.path!r} is already complete")
        return Key((*self.path, id_or_name), namespace=self.namespace)


@dataclass
class Entity:
    """A stored record: its key plus the plain data mapping."""

    key: Key
    data: dict[str, Any] = field(default_factory=dict)
