"""Per-call configuration options."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .operators import FilterBuilder
    from .query import DatastoreQuery


@dataclass
class OperationOptions:
    """
    Options recognised by every adapter operation.

    Attributes:
        raw: Return the full :class:`~.response.Response` instead of just
            its data.  ``None`` falls back to the adapter setting.
        operators: Per-call filter-builder overrides.
        with_: Relations to eager load (``"with"`` in mapping form).
            ``"comments.author"`` loads ``comments`` and forwards ``author``.
        kind: Override the storage kind for this call.
        op: Name of the current lifecycle stage, stamped by the adapter.
        query: Pre-built backend query to extend instead of starting fresh.
        extra: Any other option, passed through untouched for hooks.
    """

    raw: bool | None = None
    operators: dict[str, FilterBuilder] = field(default_factory=dict)
    with_: list[str] = field(default_factory=list)
    kind: str | None = None
    op: str | None = None
    query: DatastoreQuery | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, opts: OptionsLike) -> OperationOptions:
        """Accept ``None``, a mapping or an existing instance (returned as-is)."""
        if opts is None:
            return cls()
        if isinstance(opts, cls):
            return opts
        data = dict(opts)
        if "with" in data:
            data["with_"] = data.pop("with")
        known = {f.name for f in fields(cls)}
        extra = {key: data.pop(key) for key in list(data) if key not in known}
        options = cls(**data)
        options.extra.update(extra)
        options.operators = dict(options.operators or {})
        options.with_ = list(options.with_ or [])
        return options

    def copy(self, **changes: Any) -> OperationOptions:
        """Return an independent copy with ``changes`` applied."""
        changes.setdefault("operators", dict(self.operators))
        changes.setdefault("with_", list(self.with_))
        changes.setdefault("extra", dict(self.extra))
        return replace(self, **changes)


OptionsLike = OperationOptions | Mapping[str, Any] | None
