"""Response envelope returned by adapter operations in raw mode."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Response:
    """
    Result of one adapter operation.

    Exactly one of the counters is set, depending on ``op``: ``found`` for
    reads, ``created``, ``updated`` or ``deleted`` for writes.
    """

    data: Any = None
    op: str | None = None
    found: int | None = None
    created: int | None = None
    updated: int | None = None
    deleted: int | None = None
    api_response: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"data": self.data}
        for counter in ("found", "created", "updated", "deleted"):
            value = getattr(self, counter)
            if value is not None:
                result[counter] = value
        return result


def respond(response: Response, raw: bool) -> Any:
    """Return the whole envelope when ``raw``, otherwise only its data."""
    return response if raw else response.data
