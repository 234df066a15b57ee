"""Adapter-wide configuration."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DatastoreAdapterSettings(BaseModel):
    """
    Defaults applied when a call does not override them.

    Attributes:
        debug: Emit DEBUG-level tracing for every operation.
        raw: Return full :class:`~.response.Response` envelopes by default.
        operators: Instance-level filter-builder overrides, keyed by operator
            symbol.  Per-call ``operators`` take precedence over these.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    debug: bool = False
    raw: bool = False
    operators: dict[str, Callable[..., Any]] = Field(default_factory=dict)
