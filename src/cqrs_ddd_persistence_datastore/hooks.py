"""
Lifecycle hooks around adapter operations.

Every public operation runs ``before<Op> -> <Op> -> after<Op>``.  The hook
table is a plain dataclass of named callables; the defaults only log::

    async def stamp_created_at(mapper, props, opts):
        return {**props, "created_at": utcnow()}

    hooks = LifecycleHooks(before_create=stamp_created_at)
    adapter = CloudDatastoreAdapter(datastore, hooks=hooks)

Before-hooks receive ``(mapper, *args, opts)`` and may return a
replacement for the operation's primary argument (props, records, id or
query).  After-hooks receive ``(mapper, *args, opts, response)`` and may
return a replacement response.  Returning ``None`` keeps the original.
Hooks may be plain functions or coroutines.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("cqrs_ddd.datastore.hooks")

Hook = Callable[..., Any]

#: Operation name -> camel-case stage suffix used in ``opts.op``.
OPERATIONS: dict[str, str] = {
    "create": "Create",
    "create_many": "CreateMany",
    "destroy": "Destroy",
    "destroy_all": "DestroyAll",
    "find": "Find",
    "find_all": "FindAll",
    "update": "Update",
    "update_all": "UpdateAll",
    "update_many": "UpdateMany",
}


def noop_before(*args: Any) -> None:
    """Default before-hook: log and keep the original argument."""
    opts = args[-1]
    logger.debug("%s %r", getattr(opts, "op", None), args[:-1])


def noop_after(*args: Any) -> None:
    """Default after-hook: log and keep the computed response."""
    opts = args[-2]
    logger.debug("%s %r", getattr(opts, "op", None), args[-1])


@dataclass
class LifecycleHooks:
    before_create: Hook = noop_before
    after_create: Hook = noop_after
    before_create_many: Hook = noop_before
    after_create_many: Hook = noop_after
    before_destroy: Hook = noop_before
    after_destroy: Hook = noop_after
    before_destroy_all: Hook = noop_before
    after_destroy_all: Hook = noop_after
    before_find: Hook = noop_before
    after_find: Hook = noop_after
    before_find_all: Hook = noop_before
    after_find_all: Hook = noop_after
    before_update: Hook = noop_before
    after_update: Hook = noop_after
    before_update_all: Hook = noop_before
    after_update_all: Hook = noop_after
    before_update_many: Hook = noop_before
    after_update_many: Hook = noop_after

    def get(self, stage: str, operation: str) -> Hook:
        """Return the hook for ``stage`` (``before``/``after``) of ``operation``."""
        if stage not in ("before", "after") or operation not in OPERATIONS:
            raise KeyError(f"Unknown lifecycle hook: {stage}_{operation}")
        hook: Hook = getattr(self, f"{stage}_{operation}")
        return hook


def stage_name(stage: str, operation: str) -> str:
    """``stage_name("before", "find_all") == "beforeFindAll"``."""
    return f"{stage}{OPERATIONS[operation]}"


async def call_hook(hook: Hook, *args: Any) -> Any:
    """Invoke ``hook`` and wait for it when it returns an awaitable."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
