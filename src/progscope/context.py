"""Tracks the progress scope active in the current execution context."""

from __future__ import annotations

import os
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scope import ProgressScope

# asyncio tasks copy this on creation; plain threads start without it
_active_scope: ContextVar["ProgressScope | None"] = ContextVar("progscope_active_scope", default=None)


def current_scope() -> "ProgressScope | None":
    """Return the open scope of this execution context, if any.

    A forked child inherits the variable but not the scope: its copy of the
    scope has no route back to the coordinator, so it counts as no scope.
    """
    scope = _active_scope.get()
    if scope is None or scope.closed or scope.owner_pid != os.getpid():
        return None
    return scope
