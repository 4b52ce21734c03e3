"""Process-wide default handler registry."""

from __future__ import annotations

import threading
from typing import Iterable

from .handlers.base import ProgressHandler


class HandlerRegistry:
    """Ordered list of default handlers consulted at scope entry.

    Reads and writes copy the list, so a scope that has already been
    entered is never affected by later changes.
    """

    def __init__(self) -> None:
        self._handlers: list[ProgressHandler] = []
        self._lock = threading.Lock()

    def set_default_handlers(self, handlers: Iterable[ProgressHandler]) -> None:
        handlers = list(handlers)
        for h in handlers:
            if not isinstance(h, ProgressHandler):
                raise TypeError(f"{h!r} does not implement the progress handler interface")
        with self._lock:
            self._handlers = handlers

    def get_default_handlers(self) -> list[ProgressHandler]:
        with self._lock:
            return list(self._handlers)

    def reset(self) -> None:
        with self._lock:
            self._handlers = []

    def __len__(self) -> int:
        return len(self._handlers)


# Global registry
handler_registry = HandlerRegistry()


def set_default_handlers(handlers: Iterable[ProgressHandler]) -> None:
    """Replace the process-wide default handlers."""
    handler_registry.set_default_handlers(handlers)


def get_default_handlers() -> list[ProgressHandler]:
    """Return a copy of the process-wide default handlers."""
    return handler_registry.get_default_handlers()


def reset_default_handlers() -> None:
    handler_registry.reset()
