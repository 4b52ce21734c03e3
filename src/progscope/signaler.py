"""Signalers: callables that emit one progress event per call."""

from __future__ import annotations

import logging
import os
import threading
from typing import TYPE_CHECKING, Any

from .context import current_scope
from .errors import NoActiveScopeError
from .models import ProgressEvent

if TYPE_CHECKING:
    from .channel import ChannelEndpoint
    from .scope import ProgressScope

logger = logging.getLogger(__name__)


class Signaler:
    """Handle bound to one progress scope.

    Inside the coordinating process a call dispatches straight into the
    scope.  A pickled copy (e.g. one passed to a worker process) carries the
    scope's channel endpoint instead and sends its events through it.
    """

    def __init__(self, scope: "ProgressScope", signaler_id: str, total: int | None = None,
                 label: str | None = None) -> None:
        self._scope: ProgressScope | None = scope
        self._endpoint: ChannelEndpoint | None = None
        self._id = signaler_id
        self._total = total
        self._label = label
        self._count = 0
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self._id

    @property
    def total(self) -> int | None:
        return self._total

    @property
    def label(self) -> str | None:
        return self._label

    @property
    def count(self) -> int:
        """Events emitted through this handle (local to the process)."""
        return self._count

    def __call__(self, message: str | None = None, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        with self._lock:
            self._count += amount
            sequence = self._count
        event = ProgressEvent(signaler_id=self._id, amount=amount, message=message, sequence=sequence)

        if self._scope is not None:
            if self._scope.owner_pid != os.getpid():
                logger.debug(f"Signaler {self._id} was inherited by a forked process, event dropped")
                return
            self._scope.dispatch(event)
        elif self._endpoint is not None:
            self._endpoint.send(event)
        else:
            logger.debug(f"Signaler {self._id} has no scope or channel, event dropped")

    def __repr__(self) -> str:
        total = "?" if self._total is None else self._total
        return f"Signaler(id={self._id!r}, count={self._count}, total={total})"

    # ------------------------------------------------------------------
    # Pickling for worker processes
    # ------------------------------------------------------------------

    def __getstate__(self) -> dict[str, Any]:
        endpoint = self._endpoint
        if self._scope is not None:
            endpoint = self._scope.channel_endpoint()
        return {
            "id": self._id,
            "total": self._total,
            "label": self._label,
            "count": self._count,
            "endpoint": endpoint,
        }

    def __setstate__(self, state: dict[str, Any]) -> None:
        self._scope = None
        self._endpoint = state["endpoint"]
        self._id = state["id"]
        self._total = state["total"]
        self._label = state["label"]
        self._count = state["count"]
        self._lock = threading.Lock()


def create_signaler(steps: int | None = None, *, label: str | None = None,
                    weight: float = 1.0) -> Signaler:
    """Create a signaler in the scope active in this execution context.

    Raises:
        NoActiveScopeError: if no scope has been entered.
    """
    scope = current_scope()
    if scope is None:
        raise NoActiveScopeError()
    return scope.create_signaler(steps, label=label, weight=weight)


def signal(signaler: Signaler, message: str | None = None) -> None:
    """Emit one step-completed event through `signaler`."""
    signaler(message)
