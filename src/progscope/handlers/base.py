"""Handler protocol and base renderer interface."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Protocol, runtime_checkable

from ..models import AggregateState, ProgressEvent
from ..rate_limit import TokenBucket

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressHandler(Protocol):
    """Protocol for progress sinks."""

    @property
    def name(self) -> str:
        """Handler name."""
        ...

    def start(self, state: AggregateState) -> None:
        """Called once when a scope using this handler is entered."""
        ...

    def handle(self, event: ProgressEvent, state: AggregateState) -> None:
        """Receive one event together with the updated aggregate."""
        ...

    def finalize(self, state: AggregateState) -> None:
        """Called once when the scope exits, on every exit path."""
        ...


class BaseHandler(ABC):
    """Base class for handlers with throttling and error isolation.

    Subclasses implement :meth:`render` and optionally :meth:`on_start` and
    :meth:`close`.  :meth:`handle` only renders when the token bucket
    permits; otherwise the latest event is kept as pending and rendered on
    the next permitted call or at :meth:`finalize`.  Exceptions raised by
    the hooks are logged and swallowed so a broken output can never abort
    the computation being reported on.
    """

    def __init__(self, min_interval: float = 0.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval = min_interval
        self.logger = logging.getLogger(f"progscope.handlers.{self.name}")
        self._clock = clock
        self._bucket = TokenBucket.from_interval(min_interval, clock=clock)
        self._lock = threading.RLock()
        self._pending: tuple[ProgressEvent, AggregateState] | None = None
        self._failures = 0
        self.renders = 0
        self.active = False
        self.finalized = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        ...

    def on_start(self, state: AggregateState) -> None:
        """Default: nothing to set up."""

    def close(self, state: AggregateState) -> None:
        """Default: nothing to tear down."""

    # ------------------------------------------------------------------
    # Lifecycle driven by the scope
    # ------------------------------------------------------------------

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def failures(self) -> int:
        return self._failures

    def start(self, state: AggregateState) -> None:
        with self._lock:
            self._bucket = TokenBucket.from_interval(self.min_interval, clock=self._clock)
            self._pending = None
            self.renders = 0
            self.active = True
            self.finalized = False
            self._call("on_start", self.on_start, state)

    def handle(self, event: ProgressEvent, state: AggregateState) -> None:
        with self._lock:
            if not self.active:
                return
            if not self._bucket.try_acquire():
                self._pending = (event, state)
                return
            self._pending = None
            self._render(event, state)

    def finalize(self, state: AggregateState) -> None:
        with self._lock:
            if not self.active:
                return
            pending, self._pending = self._pending, None
            if pending is not None:
                self._render(pending[0], state)
            self.active = False
            self.finalized = True
            self._call("close", self.close, state)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _render(self, event: ProgressEvent, state: AggregateState) -> None:
        if self._call("render", self.render, event, state):
            self.renders += 1

    def _call(self, hook: str, fn: Callable[..., None], *args) -> bool:
        try:
            fn(*args)
            return True
        except Exception:
            self._failures += 1
            if self._failures == 1:
                self.logger.exception(f"Handler '{self.name}' failed in {hook}()")
            else:
                self.logger.debug(f"Handler '{self.name}' failed in {hook}() "
                                  f"({self._failures} failures)", exc_info=True)
            return False
