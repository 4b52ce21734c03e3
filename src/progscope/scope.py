"""Progress scopes: collect signaler events and dispatch them to handlers."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import uuid
from typing import Iterable

from .aggregation import Aggregator, get_strategy
from .channel import ChannelEndpoint, ProgressChannel
from .config import Settings, get_settings
from .context import _active_scope, current_scope
from .errors import NoActiveScopeError, ScopeAlreadyActiveError
from .handlers import build_handlers
from .handlers.base import ProgressHandler
from .models import AggregateState, AggregationStrategy, ProgressEvent, SignalerState
from .registry import get_default_handlers
from .signaler import Signaler

logger = logging.getLogger(__name__)


class ProgressScope:
    """Dynamic extent in which signalers are valid.

    Use as a context manager (``with`` or ``async with``).  Only one scope
    may be open per execution context; entering a second one raises
    :class:`ScopeAlreadyActiveError`.  Every exit path drains pending
    cross-process events and finalizes all handlers.

    Handlers are resolved at entry: the explicit ``handlers`` argument if
    given, else a copy of the registry defaults, else the handlers named in
    ``config.default_handlers``.
    """

    def __init__(
        self,
        handlers: Iterable[ProgressHandler] | None = None,
        *,
        strategy: Aggregator | AggregationStrategy | str | None = None,
        config: Settings | None = None,
        label: str | None = None,
    ) -> None:
        self.config = config or get_settings()
        self._explicit_handlers = list(handlers) if handlers is not None else None
        self.strategy = get_strategy(strategy if strategy is not None else self.config.strategy)
        self.label = label
        self.handlers: list[ProgressHandler] = []

        self._lock = threading.RLock()
        self._signalers: dict[str, SignalerState] = {}
        self._events = 0
        self._message: str | None = None
        self._state = AggregateState(label=label)
        self._channel: ProgressChannel | None = None
        self._token = None
        self._entered = False
        self._closed = False
        self.owner_pid: int | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> AggregateState:
        return self._state

    @property
    def events_received(self) -> int:
        return self._events

    @property
    def signalers(self) -> list[SignalerState]:
        with self._lock:
            return list(self._signalers.values())

    @property
    def active(self) -> bool:
        return self._entered and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Entry / exit
    # ------------------------------------------------------------------

    def _resolve_handlers(self) -> list[ProgressHandler]:
        if self._explicit_handlers is not None:
            return list(self._explicit_handlers)
        defaults = get_default_handlers()
        if defaults:
            return defaults
        return list(build_handlers(self.config.default_handlers, self.config))

    def open(self) -> "ProgressScope":
        if self._entered:
            raise ScopeAlreadyActiveError("A progress scope can only be entered once")
        if current_scope() is not None:
            raise ScopeAlreadyActiveError(
                "A progress scope is already active in this context; nested scopes are not supported"
            )
        self._entered = True
        self.owner_pid = os.getpid()
        self.handlers = self._resolve_handlers()
        self._token = _active_scope.set(self)
        for handler in self.handlers:
            self._invoke(handler, "start", self._state)
        logger.debug(f"Entered progress scope {self.label or ''} with "
                     f"{len(self.handlers)} handlers, strategy={self.strategy!r}")
        return self

    def close(self) -> None:
        if not self._entered or self._closed:
            return
        try:
            if self._channel is not None and not self._channel.closed:
                self._channel.close()
        finally:
            with self._lock:
                self._closed = True
                self._recompute(closing=True)
                final = self._state
            for handler in self.handlers:
                self._invoke(handler, "finalize", final)
            self._detach()
            logger.debug(f"Closed progress scope at {final.describe()} ({final.events} events)")

    def _detach(self) -> None:
        if self._token is None:
            return
        try:
            _active_scope.reset(self._token)
        except ValueError:
            # Closed from a different context than the one that entered
            _active_scope.set(None)
        self._token = None

    def __enter__(self) -> "ProgressScope":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    async def __aenter__(self) -> "ProgressScope":
        return self.open()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self._channel is not None:
            # Draining joins a thread and stops the manager; keep that off the loop
            await asyncio.to_thread(self._channel.close)
        self.close()
        return False

    # ------------------------------------------------------------------
    # Signalers and dispatch
    # ------------------------------------------------------------------

    def create_signaler(self, steps: int | None = None, *, label: str | None = None,
                        weight: float = 1.0) -> Signaler:
        if steps is not None and steps < 0:
            raise ValueError("steps must be >= 0")
        if weight < 0:
            raise ValueError("weight must be >= 0")
        with self._lock:
            if not self.active:
                raise NoActiveScopeError("Signalers can only be created while the scope is open")
            order = len(self._signalers)
            signaler_id = f"{order}-{uuid.uuid4().hex[:8]}"
            self._signalers[signaler_id] = SignalerState(
                signaler_id=signaler_id,
                order=order,
                total=steps,
                weight=weight,
                label=label,
            )
            self._recompute()
        logger.debug(f"Created signaler {signaler_id} (steps={steps})")
        return Signaler(self, signaler_id, total=steps, label=label)

    def dispatch(self, event: ProgressEvent) -> bool:
        """Account for `event` and forward it to every handler.

        Returns False when the event was not accepted (scope closed or
        unknown signaler).
        """
        with self._lock:
            if self._closed:
                logger.debug(f"Event from {event.signaler_id} after scope exit dropped")
                return False
            sig = self._signalers.get(event.signaler_id)
            if sig is None:
                logger.debug(f"Event from unknown signaler {event.signaler_id} dropped")
                return False
            sig.completed += event.amount
            self._events += 1
            if event.message is not None and self.strategy.drives(sig, list(self._signalers.values())):
                self._message = event.message
            self._recompute()
            state = self._state
            for handler in self.handlers:
                self._invoke(handler, "handle", event, state)
        return True

    def _recompute(self, closing: bool = False) -> None:
        signalers = list(self._signalers.values())
        completed, total = self.strategy.combine(signalers, closing=closing)
        label = self.label
        if label is None and signalers:
            label = signalers[0].label
        self._state = AggregateState(
            completed=completed,
            total=total,
            message=self._message,
            label=label,
            events=self._events,
            finished=self._closed,
        )

    def channel_endpoint(self) -> ChannelEndpoint | None:
        """Sending side of the cross-process channel, created on first use."""
        with self._lock:
            if self._closed:
                return None
            if self._channel is None:
                self._channel = ProgressChannel(
                    self.dispatch,
                    maxsize=self.config.queue_size,
                    put_timeout=self.config.put_timeout,
                    drain_timeout=self.config.drain_timeout,
                    poll_interval=self.config.poll_interval,
                )
            return self._channel.endpoint

    def _invoke(self, handler: ProgressHandler, method: str, *args) -> None:
        try:
            getattr(handler, method)(*args)
        except Exception:
            logger.exception(f"Handler {getattr(handler, 'name', handler)!r} failed in {method}()")


def enter_scope(
    handlers: Iterable[ProgressHandler] | None = None,
    *,
    strategy: Aggregator | AggregationStrategy | str | None = None,
    config: Settings | None = None,
    label: str | None = None,
) -> ProgressScope:
    """Create a scope guard; enter it with ``with`` or ``async with``."""
    return ProgressScope(handlers, strategy=strategy, config=config, label=label)


progress_scope = enter_scope
