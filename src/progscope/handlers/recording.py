"""In-memory handler that keeps every rendered state."""

from __future__ import annotations

from typing import Any

from ..models import AggregateState, ProgressEvent
from .base import BaseHandler


class RecordingHandler(BaseHandler):
    """Records rendered states; useful for debugging and tests."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.events: list[ProgressEvent] = []
        self.states: list[AggregateState] = []
        self.started: AggregateState | None = None
        self.final: AggregateState | None = None

    @property
    def name(self) -> str:
        return "record"

    def on_start(self, state: AggregateState) -> None:
        self.events = []
        self.states = []
        self.started = state
        self.final = None

    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        self.events.append(event)
        self.states.append(state)

    def close(self, state: AggregateState) -> None:
        self.final = state

    @property
    def last(self) -> AggregateState | None:
        """Most recent state this handler has seen."""
        if self.final is not None:
            return self.final
        return self.states[-1] if self.states else None
