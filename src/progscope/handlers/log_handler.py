"""Handler emitting progress through the logging module."""

from __future__ import annotations

import logging
from typing import Any

from ..models import AggregateState, ProgressEvent
from .base import BaseHandler


class LogHandler(BaseHandler):
    """Writes one log line per rendered update."""

    def __init__(self, level: int = logging.INFO, target: logging.Logger | None = None,
                 min_interval: float = 1.0, **kwargs: Any) -> None:
        super().__init__(min_interval=min_interval, **kwargs)
        self.level = level
        self.target = target or logging.getLogger("progscope.progress")

    @property
    def name(self) -> str:
        return "log"

    def on_start(self, state: AggregateState) -> None:
        self.target.log(self.level, f"{state.label or 'Progress'}: started")

    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        line = f"{state.label or 'Progress'}: {state.describe()}"
        if event.message:
            line += f" - {event.message}"
        self.target.log(self.level, line)

    def close(self, state: AggregateState) -> None:
        self.target.log(
            self.level,
            f"{state.label or 'Progress'}: finished at {state.describe()} "
            f"after {state.events} events",
        )
