"""Audible cue handler."""

from __future__ import annotations

from typing import Any

from rich.console import Console

from ..models import AggregateState, ProgressEvent
from .base import BaseHandler


class BeepHandler(BaseHandler):
    """Rings the terminal bell when work finishes.

    With ``every_percent`` set, also rings each time the aggregate crosses
    another multiple of that percentage.
    """

    def __init__(self, console: Console | None = None, every_percent: float | None = None,
                 **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if every_percent is not None and every_percent <= 0:
            raise ValueError("every_percent must be positive")
        self.console = console or Console(stderr=True)
        self.every_percent = every_percent
        self.beeps = 0
        self._next_mark = every_percent

    @property
    def name(self) -> str:
        return "beep"

    def _beep(self) -> None:
        self.console.bell()
        self.beeps += 1

    def on_start(self, state: AggregateState) -> None:
        self.beeps = 0
        self._next_mark = self.every_percent

    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        if self.every_percent is None or self._next_mark is None:
            return
        percent = state.percent
        if percent is None or percent >= 100.0:
            return
        if percent >= self._next_mark:
            self._beep()
            while self._next_mark <= percent:
                self._next_mark += self.every_percent

    def close(self, state: AggregateState) -> None:
        self._beep()
