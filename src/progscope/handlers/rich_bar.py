"""Console progress bar rendered with rich."""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from ..models import AggregateState, ProgressEvent
from .base import BaseHandler

logger = logging.getLogger(__name__)


class RichBarHandler(BaseHandler):
    """Renders the aggregate as a live ``rich`` progress bar."""

    def __init__(self, console: Console | None = None, description: str = "Working",
                 transient: bool = False, min_interval: float = 0.1, **kwargs: Any) -> None:
        super().__init__(min_interval=min_interval, **kwargs)
        self.console = console or Console(stderr=True)
        self.description = description
        self.transient = transient
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    @property
    def name(self) -> str:
        return "rich"

    def _describe(self, state: AggregateState) -> str:
        text = state.label or self.description
        if state.message:
            text = f"{text}: {state.message}"
        return text

    def on_start(self, state: AggregateState) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=self.transient,
            auto_refresh=False,
        )
        self._progress.start()
        self._task = self._progress.add_task(self._describe(state), total=state.total)

    def render(self, event: ProgressEvent, state: AggregateState) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(
            self._task,
            completed=state.completed,
            total=state.total,
            description=self._describe(state),
        )
        self._progress.refresh()

    def close(self, state: AggregateState) -> None:
        if self._progress is None:
            return
        try:
            if self._task is not None:
                self._progress.update(
                    self._task,
                    completed=state.completed,
                    total=state.total,
                    description=self._describe(state),
                )
                self._progress.refresh()
        finally:
            self._progress.stop()
            self._progress = None
            self._task = None

    @property
    def current(self) -> dict[str, Any] | None:
        """Completed/total of the live task, or None outside a scope."""
        if self._progress is None or self._task is None:
            return None
        task = self._progress.tasks[0]
        return {"completed": task.completed, "total": task.total}
