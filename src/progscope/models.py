"""Pydantic models and dataclasses for ProgScope."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AggregationStrategy(str, Enum):
    FIRST_ONLY = "first_only"
    SUM_ALL = "sum_all"
    WEIGHTED = "weighted"


class ProgressEvent(BaseModel):
    """One progress increment emitted by a signaler."""
    model_config = ConfigDict(frozen=True)

    signaler_id: str
    amount: int = 1
    message: str | None = None
    sequence: int = 0
    timestamp: datetime = Field(default_factory=_utcnow)


class AggregateState(BaseModel):
    """Accumulated progress as seen by handlers."""
    completed: float = 0.0
    total: float | None = None
    message: str | None = None
    label: str | None = None
    events: int = 0
    finished: bool = False

    @property
    def fraction(self) -> float | None:
        if self.total is None:
            return None
        if self.total <= 0:
            return 1.0
        return min(1.0, max(0.0, self.completed / self.total))

    @property
    def percent(self) -> float | None:
        frac = self.fraction
        return None if frac is None else frac * 100.0

    def describe(self) -> str:
        """Short human-readable form, e.g. ``'7/10 (70%)'``."""
        done = _fmt_number(self.completed)
        if self.total is None:
            return f"{done}/?"
        return f"{done}/{_fmt_number(self.total)} ({self.percent:.0f}%)"


def _fmt_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


@dataclass
class SignalerState:
    """Per-signaler bookkeeping owned by a scope."""
    signaler_id: str
    order: int
    total: int | None = None
    completed: int = 0
    weight: float = 1.0
    label: str | None = None

    @property
    def finished(self) -> bool:
        return self.total is not None and self.completed >= self.total
