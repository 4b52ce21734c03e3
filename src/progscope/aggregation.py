"""Strategies combining per-signaler counts into one aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from .models import AggregationStrategy, SignalerState


class Aggregator(ABC):
    """Computes (completed, total) from the signalers of a scope."""

    kind: AggregationStrategy

    @abstractmethod
    def combine(self, signalers: Sequence[SignalerState],
                closing: bool = False) -> tuple[float, float | None]:
        ...

    def drives(self, signaler: SignalerState, signalers: Sequence[SignalerState]) -> bool:
        """Whether events from `signaler` can move the aggregate."""
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _clamped(s: SignalerState) -> int:
    if s.total is None:
        return s.completed
    return min(s.completed, s.total)


class FirstOnly(Aggregator):
    """Only the first-created signaler is rendered; later ones are counted but ignored."""

    kind = AggregationStrategy.FIRST_ONLY

    def combine(self, signalers: Sequence[SignalerState],
                closing: bool = False) -> tuple[float, float | None]:
        if not signalers:
            return 0.0, None
        first = signalers[0]
        total = float(first.total) if first.total is not None else None
        return float(_clamped(first)), total

    def drives(self, signaler: SignalerState, signalers: Sequence[SignalerState]) -> bool:
        return bool(signalers) and signalers[0].signaler_id == signaler.signaler_id


class SumAll(Aggregator):
    """Completed steps and totals are added across all signalers.

    The total is unknown as soon as one signaler has no total.
    """

    kind = AggregationStrategy.SUM_ALL

    def combine(self, signalers: Sequence[SignalerState],
                closing: bool = False) -> tuple[float, float | None]:
        completed = float(sum(_clamped(s) for s in signalers))
        if not signalers or any(s.total is None for s in signalers):
            return completed, None
        return completed, float(sum(s.total for s in signalers))


class Weighted(Aggregator):
    """Each signaler contributes ``weight * fraction``; the total is the sum of weights.

    A signaler without a total contributes nothing while the scope runs and
    its full weight once the scope closes.
    """

    kind = AggregationStrategy.WEIGHTED

    def combine(self, signalers: Sequence[SignalerState],
                closing: bool = False) -> tuple[float, float | None]:
        if not signalers:
            return 0.0, None
        completed = 0.0
        total = 0.0
        for s in signalers:
            total += s.weight
            if s.finished or (closing and s.total is None):
                completed += s.weight
            elif s.total:
                completed += s.weight * (_clamped(s) / s.total)
        return completed, total


_STRATEGIES: dict[AggregationStrategy, type[Aggregator]] = {
    AggregationStrategy.FIRST_ONLY: FirstOnly,
    AggregationStrategy.SUM_ALL: SumAll,
    AggregationStrategy.WEIGHTED: Weighted,
}


def get_strategy(strategy: Aggregator | AggregationStrategy | str | None = None) -> Aggregator:
    """Resolve a strategy name, enum member or instance. ``None`` means first-only."""
    if strategy is None:
        return FirstOnly()
    if isinstance(strategy, Aggregator):
        return strategy
    try:
        kind = AggregationStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in AggregationStrategy)
        raise ValueError(f"Unknown aggregation strategy '{strategy}'. Available: {valid}") from None
    return _STRATEGIES[kind]()
