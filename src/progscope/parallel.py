"""Parallel map helpers that report one step per finished item."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from .aggregation import Aggregator
from .config import Settings
from .handlers.base import ProgressHandler
from .models import AggregationStrategy
from .scope import enter_scope
from .signaler import create_signaler

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

StrategyArg = Aggregator | AggregationStrategy | str | None

BACKENDS: dict[str, type[Executor]] = {
    "thread": ThreadPoolExecutor,
    "process": ProcessPoolExecutor,
}


def progress_map(
    func: Callable[[T], R],
    items: Iterable[T],
    *,
    max_workers: int | None = None,
    backend: str = "thread",
    handlers: Iterable[ProgressHandler] | None = None,
    strategy: StrategyArg = None,
    config: Settings | None = None,
    label: str | None = None,
) -> list[R]:
    """Map `func` over `items` in parallel, signalling once per completed item.

    Results come back in input order.  The first exception raised by `func`
    cancels the items not yet started and propagates once the scope has
    finalized its handlers.  With ``backend="process"`` `func` must be
    picklable.
    """
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{backend}'. Available: {', '.join(BACKENDS)}")
    items = list(items)
    results: list[Any] = [None] * len(items)

    with enter_scope(handlers, strategy=strategy, config=config, label=label):
        progress = create_signaler(len(items), label=label)
        if not items:
            return []
        with BACKENDS[backend](max_workers=max_workers) as pool:
            futures: dict[Future, int] = {pool.submit(func, item): i for i, item in enumerate(items)}
            try:
                for fut in as_completed(futures):
                    results[futures[fut]] = fut.result()
                    progress()
            except BaseException:
                for fut in futures:
                    fut.cancel()
                raise

    logger.debug(f"progress_map finished {len(items)} items on the {backend} backend")
    return results


async def async_progress_map(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    *,
    concurrency: int = 4,
    handlers: Iterable[ProgressHandler] | None = None,
    strategy: StrategyArg = None,
    config: Settings | None = None,
    label: str | None = None,
) -> list[R]:
    """Await `func` over `items` with at most `concurrency` in flight."""
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    items = list(items)

    async with enter_scope(handlers, strategy=strategy, config=config, label=label):
        progress = create_signaler(len(items), label=label)
        semaphore = asyncio.Semaphore(concurrency)

        async def run_one(item: T) -> R:
            async with semaphore:
                result = await func(item)
            progress()
            return result

        return list(await asyncio.gather(*(run_one(item) for item in items)))


def with_progress(
    func: Callable[..., R],
    *args: Any,
    handlers: Iterable[ProgressHandler] | None = None,
    strategy: StrategyArg = None,
    config: Settings | None = None,
    label: str | None = None,
    **kwargs: Any,
) -> R:
    """Call ``func(*args, **kwargs)`` inside a fresh scope and return its value.

    `func` creates its own signalers with :func:`create_signaler`.
    """
    with enter_scope(handlers, strategy=strategy, config=config, label=label):
        return func(*args, **kwargs)
