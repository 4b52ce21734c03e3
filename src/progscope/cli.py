"""Typer CLI entry point for ProgScope."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, get_settings
from .handlers import HANDLER_NAMES, build_handlers
from .models import AggregationStrategy

app = typer.Typer(
    name="progscope",
    help="ProgScope: progress reporting for parallel computations",
    rich_markup_mode="rich",
)

console = Console()


def _setup_logging(verbose: bool = False, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    settings.ensure_dirs()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(
                settings.logs_dir / "progscope.log",
                encoding="utf-8",
            ),
        ],
    )


def _simulated_task(delay: float, item: int) -> int:
    """Stand-in for real work: sleep, then square the item."""
    time.sleep(delay)
    return item * item


def _simulated_worker(delay: float, substeps: int, progress, item: int) -> int:
    """Stand-in for a worker reporting its own sub-steps."""
    for step in range(substeps):
        time.sleep(delay / max(substeps, 1))
        progress(f"item {item} step {step + 1}/{substeps}")
    return item * item


async def _simulated_coro(delay: float, item: int) -> int:
    await asyncio.sleep(delay)
    return item * item


def _run_worker_signals(func, items: list[int], workers: int, backend: str,
                        handlers, strategy: str, substeps: int) -> list[int]:
    from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor

    from .scope import enter_scope
    from .signaler import create_signaler

    executor_cls = ProcessPoolExecutor if backend == "process" else ThreadPoolExecutor
    with enter_scope(handlers, strategy=strategy, label="demo"):
        progress = create_signaler(len(items) * substeps, label="demo")
        with executor_cls(max_workers=workers) as pool:
            return list(pool.map(partial(func, progress), items))


@app.command()
def demo(
    steps: int = typer.Option(20, "--steps", "-n", help="Number of items to process"),
    workers: int = typer.Option(4, "--workers", "-w", help="Parallel workers"),
    backend: str = typer.Option("thread", "--backend", "-b", help="thread, process or asyncio"),
    handler: Optional[list[str]] = typer.Option(None, "--handler", "-H", help="Handler name (repeatable)"),
    strategy: str = typer.Option("first_only", "--strategy", "-s", help="first_only, sum_all or weighted"),
    delay: float = typer.Option(0.05, "--delay", "-d", help="Seconds of simulated work per item"),
    substeps: int = typer.Option(0, "--substeps", help="Let workers signal N sub-steps per item themselves"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Run a simulated parallel workload with progress reporting."""
    settings = get_settings()
    _setup_logging(verbose, settings)

    if backend not in ("thread", "process", "asyncio"):
        console.print(f"[red]Invalid backend: {backend}. Use thread, process or asyncio.[/red]")
        raise typer.Exit(1)
    if strategy not in {s.value for s in AggregationStrategy}:
        console.print(f"[red]Invalid strategy: {strategy}.[/red]")
        raise typer.Exit(1)
    if substeps and backend == "asyncio":
        console.print("[red]--substeps is only supported with the thread and process backends.[/red]")
        raise typer.Exit(1)

    try:
        handlers = build_handlers(handler or None, settings)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    from .parallel import async_progress_map, progress_map

    items = list(range(steps))
    start = time.time()
    if substeps:
        func = partial(_simulated_worker, delay, substeps)
        results = _run_worker_signals(func, items, workers, backend, handlers, strategy, substeps)
    elif backend == "asyncio":
        results = asyncio.run(async_progress_map(
            partial(_simulated_coro, delay), items,
            concurrency=workers, handlers=handlers, strategy=strategy, label="demo",
        ))
    else:
        results = progress_map(
            partial(_simulated_task, delay), items,
            max_workers=workers, backend=backend, handlers=handlers, strategy=strategy, label="demo",
        )
    elapsed = time.time() - start

    table = Table(title="Demo Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Items", str(len(results)))
    table.add_row("Backend", backend)
    table.add_row("Handlers", ", ".join(h.name for h in handlers) or "(none)")
    table.add_row("Strategy", strategy)
    table.add_row("Checksum", str(sum(results)))
    table.add_row("Time", f"{elapsed:.2f}s")
    console.print(table)


@app.command(name="handlers")
def list_handlers():
    """List available progress handlers."""
    table = Table(title="Progress Handlers")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="green")
    for name, description in HANDLER_NAMES.items():
        table.add_row(name, description)
    console.print(table)


@app.command(name="config")
def show_config():
    """Show the effective settings."""
    s = get_settings()

    table = Table(title="ProgScope Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Default handlers", ", ".join(s.default_handlers) or "(none)")
    table.add_row("Strategy", s.strategy)
    table.add_row("Min render interval", f"{s.min_interval}s")
    table.add_row("Queue size", f"{s.queue_size:,}")
    table.add_row("Put timeout", f"{s.put_timeout}s")
    table.add_row("Drain timeout", f"{s.drain_timeout}s")
    table.add_row("Webhook", s.webhook.url or "(disabled)")
    table.add_row("Log level", s.log_level)
    table.add_row("Logs directory", str(s.logs_dir))

    console.print(table)


if __name__ == "__main__":
    app()
