"""Typer-based command line interface for running pi estimations."""

from __future__ import annotations

import logging
from math import isqrt
from typing import List, Optional

import numpy as np
import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from montepi.config import LOG_LEVEL, EngineSettings
from montepi.core.registry import StrategyDescriptor, available_strategies, get_descriptor, resolve_strategy
from montepi.core.validator import InvalidSampleCount, UnsupportedExecutionEnvironment, validate_sample_count
from montepi.engine import PiEngine
from montepi.models.results import SimulationResult
from montepi.models.stream import BatchMessage, StreamRequest
from montepi.runtime.simulation_runner import SimulationRunner
from montepi.utils.data_reduction import log_spaced_indices
from montepi.utils.numbers import format_error, format_estimate

app = typer.Typer(help="Monte Carlo and quasi-Monte Carlo estimation of pi")
console = Console()

DEFAULT_SAMPLES = 10_000
DEFAULT_STREAM_SAMPLES = 100_000


@app.callback()
def configure(
    log_level: str = typer.Option(LOG_LEVEL, help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _settings(batch_size: Optional[int], seed: Optional[int]) -> EngineSettings:
    settings = EngineSettings.from_env()
    if batch_size is not None:
        settings.batch_size = batch_size
    if seed is not None:
        settings.random_seed = seed
    return settings


def _request_size(descriptor: StrategyDescriptor, samples: Optional[int], default: int) -> int:
    """Explicit sizes pass through; a defaulted grid request gets a side covering about ``default`` cells."""
    if samples is not None:
        return samples
    return isqrt(default) if descriptor.grid else default


def _warn_unknown(strategy: str) -> None:
    if get_descriptor(strategy) is None:
        console.print(f"[yellow]Unknown strategy '{strategy}', using 'quarter'.[/yellow]")


def _convergence_table(frame: pd.DataFrame, rows: int) -> Optional[Table]:
    if frame.empty or rows <= 0:
        return None
    subset = frame.iloc[log_spaced_indices(frame.shape[0], rows)]
    table = Table(title="Convergence", show_lines=False)
    for column in ["Samples", "Estimate", "Lower", "Upper"]:
        table.add_column(column, justify="right")
    for row in subset.itertuples(index=False):
        table.add_row(
            f"{int(row.index):,}",
            f"{row.estimate:.6f}",
            f"{row.lower_bound:.6f}",
            f"{row.upper_bound:.6f}",
        )
    return table


def _print_result(result: SimulationResult, rows: int) -> None:
    console.print(f"\n[bold]Strategy:[/bold] {result.strategy} ({result.scaling_rule})")
    console.print(f"Samples: {result.samples:,}  |  Elapsed: {result.elapsed_seconds:.3f}s")
    console.print(
        f"[bold green]pi ~ {format_estimate(result.estimate)}[/bold green]  "
        f"(std. error {format_error(result.standard_error)})"
    )
    table = _convergence_table(result.convergence, rows)
    if table is not None:
        console.print(table)
    validation = result.metadata.get("validation") or {}
    for warning in validation.get("warnings", []):
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    for failed in validation.get("failed_checks", []):
        console.print(f"[red]Check failed: {failed}[/red]")


@app.command("strategies")
def list_strategies() -> None:
    """List the registered sampling strategies."""
    table = Table(title="Sampling Strategies")
    table.add_column("Key")
    table.add_column("Scaling")
    table.add_column("Deterministic", justify="center")
    table.add_column("Description")
    for key in available_strategies():
        descriptor = resolve_strategy(key)
        table.add_row(
            descriptor.name,
            descriptor.scaling_rule.value,
            "yes" if descriptor.position_dependent else "no",
            descriptor.description,
        )
    console.print(table)


@app.command()
def estimate(
    strategy: str = typer.Argument("quarter", help="Strategy key (see 'strategies')"),
    samples: Optional[int] = typer.Option(
        None, "--samples", "-n", help="Sample count, grid side for gpuGrid (default 10,000 samples or cells)"
    ),
    batch_size: Optional[int] = typer.Option(None, help="Batch size (defaults to MONTEPI_BATCH_SIZE)"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible draws"),
    rows: int = typer.Option(10, help="Convergence rows to display (0 to hide)"),
) -> None:
    """Run one estimation and print the final estimate and convergence."""
    _warn_unknown(strategy)
    try:
        engine = PiEngine(_settings(batch_size, seed))
        descriptor = engine.set_strategy(strategy)
        engine.set_sample_count(_request_size(descriptor, samples, DEFAULT_SAMPLES))
        result = engine.run()
    except InvalidSampleCount as exc:
        raise typer.BadParameter(str(exc)) from exc
    except UnsupportedExecutionEnvironment as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    _print_result(result, rows)


@app.command()
def stream(
    strategy: str = typer.Argument("quarter", help="Strategy key (see 'strategies')"),
    samples: Optional[int] = typer.Option(
        None, "--samples", "-n", help="Sample count, grid side for gpuGrid (default 100,000 samples or cells)"
    ),
    batch_size: Optional[int] = typer.Option(None, help="Samples per streamed batch (defaults to MONTEPI_BATCH_SIZE)"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible draws"),
    rows: int = typer.Option(10, help="Convergence rows to display (0 to hide)"),
) -> None:
    """Stream batches from a background worker with live progress."""
    _warn_unknown(strategy)
    descriptor = resolve_strategy(strategy)
    settings = _settings(batch_size, seed)
    try:
        request = StreamRequest(
            descriptor.name,
            _request_size(descriptor, samples, DEFAULT_STREAM_SAMPLES),
            settings.batch_size,
        )
    except InvalidSampleCount as exc:
        raise typer.BadParameter(str(exc)) from exc

    runner = SimulationRunner(backend=settings.grid_backend, convergence_rows=settings.convergence_rows)
    total_samples = descriptor.stream_length(request.total)
    try:
        runner.start(request, rng=np.random.default_rng(settings.random_seed))
        with Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed:,.0f}/{task.total:,.0f}"),
            TextColumn("pi ~ {task.fields[estimate]}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(descriptor.name, total=total_samples, estimate="N/A")
            for message in runner.iter_messages():
                if isinstance(message, BatchMessage):
                    statistics = runner.statistics
                    progress.update(
                        task,
                        advance=message.size,
                        estimate=format_estimate(statistics.estimate if statistics else None),
                    )
    except UnsupportedExecutionEnvironment as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        runner.shutdown()

    statistics = runner.statistics
    console.print(
        f"[bold green]pi ~ {format_estimate(statistics.estimate if statistics else None)}[/bold green]  "
        f"(std. error {format_error(statistics.standard_error if statistics else None)})"
    )
    table = _convergence_table(runner.convergence(), rows)
    if table is not None:
        console.print(table)


@app.command()
def compare(
    samples: int = typer.Option(DEFAULT_SAMPLES, "--samples", "-n", help="Sample count N"),
    grid_side: Optional[int] = typer.Option(
        None, help="Grid side for gpuGrid (defaults to isqrt(N), about N cells)"
    ),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible draws"),
    strategy: Optional[List[str]] = typer.Option(None, "--strategy", "-s", help="Restrict to these keys"),
) -> None:
    """Compare standard errors across strategies at a fixed sample count."""
    engine = PiEngine(_settings(None, seed))
    try:
        samples = validate_sample_count(samples)
        side = isqrt(samples) if grid_side is None else grid_side
        comparison = engine.compare(samples, keys=strategy or None, grid_side=side)
    except InvalidSampleCount as exc:
        raise typer.BadParameter(str(exc)) from exc
    except UnsupportedExecutionEnvironment as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"Standard Error Comparison (N={samples:,})")
    table.add_column("Strategy")
    table.add_column("Samples", justify="right")
    table.add_column("Estimate", justify="right")
    table.add_column("Std. Error (pi)", justify="right")
    for row in comparison.rows.values():
        table.add_row(
            row.strategy,
            f"{row.samples:,}",
            format_estimate(row.estimate),
            format_error(row.standard_error),
        )
    console.print(table)


def main() -> None:
    """Entry point for CLI execution."""
    app()


if __name__ == "__main__":
    main()
