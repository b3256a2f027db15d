"""``eventbench load|bench|e2e`` — run suites against a live event store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from eventbench._internal.config import load_config
from eventbench._internal.errors import EventBenchError
from eventbench._internal.logging import setup_logging
from eventbench.engine.phase import run_async
from eventbench.engine.suites import SuiteConfig, run_suites
from eventbench.report.console import print_report
from eventbench.report.export import export_reports

if TYPE_CHECKING:
    from eventbench.engine.suites import SuiteRun

console = Console(stderr=True)

_REPORT_FORMATS = ("html", "json")


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_ADDR = typer.Option(None, "--addr", "-a", help="Event store address (host:port).")
_SUITES = typer.Option(
    "all",
    "--suites",
    "-s",
    help="Comma-separated suite filter, or 'all'.",
)
_WORKERS = typer.Option(None, "--workers", "-w", help="Concurrent workers per phase.", min=1)
_DURATION = typer.Option(None, "--duration", "-d", help="Phase duration in seconds.", min=0.1)
_VERBOSE = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging.")
_JSON_LOGS = typer.Option(False, "--json-logs", help="Emit log lines as JSON objects.")


def _build_config(
    mode: str,
    addr: str | None,
    suites: str,
    workers: int | None,
    duration: float | None,
) -> SuiteConfig:
    """Merge CLI flags over the environment configuration.

    Raises:
        EventBenchError: If the environment holds an invalid value.
    """
    env = load_config()
    return SuiteConfig(
        mode=mode,
        address=addr or env.address,
        suites=tuple(s.strip() for s in suites.split(",")),
        workers=workers if workers is not None else env.workers,
        duration_seconds=duration if duration is not None else env.duration_seconds,
        timeout=env.request_timeout,
        reservoir_size=env.reservoir_size,
    )


def _print_runs(runs: list[SuiteRun]) -> None:
    """Print the pass/fail table for a list of suite runs."""
    table = Table(title="Suites", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Suite", style="bold")
    table.add_column("Result")
    table.add_column("Time", justify="right")
    table.add_column("Error")

    for run in runs:
        status = "[green]PASSED[/green]" if run.passed else "[red]FAILED[/red]"
        table.add_row(run.name, status, f"{run.elapsed_seconds * 1000:.0f}ms", run.error or "")
    console.print(table)


def _execute(mode: str, config: SuiteConfig, verbose: bool, json_logs: bool) -> list[SuiteRun]:
    setup_logging(logging.DEBUG if verbose else logging.INFO, json_format=json_logs)
    try:
        runs = run_async(run_suites(config))
    except EventBenchError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if not runs:
        console.print(f"[yellow]No {mode} suites matched filter {','.join(config.suites)!r}.[/yellow]")
    return runs


def _finish(runs: list[SuiteRun]) -> None:
    """Print the suite table and exit non-zero if any suite failed."""
    _print_runs(runs)
    failed = sum(1 for r in runs if not r.passed)
    if failed:
        console.print(f"[red]FAIL:[/red] {failed} suite(s) failed.")
        raise typer.Exit(code=1)
    console.print("[green]All suites passed.[/green]")


def _resolve_config(
    mode: str,
    addr: str | None,
    suites: str,
    workers: int | None,
    duration: float | None,
) -> SuiteConfig:
    try:
        return _build_config(mode, addr, suites, workers, duration)
    except EventBenchError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def load_cmd(
    addr: str | None = _ADDR,
    suites: str = _SUITES,
    workers: int | None = _WORKERS,
    duration: float | None = _DURATION,
    verbose: bool = _VERBOSE,
    json_logs: bool = _JSON_LOGS,
) -> None:
    """Run the health-gated load suite and print traffic and latency tables."""
    config = _resolve_config("load", addr, suites, workers, duration)
    runs = _execute("load", config, verbose, json_logs)

    for run in runs:
        if run.results:
            print_report(
                console,
                run.results,
                title="Load Performance",
                workers=config.workers,
                duration_seconds=config.duration_seconds,
                address=config.address,
                detailed=verbose,
            )
    _finish(runs)


def bench_cmd(
    addr: str | None = _ADDR,
    suites: str = _SUITES,
    workers: int | None = _WORKERS,
    duration: float | None = _DURATION,
    verbose: bool = _VERBOSE,
    json_logs: bool = _JSON_LOGS,
    output: Path = typer.Option(
        Path("./results"),
        "--output",
        "-o",
        help="Output directory for reports.",
    ),
    fmt: str = typer.Option(
        "html,json",
        "--format",
        "-f",
        help="Comma-separated report formats: html, json.",
    ),
    no_report: bool = typer.Option(
        False,
        "--no-report",
        help="Skip report generation after the run.",
    ),
) -> None:
    """Run the standardized benchmark, print every table and write reports."""
    formats = tuple(f.strip().lower() for f in fmt.split(",") if f.strip())
    unknown = [f for f in formats if f not in _REPORT_FORMATS]
    if unknown:
        msg = f"Unknown report format(s): {', '.join(unknown)}. Choose from: html, json"
        raise typer.BadParameter(msg)

    config = _resolve_config("bench", addr, suites, workers, duration)
    runs = _execute("bench", config, verbose, json_logs)

    for run in runs:
        if not run.results:
            continue
        print_report(
            console,
            run.results,
            title="Benchmark",
            workers=config.workers,
            duration_seconds=config.duration_seconds,
            address=config.address,
        )
        if not no_report:
            for path in export_reports(
                output,
                run.results,
                workers=config.workers,
                duration_seconds=config.duration_seconds,
                formats=formats,
            ):
                console.print(f"[green]Report saved:[/green] {path}")
    _finish(runs)


def e2e_cmd(
    addr: str | None = _ADDR,
    suites: str = _SUITES,
    verbose: bool = _VERBOSE,
    json_logs: bool = _JSON_LOGS,
) -> None:
    """Run the conformance suites: ingest, query, pagination, robustness."""
    config = _resolve_config("e2e", addr, suites, None, None)
    runs = _execute("e2e", config, verbose, json_logs)
    _finish(runs)
