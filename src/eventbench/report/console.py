"""Rich table rendering of phase results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventbench.metrics.models import PhaseResult


def _ms(value: float) -> str:
    return f"{value:.2f}ms"


def _settling(result: PhaseResult) -> str:
    if result.settling_ms is not None:
        return _ms(result.settling_ms)
    if result.settling_error is not None:
        return "[red]FAILED[/red]"
    return "-"


def traffic_table(results: Sequence[PhaseResult]) -> Table:
    """Build the traffic summary: throughput, errors and settling time per phase."""
    table = Table(title="Traffic Summary", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Phase", style="bold")
    table.add_column("OK", justify="right")
    table.add_column("RPS", justify="right")
    table.add_column("Svr Err", justify="right")
    table.add_column("Cli Lim", justify="right")
    table.add_column("Lag", justify="right")

    for r in results:
        agg = r.aggregate
        table.add_row(
            r.name,
            str(agg.total_ok),
            f"{agg.total_rps:.0f}",
            str(agg.total_err),
            str(agg.total_client_limit),
            _settling(r),
        )
    return table


def latency_table(results: Sequence[PhaseResult]) -> Table:
    """Build the merged-reservoir latency percentiles per phase."""
    table = Table(title="Latency Stats", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Phase", style="bold")
    for label in ("P50", "P90", "P95", "P99", "Max"):
        table.add_column(label, justify="right")

    for r in results:
        lat = r.aggregate.latency
        table.add_row(r.name, _ms(lat.p50), _ms(lat.p90), _ms(lat.p95), _ms(lat.p99), _ms(lat.max))
    return table


def worker_table(result: PhaseResult) -> Table:
    """Build the per-worker breakdown for one phase."""
    table = Table(title=f"[ {result.name} ]", show_header=True, header_style="bold", expand=True)
    for label in ("ID", "OK", "P50", "P90", "P95", "P99", "Max", "Errs"):
        table.add_column(label, justify="right")

    for row in result.workers:
        lat = row.latency
        table.add_row(
            str(row.worker_id),
            str(row.ok),
            _ms(lat.p50),
            _ms(lat.p90),
            _ms(lat.p95),
            _ms(lat.p99),
            _ms(lat.max),
            str(row.total_errors),
        )
    return table


def print_report(
    console: Console,
    results: Sequence[PhaseResult],
    *,
    title: str,
    workers: int,
    duration_seconds: float,
    address: str,
    detailed: bool = True,
) -> None:
    """Print the summary tables and, optionally, every per-worker breakdown."""
    console.print(
        Panel(
            f"[bold]Workers:[/bold]  {workers}\n"
            f"[bold]Duration:[/bold] {duration_seconds:g}s per phase\n"
            f"[bold]Target:[/bold]   {address}",
            title=title,
            border_style="cyan",
        )
    )
    console.print(traffic_table(results))
    console.print(latency_table(results))

    for r in results:
        if r.settling_error is not None:
            console.print(f"[yellow]{r.name}: settling time not measured ({r.settling_error})[/yellow]")

    if detailed:
        console.rule("Detailed Worker Breakdown")
        for r in results:
            console.print(worker_table(r))
