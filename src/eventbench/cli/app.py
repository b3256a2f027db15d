"""Main Typer application — entry point for the ``eventbench`` CLI."""

from __future__ import annotations

import typer

from eventbench import __version__
from eventbench.cli.run import bench_cmd, e2e_cmd, load_cmd
from eventbench.cli.shell import shell_cmd

app = typer.Typer(
    name="eventbench",
    help="Load, benchmark and conformance testing for the event store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("load", help="Run the health-gated load suite.")(load_cmd)
app.command("bench", help="Run the standardized benchmark and write reports.")(bench_cmd)
app.command("e2e", help="Run the end-to-end conformance suites.")(e2e_cmd)
app.command("shell", help="Send commands interactively and print the replies.")(shell_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"eventbench {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """eventbench — load and conformance testing for the event store."""
