"""``eventbench shell`` — interactive command prompt against the event store."""

from __future__ import annotations

import asyncio
import sys

import typer
from rich.console import Console

from eventbench._internal.config import load_config
from eventbench._internal.errors import EventBenchError, TransportError
from eventbench.engine.phase import run_async
from eventbench.transport.client import StoreClient
from eventbench.transport.response import pretty

console = Console(stderr=True)

_QUIT = ("exit", "quit")


async def _repl(address: str, timeout: float) -> None:
    """Read commands from stdin until EOF or ``exit``, printing each reply.

    Raises:
        TransportError: If the connection fails or breaks mid-session.
    """
    async with await StoreClient.connect(address, timeout=timeout) as client:
        console.rule()
        console.print(f"Connected to event store at [bold]{address}[/bold]")
        console.print("Type 'exit' to quit.")
        console.rule()

        while True:
            console.print("> ", end="")
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            text = line.strip()
            if text in _QUIT:
                break
            if not text:
                continue

            response = await client.request(text)
            typer.echo(pretty(response))


def shell_cmd(
    addr: str | None = typer.Option(None, "--addr", "-a", help="Event store address (host:port)."),
) -> None:
    """Send commands typed at the prompt and pretty-print the JSON replies."""
    try:
        config = load_config()
        run_async(_repl(addr or config.address, config.request_timeout))
    except TransportError as exc:
        console.print(f"[red]Connection error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except EventBenchError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
