"""CLI: nickchat status|roster"""

import json

import click
import httpx
from rich.console import Console
from rich.table import Table

from nickchat.errors import ChatError
from nickchat.transport.http import DEFAULT_BASE_URL, AdminClient

console = Console()


def _run(coro):
    from nickchat.cli.main import _run
    return _run(coro)


@click.command("status")
@click.option("--url", default=DEFAULT_BASE_URL, help="Server base URL")
def status(url: str):
    """Show the health of a running server."""

    async def _status():
        async with AdminClient(url) as client:
            try:
                health = await client.health()
            except (ChatError, httpx.HTTPError) as e:
                console.print(f"[red]Server at {url} unreachable: {e}[/red]")
                raise SystemExit(1)
        console.print(
            f"[green]{health['status']}[/green]: {health['online']} online, "
            f"up {health['uptime']:.0f}s [dim]({health['timestamp']})[/dim]"
        )

    _run(_status())


@click.command("roster")
@click.option("--url", default=DEFAULT_BASE_URL, help="Server base URL")
@click.option("--json-output", "--json", is_flag=True)
def roster(url: str, json_output: bool):
    """List connected users (server must run with --debug)."""

    async def _roster():
        async with AdminClient(url) as client:
            try:
                result = await client.connected_users()
            except (ChatError, httpx.HTTPError) as e:
                console.print(f"[red]{e}[/red] [dim](is the server running with --debug?)[/dim]")
                raise SystemExit(1)
        if json_output:
            click.echo(json.dumps(result, indent=2))
            return
        table = Table(title=f"Connected users ({result['count']})")
        table.add_column("Nickname", style="bold")
        table.add_column("Session")
        for entry in result["connected_users"]:
            table.add_row(entry["nickname"], entry["session"])
        console.print(table)

    _run(_roster())
