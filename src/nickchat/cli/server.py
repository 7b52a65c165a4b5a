"""CLI: nickchat serve|reset-presence|history"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _settings():
    from nickchat.cli.main import _settings
    return _settings()


def _run(coro):
    from nickchat.cli.main import _run
    return _run(coro)


def _mongo_settings():
    settings = _settings()
    if not settings.mongodb_url:
        console.print("[red]NICKCHAT_MONGODB_URL is not set; nothing to operate on.[/red]")
        raise SystemExit(1)
    return settings


@click.command("serve")
@click.option("--host", default=None, help="Bind address (default NICKCHAT_HOST)")
@click.option("--port", default=None, type=int, help="Port (default NICKCHAT_PORT)")
@click.option("--debug/--no-debug", default=None, help="Expose /api/debug/users")
def serve(host: Optional[str], port: Optional[int], debug: Optional[bool]):
    """Run the chat server."""
    import uvicorn

    from nickchat.app import create_app

    updates = {k: v for k, v in {"host": host, "port": port, "debug": debug}.items() if v is not None}
    settings = _settings().model_copy(update=updates)
    store = "MongoDB" if settings.mongodb_url else "in-memory stores"
    console.print(f"[cyan]nickchat on http://{settings.host}:{settings.port}[/cyan] [dim]({store})[/dim]")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


@click.command("reset-presence")
def reset_presence():
    """Force every stored identity offline and unbound."""
    settings = _mongo_settings()

    async def _reset():
        from nickchat.stores.mongo import MongoIdentityStore, connect_mongo

        client, db = connect_mongo(settings)
        try:
            with console.status("Resetting presence..."):
                changed = await MongoIdentityStore(db).reset_all()
        finally:
            client.close()
        console.print(f"[green]{changed} identity records reset.[/green]")

    _run(_reset())


@click.command("history")
@click.argument("first")
@click.argument("second")
@click.option("--limit", default=20, type=int)
@click.option("--json-output", "--json", is_flag=True)
def history(first: str, second: str, limit: int, json_output: bool):
    """Print the stored conversation between FIRST and SECOND."""
    settings = _mongo_settings()

    async def _history():
        from nickchat.stores.mongo import MongoMessageStore, connect_mongo

        client, db = connect_mongo(settings)
        try:
            messages = list(reversed(await MongoMessageStore(db).recent_between(first, second, limit)))
        finally:
            client.close()
        if json_output:
            click.echo(json.dumps([m.to_wire() for m in messages], indent=2))
            return
        table = Table(title=f"{first} ↔ {second} ({len(messages)} messages)")
        table.add_column("Time", style="dim")
        table.add_column("From", style="bold")
        table.add_column("Kind")
        table.add_column("Content")
        table.add_column("Read")
        for m in messages:
            table.add_row(
                m.created_at.strftime("%Y-%m-%d %H:%M:%S"), m.sender, m.kind.value, m.content,
                "✓" if m.read else "",
            )
        console.print(table)

    _run(_history())
