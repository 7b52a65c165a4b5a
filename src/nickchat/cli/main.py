"""
nickchat CLI: `nickchat` command.

Commands:
  nickchat serve                 Run the chat server
  nickchat reset-presence        Force every stored identity offline
  nickchat history A B           Print a stored conversation
  nickchat status                Health of a running server
  nickchat roster                Connected users of a running server (debug mode)
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install nickchat[cli]")

from nickchat import __version__
from nickchat.config import Settings, get_settings

console = Console()


def _settings() -> Settings:
    return get_settings()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default=None, help="Override NICKCHAT_LOG_LEVEL")
def main(log_level):
    """nickchat: real-time one-to-one chat server."""
    _configure_logging(log_level or _settings().log_level)


# Register subcommands from separate modules
from nickchat.cli.server import serve, reset_presence, history
from nickchat.cli.admin import status, roster

main.add_command(serve)
main.add_command(reset_presence)
main.add_command(history)
main.add_command(status)
main.add_command(roster)


if __name__ == "__main__":
    main()
