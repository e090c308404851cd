"""Main CLI entry point for outline-manager.

Defines the CLI group and registers all subcommands.

Commands:
    config   - Configuration management (show, path, init)
    keys     - Access keys on a server (list, create, delete, rename, limit, unlimit)
    serve    - Serve the HTTP API
    server   - Remote server settings (info, set, check)
    servers  - Registered servers (list, add, import, remove, rename)
    sync     - Cache/durable reconciliation with --remote (status, pull, push)

Subcommand help:
    outline-manager COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys
from pathlib import Path

import click

from outline_manager import __version__

from .commands.config import config
from .commands.keys import keys
from .commands.serve import serve
from .commands.server import server
from .commands.servers import servers
from .commands.sync import sync
from .services import CliContext


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  outline-manager servers import access.txt     Register a server from its access.txt
  outline-manager servers list                  Show registered servers
  outline-manager keys list <server>            List keys (--limit/--offset to page)
  outline-manager keys create <server> Bob      Create a key

Serving the HTTP API:
  outline-manager serve --port 3000

Working against a running server's document (client context):
  outline-manager --remote http://127.0.0.1:3000 servers list
  outline-manager --remote http://127.0.0.1:3000 sync status
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: OS app directory)",
)
@click.option(
    "--remote",
    metavar="URL",
    default=None,
    help="Use the servers document of a running 'serve' at URL",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, config_path: Path | None, remote: str | None) -> None:
    """outline-manager: manage Outline VPN servers and their access keys."""
    if version:
        click.echo(f"outline-manager {__version__}")
        sys.exit(0)

    cli_ctx = ctx.ensure_object(CliContext)
    if config_path is not None:
        cli_ctx.config_path = config_path
    if remote is not None:
        cli_ctx.remote = remote

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(config)
cli.add_command(keys)
cli.add_command(serve)
cli.add_command(server)
cli.add_command(servers)
cli.add_command(sync)


def main() -> None:
    """CLI entry point."""
    cli()
