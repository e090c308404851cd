"""Serve command for outline-manager CLI.

Runs the HTTP boundaries (proxy, servers document, connection test) in the
foreground. This process owns the durable document.
"""

from __future__ import annotations

__all__ = ["serve"]

import asyncio
import logging

import click
import uvicorn

from outline_manager.api import create_app
from outline_manager.config import get_data_file_path
from outline_manager.utils.logging.logger_setup import configure_logging

from ..services import CliContext
from ..styling import style_label, style_warning


@click.command()
@click.option("--host", default=None, help="Bind address (default: config value)")
@click.option("--port", "-p", type=click.IntRange(1024, 65535), default=None, help="HTTP port (default: config value)")
@click.pass_obj
def serve(cli_ctx: CliContext, host: str | None, port: int | None) -> None:
    """Serve the HTTP API in the foreground."""
    config = cli_ctx.load_config()
    updates = {k: v for k, v in (("host", host), ("port", port)) if v is not None}
    if updates:
        config = config.model_copy(update=updates)

    logger = configure_logging(config.logging, console=True)

    # Suppress uvicorn's logging (we use our own)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    app = create_app(config, logger=logger)

    click.echo(style_label("Serving") + f" http://{config.host}:{config.port}")
    click.echo(f"  Servers document: {get_data_file_path(config)}")
    if not config.pin_certificates:
        click.echo(style_warning("certificate pinning is disabled"))
    click.echo()
    click.echo("Press Ctrl+C to stop")

    http_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_config=None,
        ws="none",
    )
    try:
        asyncio.run(uvicorn.Server(http_config).serve())
    except KeyboardInterrupt:
        click.echo()
        click.echo("Server stopped.")
