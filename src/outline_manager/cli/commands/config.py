"""Config command group for outline-manager CLI.

Provides configuration management subcommands.
"""

from __future__ import annotations

__all__ = ["config"]

import json

import click

from outline_manager.config import (
    AppConfig,
    get_config_path,
    get_data_file_path,
    save_app_config,
)
from outline_manager.utils.logging.logger_setup import LOG_FILENAME

from ..services import CliContext
from ..styling import style_dim, style_header, style_success


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def config_show(cli_ctx: CliContext, as_json: bool) -> None:
    """Display current configuration.

    Missing settings use built-in defaults.
    """
    loaded_config = cli_ctx.load_config()
    config_file_path = cli_ctx.config_path or get_config_path()

    if as_json:
        config_dict = loaded_config.model_dump(mode="json")
        config_dict["_computed"] = {
            "config_file": str(config_file_path),
            "data_file": str(get_data_file_path(loaded_config)),
        }
        click.echo(json.dumps(config_dict, indent=2))
        return

    click.echo(style_header("Server"))
    click.echo(f"  host: {loaded_config.host}")
    click.echo(f"  port: {loaded_config.port}")
    click.echo(f"  data_file: {get_data_file_path(loaded_config)}")
    click.echo()
    click.echo(style_header("Gateway"))
    click.echo(f"  http_timeout_seconds: {loaded_config.http_timeout_seconds}")
    click.echo(f"  pin_certificates: {loaded_config.pin_certificates}")
    click.echo()
    click.echo(style_header("Logging"))
    click.echo(f"  enabled: {loaded_config.logging.enabled}")
    click.echo(f"  log_level: {loaded_config.logging.log_level}")
    click.echo(f"  log_dir: {loaded_config.logging.log_dir or '(file logging off)'}")
    click.echo(f"  body_preview_chars: {loaded_config.logging.body_preview_chars}")
    click.echo()
    click.echo(style_dim(f"Config file: {config_file_path}"))


@config.command("path")
@click.pass_obj
def config_path(cli_ctx: CliContext) -> None:
    """Show config, data and log file locations."""
    loaded_config = cli_ctx.load_config()
    click.echo(f"Config: {cli_ctx.config_path or get_config_path()}")
    click.echo(f"Data:   {get_data_file_path(loaded_config)}")
    if loaded_config.logging.log_dir:
        click.echo(f"Log:    {loaded_config.logging.log_dir}/{LOG_FILENAME}")


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_obj
def config_init(cli_ctx: CliContext, force: bool) -> None:
    """Write a config file with default settings."""
    path = cli_ctx.config_path or get_config_path()
    if path.exists() and not force:
        raise click.ClickException(f"Config already exists: {path} (use --force to overwrite)")
    save_app_config(AppConfig(), path)
    click.echo(style_success(f"Config written to {path}"))
