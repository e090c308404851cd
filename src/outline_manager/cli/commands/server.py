"""Server command group for outline-manager CLI.

Reads and changes settings on the remote server itself.
"""

from __future__ import annotations

__all__ = ["server"]

import json

import click

from outline_manager.management import apply_server_settings, check_connection
from outline_manager.models import ServerInfo, ServerRecord

from ..services import CliContext, open_services, run
from ..styling import style_header, style_success


def _echo_info(info: ServerInfo) -> None:
    click.echo(f"  name:                 {info.name}")
    click.echo(f"  version:              {info.version or '?'}")
    port = info.port_for_new_access_keys
    click.echo(f"  port for new keys:    {port if port is not None else '?'}")


@click.group()
def server() -> None:
    """Inspect and configure a remote server.

    SERVER is a server id or a unique server name.
    """
    pass


@server.command("info")
@click.argument("server_ref", metavar="SERVER")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def server_info(cli_ctx: CliContext, server_ref: str, as_json: bool) -> None:
    """Show name, version and port for new keys."""

    async def _info() -> ServerInfo:
        async with open_services(cli_ctx) as services:
            record = await services.find_server(server_ref)
            return await services.client_for(record).get_server_info()

    info = run(_info())
    if as_json:
        click.echo(json.dumps(info.to_json_dict(), indent=2))
        return
    click.echo(style_header("Server"))
    _echo_info(info)


@server.command("set")
@click.argument("server_ref", metavar="SERVER")
@click.option("--name", default=None, help="New server name")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Port for new keys")
@click.pass_obj
def server_set(cli_ctx: CliContext, server_ref: str, name: str | None, port: int | None) -> None:
    """Rename the server and/or set its port for new keys.

    The name is changed first. If changing the port then fails, the remote
    name is already updated while the local record keeps the old values.
    """
    if name is None and port is None:
        raise click.UsageError("Nothing to change: give --name and/or --port")

    async def _set() -> ServerRecord:
        async with open_services(cli_ctx) as services:
            record = await services.find_server(server_ref)
            return await apply_server_settings(
                services.client_for(record),
                services.store,
                record,
                record.name if name is None else name,
                port,
            )

    updated = run(_set())
    click.echo(style_success("Server settings updated"))
    click.echo(f"  name: {updated.name}")
    if updated.port is not None:
        click.echo(f"  port: {updated.port}")


@server.command("check")
@click.option("--api-url", required=True, help="Management API URL")
@click.option("--cert", "cert_sha256", required=True, help="certSha256 fingerprint")
@click.pass_obj
def server_check(cli_ctx: CliContext, api_url: str, cert_sha256: str) -> None:
    """Test a URL and fingerprint without registering them."""

    async def _check() -> ServerInfo:
        async with open_services(cli_ctx) as services:
            return await check_connection(
                services.gateway,
                api_url,
                cert_sha256,
                pin_certificate=services.config.pin_certificates,
                logger=services.logger,
            )

    info = run(_check())
    click.echo(style_success("Connection OK"))
    _echo_info(info)
