"""Servers command group for outline-manager CLI.

Local registrations only: nothing here changes a remote server.
"""

from __future__ import annotations

__all__ = ["servers"]

import json
from pathlib import Path

import click

from outline_manager.exceptions import ImportFormatError
from outline_manager.management import check_connection
from outline_manager.models import ServerRecord
from outline_manager.state import ServerState
from outline_manager.store import ServerImport, parse_access_text, parse_server_json

from ..services import CliContext, CommandError, open_services, run
from ..styling import style_dim, style_header, style_label, style_success


def _echo_server(server: ServerRecord) -> None:
    keys = "?" if server.count_keys is None else str(server.count_keys)
    click.echo(f"  {server.name or '(unnamed)'}")
    click.echo(style_dim(f"    id:    {server.id}"))
    click.echo(style_dim(f"    keys:  {keys}"))
    if server.port is not None:
        click.echo(style_dim(f"    port:  {server.port}"))


def _read_imports(path: Path, fmt: str) -> list[ServerImport]:
    """Parse an import file as access.txt text or server JSON."""
    text = path.read_text(encoding="utf-8")
    if fmt == "auto":
        fmt = "json" if path.suffix.lower() == ".json" else "text"
    if fmt == "json":
        return parse_server_json(text)
    item = parse_access_text(text)
    if item is None:
        raise ImportFormatError("No line of the form apiUrl,certSha256 found")
    return [item]


@click.group()
def servers() -> None:
    """Manage registered servers."""
    pass


@servers.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def servers_list(cli_ctx: CliContext, as_json: bool) -> None:
    """List registered servers."""

    async def _list() -> list[ServerRecord]:
        async with open_services(cli_ctx) as services:
            state = ServerState(services.store, logger=services.logger)
            await state.load_servers()
            if state.error:
                raise CommandError(state.error)
            return state.servers

    registered = run(_list())

    if as_json:
        click.echo(json.dumps([s.to_json_dict() for s in registered], indent=2))
        return

    if not registered:
        click.echo(style_dim("No servers registered."))
        click.echo(style_dim("Run 'outline-manager servers add' or 'servers import' to add one."))
        return

    click.echo(style_header("Servers"))
    click.echo()
    for server in registered:
        _echo_server(server)
    click.echo()


@servers.command("add")
@click.option("--name", default="", help="Display name")
@click.option("--api-url", required=True, help="Management API URL (from the server's access.txt)")
@click.option("--cert", "cert_sha256", required=True, help="certSha256 fingerprint")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Port for new keys")
@click.option("--check", is_flag=True, help="Fetch server info before registering")
@click.pass_obj
def servers_add(
    cli_ctx: CliContext,
    name: str,
    api_url: str,
    cert_sha256: str,
    port: int | None,
    check: bool,
) -> None:
    """Register a server."""

    async def _add() -> ServerRecord:
        async with open_services(cli_ctx) as services:
            if check:
                info = await check_connection(
                    services.gateway,
                    api_url,
                    cert_sha256,
                    pin_certificate=services.config.pin_certificates,
                    logger=services.logger,
                )
                resolved_name = name or info.name
                resolved_port = port or info.port_for_new_access_keys
            else:
                resolved_name, resolved_port = name, port
            return await services.store.register(resolved_name, api_url, cert_sha256, resolved_port)

    server = run(_add())
    click.echo(style_success(f"Server '{server.name}' registered"))
    click.echo(f"  id: {server.id}")


@servers.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["auto", "text", "json"]),
    default="auto",
    show_default=True,
    help="text: access.txt line apiUrl,certSha256; json: object or list of {name?, apiUrl, certSha256, port?}",
)
@click.pass_obj
def servers_import(cli_ctx: CliContext, path: Path, fmt: str) -> None:
    """Register servers from an access.txt or JSON file.

    The file is parsed completely before anything is written.
    """
    try:
        imports = _read_imports(path, fmt)
    except (ImportFormatError, UnicodeDecodeError) as e:
        raise CommandError(f"Import rejected: {e}") from e

    async def _import() -> list[ServerRecord]:
        async with open_services(cli_ctx) as services:
            return [await services.store.register_import(item) for item in imports]

    registered = run(_import())
    click.echo(style_success(f"Imported {len(registered)} server(s)"))
    for server in registered:
        click.echo(f"  {server.name}  {style_dim(server.id)}")


@servers.command("remove")
@click.argument("server_ref")
@click.pass_obj
def servers_remove(cli_ctx: CliContext, server_ref: str) -> None:
    """Remove a registration. The remote server and its keys are untouched."""

    async def _remove() -> ServerRecord:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            state = ServerState(services.store, logger=services.logger)
            await state.delete_server(server.id)
            if state.error:
                raise CommandError(state.error)
            return server

    server = run(_remove())
    click.echo(style_success(f"Server '{server.name}' removed"))


@servers.command("rename")
@click.argument("server_ref")
@click.argument("name")
@click.pass_obj
def servers_rename(cli_ctx: CliContext, server_ref: str, name: str) -> None:
    """Change the local display name only.

    Use 'server set --name' to rename the server itself.
    """

    async def _rename() -> ServerRecord:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            updated = server.model_copy(update={"name": name})
            state = ServerState(services.store, logger=services.logger)
            await state.update_server(server.id, updated)
            if state.error:
                raise CommandError(state.error)
            return updated

    updated = run(_rename())
    click.echo(style_success(f"Server renamed to '{updated.name}'"))
    click.echo(style_label("id") + f" {updated.id}")
