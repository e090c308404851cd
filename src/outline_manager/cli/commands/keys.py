"""Keys command group for outline-manager CLI.

Access keys live on the remote server; every command is a live call
through the management API. Commands that learn the key total update the
server's cached key count.
"""

from __future__ import annotations

__all__ = ["keys"]

import json

import click

from outline_manager.management import group_keys_by_name, refresh_key_count
from outline_manager.models import KeyPage, KeyRecord

from ..services import CliContext, open_services, run
from ..styling import style_dim, style_header, style_label, style_success


def _echo_key(key: KeyRecord, indent: str = "  ") -> None:
    limit = f"  limit: {key.data_limit.bytes} B" if key.data_limit is not None else ""
    click.echo(f"{indent}{key.id}  {key.name or '(unnamed)'}{style_dim(limit)}")
    click.echo(style_dim(f"{indent}  {key.access_url}"))


@click.group()
def keys() -> None:
    """Manage access keys on a server.

    SERVER is a server id or a unique server name.
    """
    pass


@keys.command("list")
@click.argument("server_ref", metavar="SERVER")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Page size (0 = no limit)")
@click.option("--offset", type=click.IntRange(min=0), default=None, help="Index of the first key")
@click.option("--grouped", is_flag=True, help="Group all keys by name, largest group first")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def keys_list(
    cli_ctx: CliContext,
    server_ref: str,
    limit: int | None,
    offset: int | None,
    grouped: bool,
    as_json: bool,
) -> None:
    """List access keys.

    The server has no paging: each call fetches every key and the page is
    cut locally.
    """

    async def _list() -> KeyPage:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            client = services.client_for(server)
            if grouped:
                all_keys = await client.list_all_keys()
                page = KeyPage(keys=all_keys, total=len(all_keys))
            else:
                page = await client.list_keys(limit=limit, offset=offset)
            await refresh_key_count(services.store, server, page.total)
            return page

    page = run(_list())

    if as_json:
        payload = {"keys": [k.to_json_dict() for k in page.keys], "total": page.total}
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(style_label("Keys") + f" {len(page.keys)} of {page.total}")
    if not page.keys:
        click.echo(style_dim("No keys on this page."))
        return

    if grouped:
        for name, group in group_keys_by_name(page.keys).items():
            click.echo()
            click.echo(style_header(f"{name or '(unnamed)'} ({len(group)})"))
            for key in group:
                _echo_key(key, indent="    ")
        return

    click.echo()
    for key in page.keys:
        _echo_key(key)


@keys.command("create")
@click.argument("server_ref", metavar="SERVER")
@click.argument("name")
@click.option("--data-limit", type=click.IntRange(min=1), default=None, help="Transfer limit in bytes")
@click.pass_obj
def keys_create(cli_ctx: CliContext, server_ref: str, name: str, data_limit: int | None) -> None:
    """Create an access key."""

    async def _create() -> KeyRecord:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            client = services.client_for(server)
            key = await client.create_key(name, data_limit)
            total = len(await client.list_all_keys())
            await refresh_key_count(services.store, server, total)
            return key

    key = run(_create())
    click.echo(style_success(f"Key '{key.name}' created"))
    _echo_key(key)


@keys.command("delete")
@click.argument("server_ref", metavar="SERVER")
@click.argument("key_id")
@click.pass_obj
def keys_delete(cli_ctx: CliContext, server_ref: str, key_id: str) -> None:
    """Delete an access key."""

    async def _delete() -> None:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            client = services.client_for(server)
            await client.delete_key(key_id)
            total = len(await client.list_all_keys())
            await refresh_key_count(services.store, server, total)

    run(_delete())
    click.echo(style_success(f"Key {key_id} deleted"))


@keys.command("rename")
@click.argument("server_ref", metavar="SERVER")
@click.argument("key_id")
@click.argument("name")
@click.pass_obj
def keys_rename(cli_ctx: CliContext, server_ref: str, key_id: str, name: str) -> None:
    """Rename an access key."""

    async def _rename() -> None:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            await services.client_for(server).rename_key(key_id, name)

    run(_rename())
    click.echo(style_success(f"Key {key_id} renamed to '{name}'"))


@keys.command("limit")
@click.argument("server_ref", metavar="SERVER")
@click.argument("key_id")
@click.argument("data_limit", type=click.IntRange(min=0), metavar="BYTES")
@click.pass_obj
def keys_limit(cli_ctx: CliContext, server_ref: str, key_id: str, data_limit: int) -> None:
    """Set a key's transfer limit in bytes."""

    async def _limit() -> None:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            await services.client_for(server).set_data_limit(key_id, data_limit)

    run(_limit())
    click.echo(style_success(f"Key {key_id} limited to {data_limit} bytes"))


@keys.command("unlimit")
@click.argument("server_ref", metavar="SERVER")
@click.argument("key_id")
@click.pass_obj
def keys_unlimit(cli_ctx: CliContext, server_ref: str, key_id: str) -> None:
    """Remove a key's transfer limit."""

    async def _unlimit() -> None:
        async with open_services(cli_ctx) as services:
            server = await services.find_server(server_ref)
            await services.client_for(server).remove_data_limit(key_id)

    run(_unlimit())
    click.echo(style_success(f"Key {key_id} limit removed"))
