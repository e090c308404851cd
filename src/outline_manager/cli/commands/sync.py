"""Sync command group for outline-manager CLI.

Only meaningful with --remote: the serving process's document is the
durable tier and this CLI process holds the cache.
"""

from __future__ import annotations

__all__ = ["sync"]

import click

from outline_manager.models import ConfigDocument

from ..services import CliContext, open_services, run
from ..styling import style_label, style_success, style_warning


def _require_remote(cli_ctx: CliContext) -> None:
    if not cli_ctx.remote:
        raise click.UsageError("sync commands need --remote URL (a running 'outline-manager serve')")


@click.group()
def sync() -> None:
    """Reconcile the local cache with a remote durable store."""
    pass


@sync.command("status")
@click.pass_obj
def sync_status(cli_ctx: CliContext) -> None:
    """Show the durable document's revision and server count."""
    _require_remote(cli_ctx)

    async def _status() -> tuple[ConfigDocument, bool]:
        async with open_services(cli_ctx) as services:
            assert services.store.sync is not None
            return await services.store.read(), services.store.sync.pending

    doc, pending = run(_status())
    click.echo(style_label("Remote") + f" {cli_ctx.remote}")
    click.echo(style_label("Revision") + f" {doc.revision}")
    click.echo(style_label("Servers") + f" {len(doc.servers)}")
    if pending:
        click.echo(style_warning("local changes not yet pushed"))


@sync.command("pull")
@click.option("--force", is_flag=True, help="Discard unpushed local changes")
@click.pass_obj
def sync_pull(cli_ctx: CliContext, force: bool) -> None:
    """Copy the durable document over the cache."""
    _require_remote(cli_ctx)

    async def _pull() -> ConfigDocument | None:
        async with open_services(cli_ctx) as services:
            assert services.store.sync is not None
            if not await services.store.sync.pull(force=force):
                return None
            return await services.store.read()

    doc = run(_pull())
    if doc is None:
        raise click.ClickException("Pull skipped: local changes not yet pushed (use --force to discard them)")
    click.echo(style_success(f"Pulled revision {doc.revision} ({len(doc.servers)} servers)"))


@sync.command("push")
@click.option("--force", is_flag=True, help="Overwrite the durable document even if it changed")
@click.pass_obj
def sync_push(cli_ctx: CliContext, force: bool) -> None:
    """Write the cache to the durable document (compare-and-swap on revision)."""
    _require_remote(cli_ctx)

    async def _push() -> ConfigDocument:
        async with open_services(cli_ctx) as services:
            assert services.store.sync is not None
            return await services.store.sync.push(force=force)

    doc = run(_push())
    click.echo(style_success(f"Pushed, durable document at revision {doc.revision}"))
