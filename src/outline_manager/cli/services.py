"""Service wiring for CLI commands.

Commands get a CliContext from the click context (global options) and open
the services they need with open_services(). Library errors are turned into
click.ClickException by run() so commands print one readable line and exit 1.

Execution context:
- default: owner context, the durable document file from config
- --remote URL: client context, a serving process's /api/servers as the
  durable tier with an in-memory cache, pulled on open
"""

from __future__ import annotations

__all__ = [
    "CliContext",
    "CommandError",
    "ServerNotFoundError",
    "Services",
    "open_services",
    "run",
]

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click
import httpx
from pydantic import ValidationError

from outline_manager.config import AppConfig, get_data_file_path, load_app_config_strict
from outline_manager.exceptions import ConfigurationError, OutlineManagerError
from outline_manager.gateway import ProxyGateway
from outline_manager.management import ManagementApiClient
from outline_manager.models import ServerRecord
from outline_manager.store import ConfigStore, FileTier, MemoryTier, RemoteTier
from outline_manager.utils.logging.logger_setup import configure_logging

T = TypeVar("T")


class CommandError(click.ClickException):
    """Raised when a command fails with a library error."""


class ServerNotFoundError(click.ClickException):
    """Raised when a server reference matches no registered server."""

    def __init__(self, server_ref: str) -> None:
        super().__init__(
            f"No server matches '{server_ref}'.\nRun 'outline-manager servers list' to see registered servers."
        )
        self.server_ref = server_ref


@dataclass
class CliContext:
    """Global CLI options, stored as the click context object.

    Attributes:
        config_path: --config override. None means the default location.
        remote: --remote base URL selecting the client context.
        transport: HTTP transport for every outgoing request (tests only).
    """

    config_path: Path | None = None
    remote: str | None = None
    transport: httpx.AsyncBaseTransport | None = None

    def load_config(self) -> AppConfig:
        """Load config strictly; invalid config aborts the command."""
        try:
            return load_app_config_strict(self.config_path)
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e


@dataclass
class Services:
    """Everything a command needs, built from config."""

    config: AppConfig
    logger: logging.Logger
    store: ConfigStore
    gateway: ProxyGateway

    def client_for(self, server: ServerRecord) -> ManagementApiClient:
        """Management API client for a registered server."""
        return ManagementApiClient(
            server,
            self.gateway,
            pin_certificate=self.config.pin_certificates,
            logger=self.logger,
        )

    async def find_server(self, server_ref: str) -> ServerRecord:
        """Resolve a server by id, or by name when the name is unique.

        Raises:
            ServerNotFoundError: No server has this id or name.
            click.ClickException: The name matches more than one server.
        """
        doc = await self.store.read()
        by_id = doc.find(server_ref)
        if by_id is not None:
            return by_id

        by_name = [s for s in doc.servers if s.name == server_ref]
        if len(by_name) > 1:
            ids = ", ".join(s.id for s in by_name)
            raise click.ClickException(f"Several servers are named '{server_ref}' ({ids}). Use the server id.")
        if not by_name:
            raise ServerNotFoundError(server_ref)
        return by_name[0]


@asynccontextmanager
async def open_services(cli_ctx: CliContext) -> AsyncIterator[Services]:
    """Build services for one command and close them afterwards.

    In the client context the cache is pulled from the durable tier before
    the command runs.
    """
    config = cli_ctx.load_config()
    logger = configure_logging(config.logging, console=False)

    remote_tier: RemoteTier | None = None
    if cli_ctx.remote:
        remote_tier = RemoteTier(
            cli_ctx.remote,
            timeout=config.http_timeout_seconds,
            transport=cli_ctx.transport,
            logger=logger,
        )
        store = ConfigStore(remote_tier, cache=MemoryTier(), logger=logger)
    else:
        store = ConfigStore(FileTier(get_data_file_path(config), logger=logger), logger=logger)

    gateway = ProxyGateway(
        timeout=config.http_timeout_seconds,
        body_preview_chars=config.logging.body_preview_chars,
        logger=logger,
        transport=cli_ctx.transport,
    )
    try:
        if store.sync is not None and not await store.sync.pull():
            raise click.ClickException(f"Could not load servers from {cli_ctx.remote}")
        yield Services(config=config, logger=logger, store=store, gateway=gateway)
    finally:
        await gateway.aclose()
        if remote_tier is not None:
            await remote_tier.aclose()


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning library errors into CommandError."""
    try:
        return asyncio.run(coro)
    except (OutlineManagerError, ValidationError, ValueError) as e:
        raise CommandError(str(e)) from e
