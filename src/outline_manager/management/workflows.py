"""Workflows combining the management API with the server store.

Each workflow is a short sequence of remote calls followed by a local
document update. Remote and local steps are not atomic: when a later remote
call fails after an earlier one succeeded, the remote server keeps the
partial change and the local record is left as it was.
"""

from __future__ import annotations

__all__ = [
    "apply_server_settings",
    "check_connection",
    "group_keys_by_name",
    "refresh_key_count",
]

import logging

from outline_manager.exceptions import ManagementApiError
from outline_manager.gateway import ProxyGateway
from outline_manager.models import KeyRecord, ServerInfo, ServerRecord
from outline_manager.store import ConfigStore

from .client import ManagementApiClient

# Ids of throwaway records used only to reach a server once
_CHECK_SERVER_ID = "temp"
_CHECK_SERVER_NAME = "Temporary server"


async def refresh_key_count(store: ConfigStore, server: ServerRecord, total: int) -> ServerRecord:
    """Persist the cached key count if it drifted from the remote total.

    Args:
        store: Server store.
        server: Record as the caller last saw it.
        total: Key count just reported by the server.

    Returns:
        The record with count_keys == total (unchanged object if it already was).
    """
    if server.count_keys == total:
        return server
    updated = server.model_copy(update={"count_keys": total})
    await store.update(server.id, updated)
    return updated


async def apply_server_settings(
    client: ManagementApiClient,
    store: ConfigStore,
    server: ServerRecord,
    name: str,
    port: int | None = None,
) -> ServerRecord:
    """Rename the server and set its port for new keys, then save locally.

    Only fields that changed are sent. The name is sent before the port.

    Args:
        client: Client bound to server.
        store: Server store.
        server: Current record.
        name: New display name.
        port: New port for new keys; None keeps the current one.

    Returns:
        The updated record as saved.

    Raises:
        ManagementApiError: "Failed to update server settings: ..." when a
            remote call fails. Nothing is saved locally in that case.
    """
    try:
        if name != server.name:
            await client.set_server_name(name)
        if port and port != server.port:
            await client.set_server_port(port)
    except ManagementApiError as e:
        raise ManagementApiError(
            f"Failed to update server settings: {e.message}",
            kind=e.kind,
            status_code=e.status_code,
        ) from e

    updated = server.model_copy(update={"name": name, "port": port or server.port})
    await store.update(server.id, updated)
    return updated


def group_keys_by_name(keys: list[KeyRecord]) -> dict[str, list[KeyRecord]]:
    """Group keys by trimmed name, largest group first.

    Groups of equal size keep the order in which their first key appeared.
    """
    grouped: dict[str, list[KeyRecord]] = {}
    for key in keys:
        grouped.setdefault(key.name.strip(), []).append(key)
    return dict(sorted(grouped.items(), key=lambda item: len(item[1]), reverse=True))


async def check_connection(
    gateway: ProxyGateway,
    api_url: str,
    cert_sha256: str,
    *,
    pin_certificate: bool = True,
    logger: logging.Logger | None = None,
) -> ServerInfo:
    """Fetch server info for an unregistered server.

    Used to test a URL and fingerprint before registering them.

    Raises:
        ManagementApiError: If the server cannot be reached or rejects the call.
    """
    candidate = ServerRecord(
        id=_CHECK_SERVER_ID,
        name=_CHECK_SERVER_NAME,
        api_url=api_url,
        cert_sha256=cert_sha256,
    )
    client = ManagementApiClient(candidate, gateway, pin_certificate=pin_certificate, logger=logger)
    return await client.get_server_info()
