"""Typed client for an Outline-compatible management API.

Every operation is one ProxyGateway.forward() against
`<apiUrl>/<endpoint>`. Endpoints and verbs are fixed by the protocol:

    list keys           GET     access-keys[?limit&offset]
    create key          POST    access-keys                   {name, dataLimit?}
    delete key          DELETE  access-keys/{id}
    rename key          PUT     access-keys/{id}/name         {name}
    set data limit      PUT     access-keys/{id}/data-limit   {bytes}
    remove data limit   DELETE  access-keys/{id}/data-limit
    server info         GET     server
    set server name     PUT     name                          {name}
    set port for keys   PUT     port-for-new-access-keys      {port}

Pagination: the remote has none. list_keys() fetches the full collection on
every call and slices [offset, offset + limit) locally, so each page costs a
transfer of the whole collection. Nothing is cached between calls.

Gateway failures raise ManagementApiError with one readable message.
"""

from __future__ import annotations

__all__ = ["ManagementApiClient"]

import logging
from typing import Any
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from outline_manager.constants import (
    ENDPOINT_ACCESS_KEYS,
    ENDPOINT_PORT_FOR_NEW_KEYS,
    ENDPOINT_SERVER,
    ENDPOINT_SERVER_NAME,
)
from outline_manager.exceptions import ManagementApiError
from outline_manager.gateway import ProxyGateway, unwrap
from outline_manager.models import KeyPage, KeyRecord, ServerInfo, ServerRecord
from outline_manager.utils.logging.logger_setup import get_component_logger

_MIN_PORT = 1
_MAX_PORT = 65535


def _key_path(key_id: str, *suffix: str) -> str:
    """access-keys/{id}[/suffix...] with the id URL-quoted."""
    return "/".join((ENDPOINT_ACCESS_KEYS, quote(str(key_id), safe=""), *suffix))


class ManagementApiClient:
    """Domain operations for one registered server.

    Usage:
        client = ManagementApiClient(server, gateway)
        page = await client.list_keys(limit=10, offset=0)
        key = await client.create_key("Bob")
    """

    def __init__(
        self,
        server: ServerRecord,
        gateway: ProxyGateway,
        *,
        pin_certificate: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        """Bind the client to a server.

        Args:
            server: Server whose apiUrl is the base of every call.
            gateway: Gateway used for transport.
            pin_certificate: Pass server.cert_sha256 to the gateway for
                fingerprint pinning on https.
            logger: Parent logger.
        """
        self._server = server
        self._gateway = gateway
        self._pin_certificate = pin_certificate
        self._base_url = server.api_url.rstrip("/")
        self._logger = get_component_logger(logger, "management")

    @property
    def server(self) -> ServerRecord:
        """Server this client is bound to."""
        return self._server

    async def _request(self, method: str, endpoint: str, data: Any = None) -> Any:
        """Forward one call and unwrap the result.

        Returns:
            Parsed JSON body, or None for an empty success.

        Raises:
            ManagementApiError: Transport, upstream or pinning failure.
        """
        url = f"{self._base_url}/{endpoint}"
        cert = self._server.cert_sha256 if self._pin_certificate else None
        result = await self._gateway.forward(method, url, data, cert_sha256=cert)
        try:
            return unwrap(result)
        except ManagementApiError as e:
            self._logger.warning(
                {
                    "event": "management_api_error",
                    "message": f"{method} {endpoint} failed on server '{self._server.name}': {e}",
                    "server_id": self._server.id,
                    "endpoint": endpoint,
                    "status_code": e.status_code,
                }
            )
            raise

    async def _fetch_keys(self, endpoint: str) -> list[KeyRecord]:
        data = await self._request("GET", endpoint)
        raw_keys = data.get("accessKeys") if isinstance(data, dict) else None
        if not raw_keys:
            return []
        try:
            return [KeyRecord.model_validate(item) for item in raw_keys]
        except ValidationError as e:
            raise ManagementApiError(f"Unexpected access key data from server: {e}") from e

    # ----------------------------------------------------------------------
    # Access keys
    # ----------------------------------------------------------------------

    async def list_keys(self, limit: int | None = None, offset: int | None = None) -> KeyPage:
        """List one page of keys.

        Args:
            limit: Page size; None (or 0) means no upper bound.
            offset: Index of the first key; None means 0.

        Returns:
            KeyPage with the slice and the size of the full collection.

        Raises:
            ValueError: If limit or offset is negative.
            ManagementApiError: If the call fails.
        """
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise ValueError("limit and offset must be non-negative")

        params: dict[str, int] = {}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        endpoint = ENDPOINT_ACCESS_KEYS
        if params:
            endpoint = f"{endpoint}?{urlencode(params)}"

        keys = await self._fetch_keys(endpoint)
        total = len(keys)

        if limit is not None or offset is not None:
            start = offset or 0
            end = start + limit if limit else None
            keys = keys[start:end]

        return KeyPage(keys=keys, total=total)

    async def list_all_keys(self) -> list[KeyRecord]:
        """List the complete key collection (no slicing)."""
        return await self._fetch_keys(ENDPOINT_ACCESS_KEYS)

    async def create_key(self, name: str, data_limit_bytes: int | None = None) -> KeyRecord:
        """Create a key. The server assigns id, port, method and accessUrl.

        Args:
            name: Key name.
            data_limit_bytes: Transfer limit; omitted when falsy.

        Returns:
            The created key.
        """
        payload: dict[str, Any] = {"name": name}
        if data_limit_bytes:
            payload["dataLimit"] = {"bytes": data_limit_bytes}

        data = await self._request("POST", ENDPOINT_ACCESS_KEYS, payload)
        try:
            return KeyRecord.model_validate(data)
        except ValidationError as e:
            raise ManagementApiError(f"Unexpected response to key creation: {e}") from e

    async def delete_key(self, key_id: str) -> None:
        """Delete a key. An empty 2xx response is success."""
        await self._request("DELETE", _key_path(key_id))

    async def rename_key(self, key_id: str, name: str) -> None:
        """Rename a key."""
        await self._request("PUT", _key_path(key_id, "name"), {"name": name})

    async def set_data_limit(self, key_id: str, data_limit_bytes: int) -> None:
        """Set a key's transfer limit in bytes."""
        if data_limit_bytes < 0:
            raise ValueError("data limit must be non-negative")
        await self._request("PUT", _key_path(key_id, "data-limit"), {"bytes": data_limit_bytes})

    async def remove_data_limit(self, key_id: str) -> None:
        """Remove a key's transfer limit."""
        await self._request("DELETE", _key_path(key_id, "data-limit"))

    # ----------------------------------------------------------------------
    # Server
    # ----------------------------------------------------------------------

    async def get_server_info(self) -> ServerInfo:
        """Fetch name, version and port for new keys."""
        data = await self._request("GET", ENDPOINT_SERVER)
        try:
            return ServerInfo.model_validate(data or {})
        except ValidationError as e:
            raise ManagementApiError(f"Unexpected server info from server: {e}") from e

    async def set_server_name(self, name: str) -> None:
        """Rename the server on the remote side.

        Raises:
            ManagementApiError: "Failed to update server name: ..."
        """
        try:
            await self._request("PUT", ENDPOINT_SERVER_NAME, {"name": name})
        except ManagementApiError as e:
            raise ManagementApiError(
                f"Failed to update server name: {e.message or 'Unknown error'}",
                kind=e.kind,
                status_code=e.status_code,
            ) from e
        self._logger.info(
            {
                "event": "server_name_updated",
                "message": f"Server name updated to: {name!r}",
                "server_id": self._server.id,
            }
        )

    async def set_server_port(self, port: int) -> None:
        """Set the port assigned to newly created keys.

        Raises:
            ValueError: If port is outside 1..65535.
            ManagementApiError: "Failed to update port for new keys: ..."
        """
        if not _MIN_PORT <= port <= _MAX_PORT:
            raise ValueError(f"Port must be between {_MIN_PORT} and {_MAX_PORT}")
        try:
            await self._request("PUT", ENDPOINT_PORT_FOR_NEW_KEYS, {"port": port})
        except ManagementApiError as e:
            raise ManagementApiError(
                f"Failed to update port for new keys: {e.message or 'Unknown error'}",
                kind=e.kind,
                status_code=e.status_code,
            ) from e
        self._logger.info(
            {
                "event": "server_port_updated",
                "message": f"Port for new keys updated to: {port}",
                "server_id": self._server.id,
            }
        )
