"""Pydantic models for outline-manager.

Persisted (durable document):
- ServerRecord: a registered relay server
- ConfigDocument: the whole durable state, {servers, revision}

Remote (management API, never persisted locally):
- KeyRecord: an access key issued by a server
- DataLimit: per-key transfer limit
- ServerInfo: GET /server response
- KeyPage: one page of keys plus the full collection size

Wire names stay camelCase (apiUrl, certSha256, accessUrl, ...); Python
attributes are snake_case. Dump with to_json_dict() to get wire names.
"""

from __future__ import annotations

__all__ = [
    "ConfigDocument",
    "DataLimit",
    "FrozenModel",
    "KeyPage",
    "KeyRecord",
    "ServerInfo",
    "ServerRecord",
    "default_server_name",
    "generate_server_id",
]

import time
import uuid
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from outline_manager.constants import IMPORTED_SERVER_NAME_PREFIX, INITIAL_REVISION


def generate_server_id() -> str:
    """Generate a unique, stable server id.

    Returns:
        32-char hex string (uuid4).
    """
    return uuid.uuid4().hex


def default_server_name() -> str:
    """Name given to imported servers that carry none (e.g., "Server 1735689600000")."""
    return f"{IMPORTED_SERVER_NAME_PREFIX} {int(time.time() * 1000)}"


class FrozenModel(BaseModel):
    """Base class for immutable models.

    Accepts both wire aliases and field names on input. Changes are made
    with model_copy(update=...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with wire names, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Remote Models
# =============================================================================


class DataLimit(FrozenModel):
    """Transfer limit of an access key.

    Attributes:
        bytes: Limit in bytes.
    """

    bytes: int = Field(ge=0)


class KeyRecord(FrozenModel):
    """Access key as reported by a server's management API.

    Extra fields the server reports are kept so a newer server does not lose
    data on the way through.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    password: str = ""
    port: int | None = None
    method: str = ""
    access_url: str = Field(default="", alias="accessUrl")
    created_at: str | None = Field(default=None, alias="createdAt")
    data_limit: DataLimit | None = Field(default=None, alias="dataLimit")


class ServerInfo(FrozenModel):
    """Server information (GET server).

    Attributes:
        name: Server display name on the remote side.
        version: Server software version.
        port_for_new_access_keys: Port assigned to newly created keys.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    name: str = ""
    version: str | None = None
    port_for_new_access_keys: int | None = Field(default=None, alias="portForNewAccessKeys")


class KeyPage(FrozenModel):
    """A page of keys sliced client-side from the full collection.

    Attributes:
        keys: Keys in [offset, offset + limit).
        total: Size of the full remote collection.
    """

    keys: list[KeyRecord]
    total: int


# =============================================================================
# Persisted Models
# =============================================================================


class ServerRecord(FrozenModel):
    """A registered relay server.

    Attributes:
        id: Unique, stable id generated at registration.
        name: Local display label.
        api_url: Management API base URL, secret path included.
        cert_sha256: SHA-256 fingerprint of the server certificate.
        port: Port for newly created keys, if known.
        count_keys: Cached key count, refreshed whenever keys are listed.
        keys: Legacy embedded key list, preserved but never used.
    """

    id: str = Field(default_factory=generate_server_id, min_length=1)
    name: str = ""
    api_url: str = Field(alias="apiUrl", min_length=1)
    cert_sha256: str = Field(alias="certSha256", min_length=1)
    port: int | None = None
    count_keys: int | None = Field(default=None, validation_alias=AliasChoices("count_keys", "countKeys"))
    keys: list[dict[str, Any]] | None = None


class ConfigDocument(FrozenModel):
    """Entire durable state, replaced as a whole on every write.

    Attributes:
        servers: Registered servers, order preserved.
        revision: Monotonic counter stamped by the durable tier on each
            accepted write. Documents written before revisions existed load
            as INITIAL_REVISION.
        unreadable: Stored server entries that are not valid ServerRecords.
            Never shown as servers, but written back verbatim after the
            valid ones so a write does not drop them.
    """

    servers: list[ServerRecord] = Field(default_factory=list)
    revision: int = Field(default=INITIAL_REVISION, ge=0)
    unreadable: list[Any] = Field(default_factory=list, exclude=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with wire names; unreadable entries follow the servers."""
        data = super().to_json_dict()
        data["servers"].extend(self.unreadable)
        return data

    def find(self, server_id: str) -> ServerRecord | None:
        """Return the server with this id, or None."""
        for server in self.servers:
            if server.id == server_id:
                return server
        return None
