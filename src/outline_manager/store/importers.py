"""Parse server registrations from import payloads.

Accepted formats:
- text: first line of the form `apiUrl,certSha256` (access.txt)
- JSON: `{name?, apiUrl, certSha256, port?}`, or a list of such objects

Parsing never touches the store; a rejected payload leaves it unchanged.
"""

from __future__ import annotations

__all__ = [
    "ServerImport",
    "parse_access_text",
    "parse_server_json",
]

import json

from pydantic import Field, ValidationError, field_validator

from outline_manager.exceptions import ImportFormatError
from outline_manager.models import FrozenModel


class ServerImport(FrozenModel):
    """A server registration before it gets an id.

    Attributes:
        api_url: Management API URL.
        cert_sha256: Certificate fingerprint.
        name: Display name, if the payload had one.
        port: Port for new keys, if the payload had one.
    """

    api_url: str = Field(alias="apiUrl", min_length=1)
    cert_sha256: str = Field(alias="certSha256", min_length=1)
    name: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)

    @field_validator("api_url", "cert_sha256")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _blank_name_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _zero_port_is_none(cls, value: object) -> object:
        if value in (0, "", None):
            return None
        return value


def parse_access_text(text: str) -> ServerImport | None:
    """Parse `apiUrl,certSha256` from the first line that has both.

    Args:
        text: File content.

    Returns:
        The registration, or None when no line matches.
    """
    for line in text.splitlines():
        parts = line.split(",")
        if len(parts) < 2:
            continue
        api_url, cert_sha256 = parts[0].strip(), parts[1].strip()
        if api_url and cert_sha256:
            return ServerImport(api_url=api_url, cert_sha256=cert_sha256)
    return None


def parse_server_json(text: str) -> list[ServerImport]:
    """Parse one server object or a list of them.

    Args:
        text: JSON content.

    Returns:
        Registrations in payload order.

    Raises:
        ImportFormatError: Not JSON, wrong shape, or missing apiUrl/certSha256.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Invalid JSON: {e}") from e

    items = data if isinstance(data, list) else [data]
    if not items:
        raise ImportFormatError("No servers in import")

    imports: list[ServerImport] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ImportFormatError(f"Server #{index + 1} is not a JSON object")
        try:
            imports.append(ServerImport.model_validate(item))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ImportFormatError(f"Server #{index + 1} is invalid ({fields})") from e
    return imports
