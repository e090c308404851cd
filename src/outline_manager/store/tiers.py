"""Storage tiers holding a ConfigDocument.

Durable tiers (authoritative, stamp revisions):
- FileTier: the JSON document on disk, owned by the serving process
- RemoteTier: the same document reached over the /api/servers boundary

Cache tier (fast, ephemeral, never stamps revisions):
- MemoryTier: in-process copy, gone when the process exits

load() never fails on a bad document: a missing or unparsable one reads as
empty, and invalid server entries are logged as document_corrupt and carried
in ConfigDocument.unreadable. RemoteTier.load() raises
DurableTierError only when the boundary cannot be reached.
"""

from __future__ import annotations

__all__ = [
    "DocumentTier",
    "DurableTier",
    "FileTier",
    "MemoryTier",
    "RemoteTier",
    "SERVERS_ENDPOINT",
    "parse_document",
]

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from outline_manager.constants import DEFAULT_HTTP_TIMEOUT_SECONDS, INITIAL_REVISION
from outline_manager.exceptions import DurableTierError, RevisionConflictError
from outline_manager.models import ConfigDocument, ServerRecord
from outline_manager.utils.file_helpers import write_json_atomic
from outline_manager.utils.logging.logger_setup import get_component_logger

# Path of the durable store boundary on the serving process
SERVERS_ENDPOINT = "/api/servers"


class DocumentTier(Protocol):
    """Anything that stores one ConfigDocument."""

    name: str

    async def load(self) -> ConfigDocument: ...

    async def save(self, doc: ConfigDocument) -> ConfigDocument: ...


class DurableTier(DocumentTier, Protocol):
    """Authoritative tier supporting compare-and-swap writes."""

    async def compare_and_swap(self, doc: ConfigDocument, expected_revision: int) -> ConfigDocument: ...


def parse_document(raw: Any, *, source: str, logger: logging.Logger) -> ConfigDocument:
    """Validate raw JSON data as a ConfigDocument.

    Server entries are validated one at a time. An invalid entry is logged
    and carried in ConfigDocument.unreadable, so the valid ones still load
    and the next write keeps it. Anything that is not a document at all
    reads as empty.

    Args:
        raw: Decoded JSON.
        source: Where the data came from (for the log entry).
        logger: Logger for the document_corrupt events.
    """
    entries = raw.get("servers", []) if isinstance(raw, dict) else None
    if not isinstance(entries, list):
        logger.warning(
            {
                "event": "document_corrupt",
                "message": f"Invalid server document in {source}, treating as empty",
                "source": source,
            }
        )
        return ConfigDocument()

    try:
        doc = ConfigDocument.model_validate({"revision": raw.get("revision", INITIAL_REVISION)})
    except ValidationError as e:
        logger.warning(
            {
                "event": "document_corrupt",
                "message": f"Invalid revision in {source}, treating as empty",
                "source": source,
                "error_message": str(e),
            }
        )
        return ConfigDocument()

    servers: list[ServerRecord] = []
    unreadable: list[Any] = []
    for index, entry in enumerate(entries):
        try:
            servers.append(ServerRecord.model_validate(entry))
        except ValidationError as e:
            unreadable.append(entry)
            logger.warning(
                {
                    "event": "document_corrupt",
                    "message": f"Invalid server entry #{index + 1} in {source}, kept as is",
                    "source": source,
                    "entry_index": index,
                    "error_message": str(e),
                }
            )
    return doc.model_copy(update={"servers": servers, "unreadable": unreadable})


class FileTier:
    """Durable tier backed by a single JSON file.

    Every write replaces the whole file atomically and stamps
    revision = current + 1.
    """

    name = "file"

    def __init__(self, path: Path, *, logger: logging.Logger | None = None) -> None:
        self._path = path
        self._logger = get_component_logger(logger, "store.file")

    @property
    def path(self) -> Path:
        """Location of the document."""
        return self._path

    def _read(self) -> ConfigDocument:
        if not self._path.exists():
            return ConfigDocument()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self._logger.warning(
                {
                    "event": "document_corrupt",
                    "message": f"Unreadable server document, treating as empty: {e}",
                    "source": str(self._path),
                    "error_type": type(e).__name__,
                }
            )
            return ConfigDocument()
        return parse_document(raw, source=str(self._path), logger=self._logger)

    def _write(self, doc: ConfigDocument, current: ConfigDocument) -> ConfigDocument:
        stored = doc.model_copy(update={"revision": current.revision + 1})
        write_json_atomic(self._path, stored.to_json_dict())
        self._logger.info(
            {
                "event": "document_saved",
                "message": f"Server document saved ({len(stored.servers)} servers, revision {stored.revision})",
                "path": str(self._path),
                "revision": stored.revision,
            }
        )
        return stored

    async def load(self) -> ConfigDocument:
        """Read the document; missing or unparsable reads as empty."""
        return self._read()

    async def save(self, doc: ConfigDocument) -> ConfigDocument:
        """Replace the document unconditionally (last write wins).

        Returns:
            The stored document with its new revision.
        """
        return self._write(doc, self._read())

    async def compare_and_swap(self, doc: ConfigDocument, expected_revision: int) -> ConfigDocument:
        """Replace the document only if it is still at expected_revision.

        Raises:
            RevisionConflictError: If another writer got there first.
        """
        current = self._read()
        if current.revision != expected_revision:
            raise RevisionConflictError(expected_revision, current.revision)
        return self._write(doc, current)


class MemoryTier:
    """Cache tier held in process memory."""

    name = "memory"

    def __init__(self, doc: ConfigDocument | None = None) -> None:
        self._doc = doc

    async def load(self) -> ConfigDocument:
        """Return the cached document, or an empty one."""
        if self._doc is None:
            return ConfigDocument()
        return self._doc.model_copy(deep=True)

    async def save(self, doc: ConfigDocument) -> ConfigDocument:
        """Cache the document as given (revision untouched)."""
        self._doc = doc.model_copy(deep=True)
        return doc

    def clear(self) -> None:
        """Drop the cached document."""
        self._doc = None


class RemoteTier:
    """Durable tier reached through a serving process's /api/servers boundary.

    Usage:
        async with RemoteTier("http://127.0.0.1:3000") as durable:
            doc = await durable.load()
    """

    name = "remote"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = get_component_logger(logger, "store.remote")
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "RemoteTier":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _send(self, method: str, payload: dict[str, Any] | None = None) -> httpx.Response:
        try:
            return await self._client.request(method, SERVERS_ENDPOINT, json=payload)
        except httpx.HTTPError as e:
            self._logger.warning(
                {
                    "event": "durable_unreachable",
                    "message": f"Durable store unreachable: {e}",
                    "method": method,
                    "error_type": type(e).__name__,
                }
            )
            raise DurableTierError(f"Durable store unreachable: {str(e) or type(e).__name__}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return response.reason_phrase

    async def load(self) -> ConfigDocument:
        """Fetch the document.

        Raises:
            DurableTierError: If the boundary is unreachable or answers non-2xx.
        """
        response = await self._send("GET")
        if response.status_code >= 400:
            raise DurableTierError(f"HTTP Error: {response.status_code} {self._error_message(response)}")
        try:
            raw = response.json()
        except ValueError:
            raw = None
        return parse_document(raw, source=SERVERS_ENDPOINT, logger=self._logger)

    def _stored(self, doc: ConfigDocument, response: httpx.Response) -> ConfigDocument:
        if response.status_code >= 400:
            raise DurableTierError(f"HTTP Error: {response.status_code} {self._error_message(response)}")
        try:
            revision = int(response.json()["revision"])
        except (ValueError, KeyError, TypeError) as e:
            raise DurableTierError("Durable store did not acknowledge a revision") from e
        return doc.model_copy(update={"revision": revision})

    async def save(self, doc: ConfigDocument) -> ConfigDocument:
        """Replace the document unconditionally (POST)."""
        payload = doc.to_json_dict()
        payload.pop("revision", None)
        response = await self._send("POST", payload)
        return self._stored(doc, response)

    async def compare_and_swap(self, doc: ConfigDocument, expected_revision: int) -> ConfigDocument:
        """Replace the document if it is still at expected_revision (PUT).

        Raises:
            RevisionConflictError: Boundary answered 409.
            DurableTierError: Boundary unreachable or other error status.
        """
        payload = doc.to_json_dict()
        payload["revision"] = expected_revision
        response = await self._send("PUT", payload)
        if response.status_code == 409:
            try:
                actual = int(response.json()["revision"])
            except (ValueError, KeyError, TypeError):
                actual = -1
            raise RevisionConflictError(expected_revision, actual)
        return self._stored(doc, response)
