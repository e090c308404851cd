"""Canonical list of registered servers over two storage tiers.

Execution contexts:
- owner context (no cache tier): the process that owns the durable file
  reads and writes it directly; writes are unconditional (last write wins).
- client context (cache tier given): reads come from the cache; writes go to
  the cache, then are pushed to the durable tier on a best-effort basis.

Mutations are read -> mutate -> write of the whole document, serialized per
store so overlapping writes apply in call order. update() and
remove() are silent no-ops for unknown ids, so callers should use the
returned document rather than assume the change happened.
"""

from __future__ import annotations

__all__ = ["ConfigStore"]

import asyncio
import logging

from outline_manager.exceptions import DurableTierError, RevisionConflictError
from outline_manager.models import ConfigDocument, ServerRecord, default_server_name
from outline_manager.utils.logging.logger_setup import get_component_logger

from .importers import ServerImport
from .sync import SyncEngine
from .tiers import DocumentTier, DurableTier


class ConfigStore:
    """read/write/add/update/remove for the server document.

    Usage:
        # Owner context
        store = ConfigStore(FileTier(path))

        # Client context
        store = ConfigStore(RemoteTier(url), cache=MemoryTier())
        await store.sync.pull()
    """

    def __init__(
        self,
        durable: DurableTier,
        cache: DocumentTier | None = None,
        *,
        sync: SyncEngine | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            durable: Authoritative tier.
            cache: Cache tier. None selects the owner context.
            sync: Sync engine for the two tiers. Built from durable and
                cache when omitted in the client context.
            logger: Parent logger.
        """
        self._durable = durable
        self._cache = cache
        self._logger = get_component_logger(logger, "store")
        if cache is not None and sync is None:
            sync = SyncEngine(durable, cache, logger=logger)
        self._sync = sync
        self._write_lock = asyncio.Lock()

    @property
    def is_client_context(self) -> bool:
        """True when reads are served from the cache tier."""
        return self._cache is not None

    @property
    def sync(self) -> SyncEngine | None:
        """Sync engine (client context only)."""
        return self._sync

    async def read(self) -> ConfigDocument:
        """Read the document from the tier this context reads.

        Missing or unparsable documents read as {servers: []}.
        """
        if self._cache is not None:
            return await self._cache.load()
        return await self._durable.load()

    async def write(self, doc: ConfigDocument, *, expected_revision: int | None = None) -> ConfigDocument:
        """Replace the whole document.

        Owner context: the durable tier is replaced directly, or, when
        expected_revision is given, only if it is still at that revision.

        Client context: the document is based on the cache's revision, saved
        to the cache, then pushed. A failed push is logged and leaves the
        cache marked pending; the local write still stands.

        Overlapping writes on one store run one after another, so the
        document ends up equal to the last one called.

        Args:
            doc: New document.
            expected_revision: Owner context only. Makes the write a
                compare-and-swap.

        Returns:
            The document as this context now sees it.

        Raises:
            RevisionConflictError: Owner context, expected_revision is stale.
            ValueError: expected_revision given in the client context.
        """
        if self._cache is not None and expected_revision is not None:
            raise ValueError("expected_revision is only supported in the owner context")
        async with self._write_lock:
            return await self._write(doc, expected_revision)

    async def _write(self, doc: ConfigDocument, expected_revision: int | None) -> ConfigDocument:
        """write() body; the caller holds _write_lock."""
        if self._cache is None:
            if expected_revision is None:
                return await self._durable.save(doc)
            return await self._durable.compare_and_swap(doc, expected_revision)

        base = await self._cache.load()
        staged = doc.model_copy(update={"revision": base.revision})
        await self._cache.save(staged)

        assert self._sync is not None
        self._sync.mark_pending()
        try:
            return await self._sync.push(staged)
        except (RevisionConflictError, DurableTierError) as e:
            self._logger.warning(
                {
                    "event": "sync_push_failed",
                    "message": f"Saved locally, durable tier not updated: {e}",
                    "error_type": type(e).__name__,
                }
            )
            return staged

    async def add(self, server: ServerRecord) -> ConfigDocument:
        """Append a server.

        Raises:
            ValueError: If a server with the same id is already registered.
        """
        async with self._write_lock:
            doc = await self.read()
            if doc.find(server.id) is not None:
                raise ValueError(f"Server id already registered: {server.id}")
            result = await self._write(doc.model_copy(update={"servers": [*doc.servers, server]}), None)
        self._logger.info(
            {
                "event": "server_added",
                "message": f"Server added: {server.name!r}",
                "server_id": server.id,
            }
        )
        return result

    async def update(self, server_id: str, server: ServerRecord) -> ConfigDocument:
        """Replace the server with this id. No-op if the id is absent."""
        async with self._write_lock:
            doc = await self.read()
            index = next((i for i, s in enumerate(doc.servers) if s.id == server_id), None)
            if index is None:
                return doc
            servers = list(doc.servers)
            servers[index] = server
            return await self._write(doc.model_copy(update={"servers": servers}), None)

    async def remove(self, server_id: str) -> ConfigDocument:
        """Remove the server with this id. No-op if the id is absent.

        Only the local registration is removed; the remote server is untouched.
        """
        async with self._write_lock:
            doc = await self.read()
            servers = [s for s in doc.servers if s.id != server_id]
            if len(servers) == len(doc.servers):
                return doc
            result = await self._write(doc.model_copy(update={"servers": servers}), None)
        self._logger.info(
            {
                "event": "server_removed",
                "message": f"Server removed: {server_id}",
                "server_id": server_id,
            }
        )
        return result

    async def register(
        self,
        name: str,
        api_url: str,
        cert_sha256: str,
        port: int | None = None,
    ) -> ServerRecord:
        """Create a server record with a fresh id and add it.

        Returns:
            The registered record.

        Raises:
            pydantic.ValidationError: If api_url or cert_sha256 is empty.
        """
        server = ServerRecord(name=name, api_url=api_url, cert_sha256=cert_sha256, port=port)
        await self.add(server)
        return server

    async def register_import(self, item: ServerImport) -> ServerRecord:
        """Register a parsed import, naming it "Server <unix-ms>" if unnamed."""
        return await self.register(
            item.name or default_server_name(),
            item.api_url,
            item.cert_sha256,
            item.port,
        )
