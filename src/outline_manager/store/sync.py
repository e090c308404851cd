"""Synchronization between the cache tier and the durable tier.

pull: durable -> cache, full overwrite. Refused while the cache holds a
      local write the durable tier has not acknowledged, unless forced.
push: cache -> durable, full-document compare-and-swap on `revision`. The
      acknowledged document (new revision) is written back to the cache unless
      the cache changed while the push was in flight.

A push returns only after the durable tier stored the document, so callers
can re-read immediately; no settling delay is needed.
"""

from __future__ import annotations

__all__ = ["SyncEngine"]

import logging

from outline_manager.exceptions import DurableTierError
from outline_manager.models import ConfigDocument
from outline_manager.utils.logging.logger_setup import get_component_logger

from .tiers import DocumentTier, DurableTier


class SyncEngine:
    """Reconciles one cache tier against one durable tier.

    Attributes:
        pending: True while the cache holds a write not yet acknowledged by
            the durable tier.
    """

    def __init__(
        self,
        durable: DurableTier,
        cache: DocumentTier,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._durable = durable
        self._cache = cache
        self._pending = False
        self._logger = get_component_logger(logger, "sync")

    @property
    def pending(self) -> bool:
        """Whether the cache has an unacknowledged local write."""
        return self._pending

    def mark_pending(self) -> None:
        """Record that the cache changed locally."""
        self._pending = True

    async def pull(self, *, force: bool = False) -> bool:
        """Copy the durable document over the cache.

        Args:
            force: Discard a pending local write (last write wins).

        Returns:
            True if the cache was overwritten, False if the pull was skipped
            (pending local write, or durable tier unreachable).
        """
        if self._pending and not force:
            self._logger.warning(
                {
                    "event": "sync_pull_skipped",
                    "message": "Cache has an unacknowledged local write; pull skipped",
                }
            )
            return False

        try:
            doc = await self._durable.load()
        except DurableTierError as e:
            self._logger.warning(
                {
                    "event": "sync_pull_failed",
                    "message": f"Could not load durable document: {e}",
                }
            )
            return False

        await self._cache.save(doc)
        self._pending = False
        self._logger.debug(
            {
                "event": "sync_pulled",
                "message": f"Cache refreshed from durable tier (revision {doc.revision})",
                "revision": doc.revision,
            }
        )
        return True

    async def push(self, doc: ConfigDocument | None = None, *, force: bool = False) -> ConfigDocument:
        """Write the cache document (or doc) to the durable tier.

        The write is accepted only if the durable tier is still at the
        document's revision.

        Args:
            doc: Document to push. Defaults to the cached document.
            force: Rebase onto the durable tier's current revision first, so
                the local document replaces whatever is there.

        Returns:
            The stored document carrying the revision the durable tier assigned.

        Raises:
            RevisionConflictError: Another writer changed the durable tier.
            DurableTierError: Durable tier unreachable.
        """
        if doc is None:
            doc = await self._cache.load()

        if force:
            current = await self._durable.load()
            doc = doc.model_copy(update={"revision": current.revision})

        stored = await self._durable.compare_and_swap(doc, expected_revision=doc.revision)
        cached = await self._cache.load()
        if cached.servers == doc.servers and cached.unreadable == doc.unreadable:
            await self._cache.save(stored)
            self._pending = False
        else:
            # Cache changed while the push was in flight; keep it and stay pending
            self._logger.debug(
                {
                    "event": "sync_cache_moved",
                    "message": "Cache changed during push; acknowledged document not cached",
                    "revision": stored.revision,
                }
            )
        self._logger.info(
            {
                "event": "sync_pushed",
                "message": f"Durable tier updated to revision {stored.revision}",
                "revision": stored.revision,
                "servers": len(stored.servers),
            }
        )
        return stored
