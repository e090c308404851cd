"""Observable in-process view of the registered servers.

ServerState holds what a consumer displays (server list, loading flag,
last error) and forwards every operation to ConfigStore. It carries no
logic of its own: failures become an error string, and the list is always
re-read from the store after a mutation so concurrent writers are seen.
"""

from __future__ import annotations

__all__ = ["ServerState", "StateListener"]

import logging
from collections.abc import Callable

from outline_manager.models import ServerRecord
from outline_manager.store import ConfigStore
from outline_manager.utils.logging.logger_setup import get_component_logger

StateListener = Callable[["ServerState"], None]


class ServerState:
    """Server list plus loading/error flags, with change notification.

    Usage:
        state = ServerState(store)
        unsubscribe = state.subscribe(lambda s: render(s.servers))
        await state.load_servers()
    """

    def __init__(self, store: ConfigStore, *, logger: logging.Logger | None = None) -> None:
        self._store = store
        self._logger = get_component_logger(logger, "state")
        self._servers: list[ServerRecord] = []
        self._is_loading = False
        self._error: str | None = None
        self._listeners: list[StateListener] = []

    @property
    def servers(self) -> list[ServerRecord]:
        """Servers as of the last successful load."""
        return list(self._servers)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> str | None:
        """Message of the last failed operation, cleared when the next starts."""
        return self._error

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener after every state change.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: object) -> None:
        for attr, value in changes.items():
            setattr(self, f"_{attr}", value)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                # A broken listener must not stop the others
                self._logger.warning(
                    {
                        "event": "state_listener_failed",
                        "message": f"State listener raised: {e}",
                        "error_type": type(e).__name__,
                    }
                )

    # =========================================================================
    # Operations
    # =========================================================================

    async def _reload(self) -> None:
        doc = await self._store.read()
        self._set(servers=list(doc.servers), is_loading=False)

    async def load_servers(self) -> None:
        """Pull from the durable tier (client context) and read the list."""
        self._set(is_loading=True, error=None)
        try:
            if self._store.sync is not None:
                await self._store.sync.pull()
            await self._reload()
        except Exception as e:
            self._fail(f"Failed to load servers: {e}")

    async def add_server(self, server: ServerRecord) -> None:
        self._set(is_loading=True, error=None)
        try:
            await self._store.add(server)
            await self._reload()
        except Exception as e:
            self._fail(f"Failed to add server: {e}")

    async def update_server(self, server_id: str, server: ServerRecord) -> None:
        self._set(is_loading=True, error=None)
        try:
            await self._store.update(server_id, server)
            await self._reload()
        except Exception as e:
            self._fail(f"Failed to update server: {e}")

    async def delete_server(self, server_id: str) -> None:
        """Remove the local registration. The remote server is untouched."""
        self._set(is_loading=True, error=None)
        try:
            await self._store.remove(server_id)
            await self._reload()
        except Exception as e:
            self._fail(f"Failed to delete server: {e}")

    def _fail(self, message: str) -> None:
        self._logger.warning({"event": "state_operation_failed", "message": message})
        self._set(error=message, is_loading=False)
