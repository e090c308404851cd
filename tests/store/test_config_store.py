"""Unit tests for ConfigStore in both execution contexts.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

import asyncio
import json
from pathlib import Path

import httpx
import pytest
from pydantic import ValidationError

from outline_manager.api import create_app
from outline_manager.config import AppConfig
from outline_manager.exceptions import RevisionConflictError
from outline_manager.models import ConfigDocument, ServerRecord
from outline_manager.store import ConfigStore, FileTier, MemoryTier, RemoteTier, ServerImport
from tests.conftest import API_URL, CERT_SHA256, RecordingHandler


def _server(server_id: str, name: str = "") -> ServerRecord:
    return ServerRecord(id=server_id, name=name or server_id, api_url=API_URL, cert_sha256=CERT_SHA256)


@pytest.fixture
def durable(data_file: Path) -> FileTier:
    return FileTier(data_file)


@pytest.fixture
def client_store(durable: FileTier, app_logger) -> ConfigStore:
    """Client-context store whose durable tier is the shared file."""
    return ConfigStore(durable, cache=MemoryTier(), logger=app_logger)


# ============================================================================
# Owner context
# ============================================================================


class TestOwnerContext:
    """No cache: reads and writes hit the durable tier."""

    async def test_empty_store(self, file_store: ConfigStore) -> None:
        # Act
        doc = await file_store.read()

        # Assert
        assert doc.servers == []
        assert file_store.is_client_context is False
        assert file_store.sync is None

    async def test_add_appends_in_order(self, file_store: ConfigStore, log_handler: RecordingHandler) -> None:
        # Act
        await file_store.add(_server("a"))
        doc = await file_store.add(_server("b"))

        # Assert
        assert [s.id for s in doc.servers] == ["a", "b"]
        assert [s.id for s in (await file_store.read()).servers] == ["a", "b"]
        assert log_handler.events.count("server_added") == 2

    async def test_add_duplicate_id_rejected(self, file_store: ConfigStore) -> None:
        """Given an id already registered, raises and writes nothing."""
        # Arrange
        await file_store.add(_server("a"))

        # Act & Assert
        with pytest.raises(ValueError, match="already registered"):
            await file_store.add(_server("a", "other"))
        assert len((await file_store.read()).servers) == 1

    async def test_update_replaces_record(self, file_store: ConfigStore) -> None:
        # Arrange
        await file_store.add(_server("a"))
        await file_store.add(_server("b"))

        # Act
        doc = await file_store.update("a", _server("a", "renamed"))

        # Assert
        assert [s.name for s in doc.servers] == ["renamed", "b"]

    async def test_update_unknown_id_is_noop(self, file_store: ConfigStore) -> None:
        """Given an unknown id, returns the document without writing."""
        # Arrange
        await file_store.add(_server("a"))

        # Act
        doc = await file_store.update("missing", _server("missing"))

        # Assert
        assert [s.id for s in doc.servers] == ["a"]
        assert doc.revision == 1

    async def test_remove(self, file_store: ConfigStore, log_handler: RecordingHandler) -> None:
        # Arrange
        await file_store.add(_server("a"))
        await file_store.add(_server("b"))

        # Act
        doc = await file_store.remove("a")

        # Assert
        assert [s.id for s in doc.servers] == ["b"]
        assert "server_removed" in log_handler.events

    async def test_remove_unknown_id_is_noop(self, file_store: ConfigStore, log_handler: RecordingHandler) -> None:
        # Arrange
        await file_store.add(_server("a"))

        # Act
        doc = await file_store.remove("missing")

        # Assert
        assert doc.revision == 1
        assert "server_removed" not in log_handler.events

    async def test_write_is_unconditional(self, file_store: ConfigStore) -> None:
        """Given a document with an old revision, owner writes still win."""
        # Arrange
        await file_store.add(_server("a"))
        await file_store.add(_server("b"))

        # Act
        stored = await file_store.write(ConfigDocument(servers=[_server("c")], revision=0))

        # Assert
        assert stored.revision == 3
        assert [s.id for s in (await file_store.read()).servers] == ["c"]

    async def test_write_then_read_keeps_order(self, file_store: ConfigStore) -> None:
        # Arrange
        doc = ConfigDocument(servers=[_server("c"), _server("a"), _server("b")])

        # Act
        await file_store.write(doc)

        # Assert
        assert (await file_store.read()).servers == doc.servers

    async def test_back_to_back_writes_last_wins(self, file_store: ConfigStore) -> None:
        """Given two writes in a row, the document equals the second with no merge."""
        # Act
        await file_store.write(ConfigDocument(servers=[_server("a")]))
        await file_store.write(ConfigDocument(servers=[_server("a"), _server("b")]))

        # Assert
        assert [s.id for s in (await file_store.read()).servers] == ["a", "b"]

    async def test_write_with_expected_revision_conflicts(self, file_store: ConfigStore) -> None:
        # Arrange
        await file_store.add(_server("a"))

        # Act & Assert
        with pytest.raises(RevisionConflictError):
            await file_store.write(ConfigDocument(), expected_revision=0)

    async def test_register_generates_unique_ids(self, file_store: ConfigStore) -> None:
        # Act
        first = await file_store.register("One", API_URL, CERT_SHA256)
        second = await file_store.register("One", API_URL, CERT_SHA256, port=8443)

        # Assert
        assert first.id != second.id
        assert second.port == 8443
        assert len((await file_store.read()).servers) == 2

    @pytest.mark.parametrize("api_url,cert", [("", CERT_SHA256), (API_URL, "")])
    async def test_register_requires_url_and_cert(self, file_store: ConfigStore, api_url: str, cert: str) -> None:
        with pytest.raises(ValidationError):
            await file_store.register("x", api_url, cert)
        assert (await file_store.read()).servers == []

    async def test_register_import_default_name(self, file_store: ConfigStore) -> None:
        """Given an import without a name, names it "Server <unix-ms>"."""
        # Act
        server = await file_store.register_import(ServerImport(api_url=API_URL, cert_sha256=CERT_SHA256))

        # Assert
        prefix, _, millis = server.name.partition(" ")
        assert prefix == "Server"
        assert millis.isdigit()

    async def test_register_import_keeps_name_and_port(self, file_store: ConfigStore) -> None:
        # Act
        server = await file_store.register_import(
            ServerImport(api_url=API_URL, cert_sha256=CERT_SHA256, name="Tokyo", port=443)
        )

        # Assert
        assert server.name == "Tokyo"
        assert server.port == 443


# ============================================================================
# Client context
# ============================================================================


class TestClientContext:
    """Cache present: reads from cache, writes to cache then pushed."""

    async def test_sync_engine_created(self, client_store: ConfigStore) -> None:
        assert client_store.is_client_context is True
        assert client_store.sync is not None

    async def test_reads_come_from_cache(self, client_store: ConfigStore, durable: FileTier) -> None:
        """Given a durable change the cache has not pulled, reads show the cache."""
        # Arrange
        await durable.save(ConfigDocument(servers=[_server("remote")]))

        # Act
        before = await client_store.read()
        await client_store.sync.pull()
        after = await client_store.read()

        # Assert
        assert before.servers == []
        assert [s.id for s in after.servers] == ["remote"]

    async def test_write_pushes_to_durable(self, client_store: ConfigStore, durable: FileTier) -> None:
        # Act
        stored = await client_store.add(_server("a"))

        # Assert
        assert stored.revision == 1
        assert [s.id for s in (await durable.load()).servers] == ["a"]
        assert client_store.sync.pending is False

    async def test_conflicting_write_stays_local(
        self, client_store: ConfigStore, durable: FileTier, log_handler: RecordingHandler
    ) -> None:
        """Given another writer got there first, the write stays in the cache and is pending."""
        # Arrange
        await client_store.sync.pull()
        await durable.save(ConfigDocument(servers=[_server("other-writer")]))

        # Act
        doc = await client_store.add(_server("mine"))

        # Assert
        assert [s.id for s in doc.servers] == ["mine"]
        assert [s.id for s in (await client_store.read()).servers] == ["mine"]
        assert [s.id for s in (await durable.load()).servers] == ["other-writer"]
        assert client_store.sync.pending is True
        assert "sync_push_failed" in log_handler.events

    async def test_unreachable_durable_write_stays_local(self, app_logger) -> None:
        """Given the durable tier is down, the write still lands in the cache."""

        # Arrange
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        store = ConfigStore(
            RemoteTier("http://manager.test", transport=httpx.MockTransport(refuse)),
            cache=MemoryTier(),
            logger=app_logger,
        )

        # Act
        await store.add(_server("a"))

        # Assert
        assert [s.id for s in (await store.read()).servers] == ["a"]
        assert store.sync.pending is True

    async def test_pending_write_survives_pull(self, client_store: ConfigStore, durable: FileTier) -> None:
        """Given a pending local write, a plain pull does not overwrite it."""
        # Arrange
        await client_store.sync.pull()
        await durable.save(ConfigDocument(servers=[_server("other-writer")]))
        await client_store.add(_server("mine"))

        # Act
        pulled = await client_store.sync.pull()

        # Assert
        assert pulled is False
        assert [s.id for s in (await client_store.read()).servers] == ["mine"]

    async def test_expected_revision_rejected(self, client_store: ConfigStore) -> None:
        with pytest.raises(ValueError):
            await client_store.write(ConfigDocument(), expected_revision=0)

    async def test_overlapping_writes_last_one_wins(
        self, data_file: Path, app_logger, log_handler: RecordingHandler
    ) -> None:
        """Given two writes issued together over the HTTP boundary, both tiers end with the later one."""
        # Arrange
        owner = ConfigStore(FileTier(data_file))
        app = create_app(AppConfig(), store=owner)
        durable = RemoteTier("http://manager.test", transport=httpx.ASGITransport(app=app))
        store = ConfigStore(durable, cache=MemoryTier(), logger=app_logger)

        # Act
        _, second = await asyncio.gather(
            store.write(ConfigDocument(servers=[_server("a")])),
            store.write(ConfigDocument(servers=[_server("a"), _server("b")])),
        )
        await durable.aclose()

        # Assert
        assert [s.id for s in second.servers] == ["a", "b"]
        assert [s.id for s in (await store.read()).servers] == ["a", "b"]
        assert [s.id for s in (await owner.read()).servers] == ["a", "b"]
        assert store.sync.pending is False
        assert "sync_push_failed" not in log_handler.events

    async def test_overlapping_adds_keep_both(self, client_store: ConfigStore, durable: FileTier) -> None:
        # Act
        await asyncio.gather(client_store.add(_server("a")), client_store.add(_server("b")))

        # Assert
        assert sorted(s.id for s in (await durable.load()).servers) == ["a", "b"]


# ============================================================================
# Invalid stored entries
# ============================================================================


class TestUnreadableEntries:
    """Entries that fail validation survive writes made through the store."""

    @pytest.fixture
    def legacy_entry(self) -> dict:
        return {"id": "legacy", "name": "Old", "apiUrl": API_URL}

    @pytest.fixture
    def mixed_file(self, data_file: Path, legacy_entry: dict) -> Path:
        good = {"id": "good", "name": "Good", "apiUrl": API_URL, "certSha256": CERT_SHA256}
        data_file.write_text(json.dumps({"servers": [good, legacy_entry], "revision": 4}))
        return data_file

    async def test_owner_register_keeps_existing_entries(
        self, mixed_file: Path, file_store: ConfigStore, legacy_entry: dict
    ) -> None:
        # Act
        server = await file_store.register("New", API_URL, CERT_SHA256)

        # Assert
        stored = json.loads(mixed_file.read_text())["servers"]
        assert [s["id"] for s in stored] == ["good", server.id, "legacy"]
        assert stored[-1] == legacy_entry

    async def test_client_write_keeps_existing_entries(
        self, mixed_file: Path, app_logger, legacy_entry: dict
    ) -> None:
        """Given a client pushing through the HTTP boundary, the owner's invalid entry is kept."""
        # Arrange
        app = create_app(AppConfig(), store=ConfigStore(FileTier(mixed_file)))
        durable = RemoteTier("http://manager.test", transport=httpx.ASGITransport(app=app))
        store = ConfigStore(durable, cache=MemoryTier(), logger=app_logger)
        await store.sync.pull()

        # Act
        await store.add(_server("new"))
        await durable.aclose()

        # Assert
        stored = json.loads(mixed_file.read_text())["servers"]
        assert [s["id"] for s in stored] == ["good", "new", "legacy"]
        assert stored[-1] == legacy_entry
        assert store.sync.pending is False
