"""Shared fixtures for outline-manager tests.

FakeOutlineServer answers the Outline management protocol in memory and is
plugged into httpx through MockTransport, so no test opens a socket.
"""

import json
import logging
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from outline_manager.gateway import ProxyGateway
from outline_manager.models import ServerRecord
from outline_manager.store import ConfigStore, FileTier

SECRET = "s3cr3tPath"
API_URL = f"http://outline.test:8081/{SECRET}"
CERT_SHA256 = "AB" * 32


def make_key(key_id: str, name: str = "", **extra: Any) -> dict[str, Any]:
    """Access key as the management API reports it."""
    return {
        "id": key_id,
        "name": name,
        "password": f"pw-{key_id}",
        "port": 12345,
        "method": "chacha20-ietf-poly1305",
        "accessUrl": f"ss://key{key_id}@outline.test:12345/?outline=1",
        **extra,
    }


class FakeOutlineServer:
    """In-memory Outline management API.

    Attributes:
        keys: Access keys in creation order (wire format).
        requests: Every request received, in order.
        failures: (method, endpoint) -> status to answer instead.
    """

    def __init__(self, keys: list[dict[str, Any]] | None = None) -> None:
        self.name = "Outline Server"
        self.version = "1.9.2"
        self.port_for_new_access_keys = 12345
        self.keys: list[dict[str, Any]] = list(keys or [])
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], int] = {}
        self._next_id = len(self.keys)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail(self, method: str, endpoint: str, status: int = 500) -> None:
        self.failures[(method, endpoint)] = status

    def endpoints(self) -> list[tuple[str, str]]:
        """(method, endpoint) of every request received."""
        prefix = f"/{SECRET}/"
        return [(r.method, r.url.path.removeprefix(prefix)) for r in self.requests]

    def _find(self, key_id: str) -> dict[str, Any] | None:
        return next((k for k in self.keys if k["id"] == key_id), None)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = f"/{SECRET}/"
        if not request.url.path.startswith(prefix):
            return httpx.Response(404, json={"code": "NotFound"})
        endpoint = request.url.path[len(prefix) :]

        status = self.failures.get((request.method, endpoint))
        if status is not None:
            return httpx.Response(status, json={"code": "InternalError", "message": "boom"})

        body = json.loads(request.content) if request.content else None
        parts = endpoint.split("/")

        if endpoint == "server" and request.method == "GET":
            return httpx.Response(
                200,
                json={
                    "name": self.name,
                    "serverId": "srv-1",
                    "version": self.version,
                    "portForNewAccessKeys": self.port_for_new_access_keys,
                    "metricsEnabled": False,
                },
            )
        if endpoint == "name" and request.method == "PUT":
            self.name = body["name"]
            return httpx.Response(204)
        if endpoint == "port-for-new-access-keys" and request.method == "PUT":
            self.port_for_new_access_keys = body["port"]
            return httpx.Response(204)

        if parts[0] != "access-keys":
            return httpx.Response(404, json={"code": "NotFound"})

        if len(parts) == 1 and request.method == "GET":
            return httpx.Response(200, json={"accessKeys": self.keys})
        if len(parts) == 1 and request.method == "POST":
            self._next_id += 1
            key = make_key(str(self._next_id), body.get("name", ""))
            key["port"] = self.port_for_new_access_keys
            if "dataLimit" in body:
                key["dataLimit"] = body["dataLimit"]
            self.keys.append(key)
            return httpx.Response(201, json=key)

        key = self._find(parts[1])
        if key is None:
            return httpx.Response(404, json={"code": "NotFound"})
        if len(parts) == 2 and request.method == "DELETE":
            self.keys.remove(key)
            return httpx.Response(204)
        if parts[2:] == ["name"] and request.method == "PUT":
            key["name"] = body["name"]
            return httpx.Response(204)
        if parts[2:] == ["data-limit"] and request.method == "PUT":
            key["dataLimit"] = {"bytes": body["bytes"]}
            return httpx.Response(204)
        if parts[2:] == ["data-limit"] and request.method == "DELETE":
            key.pop("dataLimit", None)
            return httpx.Response(204)
        return httpx.Response(404, json={"code": "NotFound"})


class RecordingHandler(logging.Handler):
    """Keeps every record it receives."""

    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    @property
    def events(self) -> list[str]:
        return [r.msg["event"] for r in self.records if isinstance(r.msg, dict) and "event" in r.msg]

    def find(self, event: str) -> dict[str, Any]:
        """Message dict of the first record with this event."""
        for record in self.records:
            if isinstance(record.msg, dict) and record.msg.get("event") == event:
                return record.msg
        raise AssertionError(f"no {event!r} record in {self.events}")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_server() -> FakeOutlineServer:
    """Outline server with three keys."""
    return FakeOutlineServer(
        keys=[make_key("1", "Alice"), make_key("2", "Bob"), make_key("3", "Alice")],
    )


@pytest.fixture
def server_record() -> ServerRecord:
    return ServerRecord(id="srv-a", name="Frankfurt", api_url=API_URL, cert_sha256=CERT_SHA256)


@pytest.fixture
def log_handler(request: pytest.FixtureRequest) -> Iterator[RecordingHandler]:
    """Handler attached to the logger returned by app_logger."""
    handler = RecordingHandler()
    logger = logging.getLogger(f"tests.{request.node.name}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


@pytest.fixture
def app_logger(request: pytest.FixtureRequest, log_handler: RecordingHandler) -> logging.Logger:
    """Logger to hand to components; their records land in log_handler."""
    return logging.getLogger(f"tests.{request.node.name}")


@pytest.fixture
async def gateway(fake_server: FakeOutlineServer, app_logger: logging.Logger) -> AsyncIterator[ProxyGateway]:
    async with ProxyGateway(timeout=5, transport=fake_server.transport, logger=app_logger) as gw:
        yield gw


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "servers.json"


@pytest.fixture
def file_store(data_file: Path, app_logger: logging.Logger) -> ConfigStore:
    """Owner-context store on a temp file."""
    return ConfigStore(FileTier(data_file, logger=app_logger), logger=app_logger)
