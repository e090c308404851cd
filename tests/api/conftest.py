"""Fixtures for API route tests."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from outline_manager.api import create_app
from outline_manager.config import AppConfig
from outline_manager.gateway import ProxyGateway
from outline_manager.store import ConfigStore, FileTier
from tests.conftest import FakeOutlineServer


@pytest.fixture
def app_config(data_file: Path) -> AppConfig:
    return AppConfig(data_file=str(data_file))


@pytest.fixture
def api_store(data_file: Path) -> ConfigStore:
    return ConfigStore(FileTier(data_file))


@pytest.fixture
def api_client(app_config: AppConfig, api_store: ConfigStore, fake_server: FakeOutlineServer) -> TestClient:
    """TestClient whose gateway reaches FakeOutlineServer."""
    gateway = ProxyGateway(timeout=5, transport=fake_server.transport)
    app = create_app(app_config, store=api_store, gateway=gateway)
    return TestClient(app)
