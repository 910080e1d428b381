"""Pytest configuration and shared fixtures."""

from collections.abc import Generator
from pathlib import Path

from fastapi.testclient import TestClient
import pytest

from src.api.deps import get_captcha_verifier, get_storage
from src.core.config import Settings
from src.main import create_app
from tests.helpers import MemoryStorage, StubVerifier


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing the local backend at a temporary directory."""
    return Settings(
        local_path=tmp_path / "uploads",
        turnstile_secret="test-secret",
        turnstile_sitekey="test-sitekey",
        log_dir=None,
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def verifier() -> StubVerifier:
    return StubVerifier()


@pytest.fixture
def make_client(settings):
    """Factory for test clients with overridden storage and verifier."""
    clients = []

    def factory(storage, verifier, app_settings: Settings | None = None) -> TestClient:
        app = create_app(app_settings or settings)
        app.dependency_overrides[get_storage] = lambda: storage
        app.dependency_overrides[get_captcha_verifier] = lambda: verifier
        test_client = TestClient(app, raise_server_exceptions=False)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.__exit__(None, None, None)
        test_client.app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, storage, verifier) -> Generator[TestClient, None, None]:
    """Test client with in-memory storage and an accepting verifier."""
    yield make_client(storage, verifier)
