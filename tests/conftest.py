"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from recipe_bridge.core.staging_store import StagingStore
from recipe_bridge.main import app
from recipe_bridge.middleware.rate_limit import limiter
from recipe_bridge.services.settings_store import SettingsStore


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def staging_store(clock):
    return StagingStore(ttl_seconds=300, clock=clock)


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(tmp_path / "settings.json")


@pytest.fixture
def client(monkeypatch, staging_store, settings_store):
    """Test client with fresh stores and rate limiting off."""
    monkeypatch.setattr(app.state, "staging_store", staging_store)
    monkeypatch.setattr(app.state, "settings_store", settings_store)
    monkeypatch.setattr(limiter, "enabled", False)
    yield TestClient(app)
    app.dependency_overrides.clear()
