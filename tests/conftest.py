"""
Pytest fixtures for the CRG admin tests.

Provides a controllable clock, an in-memory backend (tests/fakes.py), an
app built around both, and TestClients already signed in as an ordinary
user or an administrator.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fastapi.testclient import TestClient  # noqa: E402

import api.auth  # noqa: E402
from api.app import create_app  # noqa: E402
from fakes import FakeBackend  # noqa: E402
from utils.config import AppConfig  # noqa: E402

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Callable clock that tests move by hand."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def login(client: TestClient, email: str, password: str = "secret123"):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture(autouse=True)
def _clear_profile_cache():
    api.auth._profile_cache.clear()
    yield
    api.auth._profile_cache.clear()


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def app_config():
    cfg = AppConfig()
    cfg.secret_key = "test-secret"
    cfg.storage_bucket = "crg-admin"
    cfg.max_upload_bytes = 1024
    cfg.cors_origins = ["*"]
    return cfg


@pytest.fixture()
def app(backend, app_config, clock):
    return create_app(backend=backend, config=app_config, clock=clock)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def user_client(client, backend):
    backend.add_user("user@crg.test", full_name="Staff Member")
    assert login(client, "user@crg.test").status_code == 200
    return client


@pytest.fixture()
def admin_client(client, backend):
    backend.add_user("admin@crg.test", position="Admin", full_name="Admin Person")
    assert login(client, "admin@crg.test").status_code == 200
    return client
