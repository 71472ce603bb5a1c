"""
tests/conftest.py -- Shared test fixtures for the DataVisualizer auth tests.

This module provides:
  - FrozenClock: a settable clock so expiry tests never sleep
  - settings / store / clock / service: unit-level fixtures over an in-memory DB
  - _patch_lifespan(): wires test objects into app.state, bypassing real startup
  - api_client: TestClient over the real FastAPI app

Design: the API client uses a file-backed SQLite DB under a per-module temp
directory because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Iteration counts are lowered to the Settings floor (1,000) so the suite stays
fast; the KDF code path is identical.

The DEBUG env var must be set before api.main is imported so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from auth.service import AuthService
from auth.store import AuthStore
from core.config import Settings

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET_KEY,
        "password_iterations": 1_000,
        "email_hash_iterations": 1_000,
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store() -> Generator[AuthStore, None, None]:
    s = AuthStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(settings: Settings, store: AuthStore, clock: FrozenClock) -> AuthService:
    return AuthService.from_settings(settings, store, clock=clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AuthStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see an
    isolated test DB rather than the configured database. No purge task is
    started.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_store = store
        app.state.auth_service = service
        app.state.token_issuer = service.token_issuer
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory: pytest.TempPathFactory) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated file-backed store.

    The service uses the wall clock: access tokens are verified by python-jose
    against real time, so a frozen clock would produce already-expired tokens.
    """
    from api.main import app

    db_path = tmp_path_factory.mktemp("api") / "auth.db"
    store = AuthStore(f"sqlite:///{db_path}")
    service = AuthService.from_settings(make_settings(), store)

    app.router.lifespan_context = _patch_lifespan(store, service)

    # base_url host must pass TrustedHostMiddleware (see Settings.allowed_hosts).
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client

    store.close()
