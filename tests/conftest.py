"""
tests/conftest.py -- Shared test fixtures for authgate tests.

This module provides:
  - FrozenClock: a settable clock injected into SessionManager
  - store: a seeded CredentialStore in a per-test temp directory
  - manager: a SessionManager over that store using the frozen clock
  - client: TestClient whose lifespan wires the test manager into app.state

Design: every test gets its own data directory, so sessions minted by one test
can never satisfy a lookup in another. The frozen clock lets expiry tests jump
days ahead without sleeping.

ACCESS_TOKEN_SECRET must be set before any api/ import: api/main.py reads
settings at import time to configure CORS and logging.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set the secret before any api/ or core/ import so get_settings()
# sees a stable signing key.
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-0123456789abcdef0123456789")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import SessionManager
from auth.store import CredentialStore

TEST_SECRET = os.environ["ACCESS_TOKEN_SECRET"]
ACCESS_TTL_SECONDS = 20 * 60
REFRESH_TTL_SECONDS = 14 * 24 * 60 * 60


class FrozenClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    """CredentialStore in an isolated directory with the two default users seeded."""
    s = CredentialStore(tmp_path / "data")
    s.seed_default_users()
    return s


@pytest.fixture
def manager(store: CredentialStore, clock: FrozenClock) -> SessionManager:
    return SessionManager(
        store,
        secret=TEST_SECRET,
        access_ttl_seconds=ACCESS_TTL_SECONDS,
        refresh_ttl_seconds=REFRESH_TTL_SECONDS,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(manager: SessionManager):
    """Return an async context manager that replaces the real lifespan.

    Wires the test manager into app.state so TestClient routes see the
    isolated store rather than auth/data/. The sweep_task is a long-sleeping
    coroutine so shutdown's cancel() has a real asyncio.Task to act on.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.session_manager = manager
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


@pytest.fixture
def client(manager: SessionManager) -> Generator[TestClient, None, None]:
    """TestClient over the real app and routes, backed by the test manager."""
    app.router.lifespan_context = _patch_lifespan(manager)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
