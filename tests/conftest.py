"""
tests/conftest.py -- Shared test fixtures for AdminGate.

This module provides:
  - FakeClock: controllable epoch-seconds clock for TTL / flush tests
  - settings: Settings rooted in tmp_path with the minimum bcrypt cost
  - service: a fresh AuthService per test (no shared process state)
  - client: TestClient with follow_redirects=False whose lifespan wires the
    per-test service into app.state instead of building one from env

Design: every test gets its own data directory and AuthService. Nothing is
module-scoped, because the service under test is stateful (configured or
not, sessions issued) and tests must not observe each other's setup.

RATE_LIMIT_ENABLED must be set before any api import: the shared limiter
reads settings once at import time, and the suite logs in far more often
than the production limit allows.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: Set before any api/ import so the shared limiter is disabled.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthService
from core.config import Settings

START = 1_700_000_000.0


class FakeClock:
    """Callable clock returning a settable time in epoch seconds."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        session_secret="",
        bcrypt_rounds=4,
        max_sessions=20,
        token_ttl_seconds=30 * 24 * 60 * 60,
        session_flush_interval_seconds=60,
    )


@pytest.fixture
def service(settings: Settings, clock: FakeClock) -> AuthService:
    return AuthService(settings, clock=clock)


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = service
        yield

    return test_lifespan


@pytest.fixture
def client(service: AuthService) -> Generator[TestClient, None, None]:
    """TestClient bound to the per-test service.

    follow_redirects=False is essential: tests assert on redirect locations
    (/setup, /login?next=...), which are invisible once followed.
    """
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c
