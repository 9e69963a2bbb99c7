"""
tests/conftest.py -- Shared test fixtures for the GeekCraft server tests.

This module provides:
  - FakeClock: a controllable UTC clock injected into credential stores
  - make_store(): builds any backend against an in-process fake
  - _patch_lifespan(): wires test state into app.state, bypassing real startup
  - client: TestClient over the real app with a fresh in-memory store

Backends under test:
  memory   InMemoryStore
  sqlite   SqlStore on a SQLite file under tmp_path. A file database (not
           :memory: or a shared-cache URI) lets concurrent writers on worker
           threads queue on the file lock instead of failing.
  redis    RedisStore on fakeredis (FakeAsyncRedis with a private FakeServer)
  mongodb  MongoStore on mongomock-motor

Env vars must be set before any api/ import: the body limit is read from
Settings when api.main loads, and get_settings() caches the first read.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path

os.environ.setdefault("GEEKCRAFT_DB_BACKEND", "memory")
os.environ.setdefault("GEEKCRAFT_LOGIN_RATE_LIMIT", "1000/minute")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import auth.tokens
from api.limiter import limiter
from api.main import app
from auth.models import utcnow
from auth.mongo_store import MongoStore
from auth.redis_store import RedisStore
from auth.service import AuthService
from auth.sql_store import SqlStore
from auth.store import CredentialStore, InMemoryStore
from core.config import get_settings
from game.submissions import SubmissionStore
from game.world import World

BACKENDS = ["memory", "sqlite", "redis", "mongodb"]

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to.

    Starts at the real current time so backends with native TTL (which expire
    on wall-clock time) never drop a record the fake clock still considers live.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or utcnow()

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_store(backend: str, clock: FakeClock, tmp_path: Path) -> CredentialStore:
    """Build an isolated store of the given backend against an in-process fake."""
    suffix = uuid.uuid4().hex
    if backend == "memory":
        return InMemoryStore(clock=clock)
    if backend == "sqlite":
        return SqlStore(f"sqlite:///{tmp_path / f'auth_{suffix}.db'}", clock=clock)
    if backend == "redis":
        client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
        return RedisStore(client, clock=clock)
    if backend == "mongodb":
        return MongoStore(AsyncMongoMockClient(), clock=clock, db_name=f"test_{suffix}")
    raise ValueError(backend)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cost factor 4 keeps hashing in the low milliseconds."""
    monkeypatch.setattr(auth.tokens, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=BACKENDS)
def store(request, clock, tmp_path) -> CredentialStore:
    """Each test using this fixture runs once per backend."""
    return make_store(request.param, clock, tmp_path)


@pytest.fixture
def service(clock) -> AuthService:
    return AuthService(InMemoryStore(clock=clock))


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test service into app.state so TestClient routes see an isolated
    store. The background loops are not started; a long-sleeping task stands in
    for the sweep task so shutdown code paths stay realistic.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.store = service.store
        app.state.auth_service = service
        app.state.world = World()
        app.state.submissions = SubmissionStore()
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


@pytest.fixture
def client(service) -> Generator[TestClient, None, None]:
    """TestClient over the real app with a fresh in-memory store per test."""
    app.router.lifespan_context = _patch_lifespan(service)
    limiter.reset()
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


def register_and_login(client: TestClient, username: str = "alice", password: str = "secret1") -> str:
    """Create an account through the API and return a fresh bearer token."""
    resp = client.post("/api/auth/register", json={"username": username, "password": password})
    assert resp.status_code == 201, resp.text
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signup(client):
    """Callable fixture: signup(username, password) -> bearer headers."""

    def _signup(username: str = "alice", password: str = "secret1") -> dict[str, str]:
        return bearer(register_and_login(client, username, password))

    return _signup


@pytest.fixture
def login_limit(monkeypatch):
    """Callable fixture: login_limit("2/minute") tightens register/login for one test.

    Counters are reset on entry and exit so other tests start with a full budget.
    """

    def _set(value: str) -> None:
        monkeypatch.setenv("GEEKCRAFT_LOGIN_RATE_LIMIT", value)
        get_settings.cache_clear()
        limiter.reset()

    yield _set
    get_settings.cache_clear()
    limiter.reset()
