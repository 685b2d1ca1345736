"""
tests/conftest.py -- Shared test fixtures for the auth service.

This module provides:
  - unit fixtures: settings, codec, tokens, an in-memory engine and the
    stores built on it (users, captains, revocations with a fake clock)
  - make_client(): TestClient around a freshly built app whose lifespan is
    replaced with one that wires isolated stores into app.state
  - client / dev_client fixtures built on make_client()

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixtures because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Each API fixture gets its own DB name so tests never
see each other's users.

SECRET_KEY must be set before any api/ import: api.main builds the module
level app at import time and get_settings() refuses to start without it.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set SECRET_KEY before any api/ or core/ import.
os.environ.setdefault("SECRET_KEY", "test-signing-secret-0123456789abcdef0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.main import create_app
from auth.credentials import CredentialCodec
from auth.models import ActorKind
from auth.revocation import RevocationStore
from auth.store import ActorDirectory, make_engine
from auth.tokens import TokenService
from core.config import Settings

TEST_SECRET = os.environ["SECRET_KEY"]


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, secret_key=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def codec() -> CredentialCodec:
    return CredentialCodec(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def engine():
    eng = make_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def users(engine) -> ActorDirectory:
    return ActorDirectory(ActorKind.USER, engine)


@pytest.fixture
def captains(engine) -> ActorDirectory:
    return ActorDirectory(ActorKind.CAPTAIN, engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def revocations(engine, clock) -> RevocationStore:
    return RevocationStore(engine, clock=clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(app: FastAPI, db_url: str) -> None:
    """Replace the real lifespan with one that uses an isolated database.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task, exactly as the production lifespan does.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        engine = make_engine(db_url)
        app.state.engine = engine
        app.state.directories = {kind: ActorDirectory(kind, engine) for kind in ActorKind}
        app.state.revocations = RevocationStore(engine)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        engine.dispose()

    app.router.lifespan_context = test_lifespan


def make_client(debug: bool = False, raise_server_exceptions: bool = True, app: FastAPI | None = None) -> TestClient:
    """Build an app with test settings and a private in-memory database."""
    if app is None:
        app = create_app(Settings(_env_file=None, secret_key=TEST_SECRET, bcrypt_rounds=4, debug=debug))
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    _patch_lifespan(app, db_url)
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """TestClient for the production-mode app (DEBUG off)."""
    with make_client() as c:
        yield c


@pytest.fixture
def dev_client() -> Generator[TestClient, None, None]:
    """TestClient for a development-mode app (DEBUG on)."""
    with make_client(debug=True) as c:
        yield c


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def user_payload(email: str = "a@b.com", password: str = "longpass1") -> dict:
    return {"fullName": {"firstName": "Ann"}, "email": email, "password": password}


def captain_payload(email: str = "cap@b.com", password: str = "longpass1", vehicle_type: str = "car") -> dict:
    return {
        "fullName": {"firstName": "Cory", "lastName": "Driver"},
        "email": email,
        "password": password,
        "vehicle": {"color": "red", "licensePlate": "ABC-123", "capacity": 4, "type": vehicle_type},
    }


def user_record(hashed: str, email: str = "a@b.com") -> dict:
    """Directory-ready user data (password already hashed)."""
    return {"fullName": {"firstName": "Ann"}, "email": email, "password": hashed}


def captain_record(hashed: str, email: str = "cap@b.com", vehicle_type: str = "car") -> dict:
    data = captain_payload(email=email, vehicle_type=vehicle_type)
    data["password"] = hashed
    return data
