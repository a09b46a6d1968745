"""
tests/conftest.py -- Shared test fixtures for SessionWard.

This module provides:
  - make_settings(): a Settings with fixed secrets for deterministic tests
  - _make_test_stores(): isolated in-memory DB shared by UserStore + RefreshTokenStore
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - auth_env: module-scoped stores plus one registered user
  - api_client: TestClient (fresh cookie jar per test) over auth_env
  - coordinator: a SessionCoordinator built without the HTTP layer

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates the JWT secrets in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate JWT_SECRET / JWT_REFRESH_SECRET in dev mode.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import QueuePool

from api.limiter import limiter
from api.main import app, build_auth_state
from auth.models import User
from auth.passwords import CredentialValidator, hash_password
from auth.sessions import SessionCoordinator
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import TokenCodec
from core.config import Settings

TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "Password123"

# Rate limits are exercised by slowapi itself; here they would only make
# test order matter.
limiter.enabled = False


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "environment": "test",
        "database_url": "sqlite://",
        "jwt_secret": "access-secret-" + "a" * 40,
        "jwt_refresh_secret": "refresh-secret-" + "b" * 40,
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, RefreshTokenStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Both stores point at the same URI, as they do in production. QueuePool is
    set explicitly: it keeps idle connections open, which is what keeps a
    shared-memory database alive between requests.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'test_auth_routes').
    """
    url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url, poolclass=QueuePool), RefreshTokenStore(db_url=url, poolclass=QueuePool)


def _patch_lifespan(settings: Settings, user_store: UserStore, refresh_store: RefreshTokenStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database. The stores are
    closed by the owning fixture, not here.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_auth_state(app, settings, user_store, refresh_store)
        yield

    return test_lifespan


@dataclass
class AuthEnv:
    settings: Settings
    user_store: UserStore
    refresh_store: RefreshTokenStore
    user_id: str


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def auth_env(request) -> Generator[AuthEnv, None, None]:
    """Yield stores on a per-module in-memory DB with one user already registered.

    The user has email TEST_EMAIL and password TEST_PASSWORD. bcrypt runs at
    the minimum cost factor to keep the suite fast.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, refresh_store = _make_test_stores(suffix)
    uid = user_store.create_user(
        User(email=TEST_EMAIL, name="Alice", hashed_password=hash_password(TEST_PASSWORD, rounds=4))
    )
    yield AuthEnv(settings=make_settings(), user_store=user_store, refresh_store=refresh_store, user_id=uid)
    user_store.close()
    refresh_store.close()


@pytest.fixture
def api_client(auth_env: AuthEnv) -> Generator[tuple[TestClient, AuthEnv], None, None]:
    """Yield (client, env) for HTTP integration tests.

    Function-scoped so every test starts with an empty cookie jar; the
    database behind it is shared across the module.
    """
    app.router.lifespan_context = _patch_lifespan(auth_env.settings, auth_env.user_store, auth_env.refresh_store)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_env


@pytest.fixture
def coordinator(auth_env: AuthEnv) -> SessionCoordinator:
    return SessionCoordinator(
        codec=TokenCodec(auth_env.settings),
        refresh_store=auth_env.refresh_store,
        validator=CredentialValidator(auth_env.user_store),
        user_store=auth_env.user_store,
    )


@pytest.fixture
def settings_factory():
    """Return make_settings so a test can build variants (other issuer, production, ...)."""
    return make_settings


@pytest.fixture
def codec(auth_env: AuthEnv) -> TokenCodec:
    return TokenCodec(auth_env.settings)
