"""
tests/conftest.py -- Shared test fixtures for the backend template.

This module provides:
  - store / service: function-scoped in-memory store and UserService for unit tests
  - api_client: module-scoped TestClient with admin and regular-user JWTs

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API client because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import bcrypt
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import create_access_token
from core.config import get_settings
from users.dto import UserInputDto
from users.service import UserService

ADMIN_USERNAME = "mmesander"
ADMIN_PASSWORD = "adminpass123"
USER_USERNAME = "carol"
USER_PASSWORD = "carolpass123"


def fast_hash(plain: str) -> str:
    """bcrypt at the minimum cost factor -- keeps fixture setup fast."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore) -> UserService:
    return UserService(store, get_settings(), hasher=fast_hash)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, user_service: UserService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see an
    isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.user_service = user_service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, user_token) for API integration tests.

    Each test module gets its own named in-memory DB so modules never see one
    another's users. The DB holds the protected admin account (ROLE_USER +
    ROLE_ADMIN) and one regular user (ROLE_USER).
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    user_service = UserService(user_store, get_settings(), hasher=fast_hash)

    user_service.ensure_admin(ADMIN_USERNAME, ADMIN_PASSWORD, "admin@example.com")
    user_service.create_user(UserInputDto(username=USER_USERNAME, password=USER_PASSWORD, email="carol@example.com"))

    admin_token = create_access_token(ADMIN_USERNAME, ["ROLE_ADMIN", "ROLE_USER"], expire_seconds=3600)
    user_token = create_access_token(USER_USERNAME, ["ROLE_USER"], expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, user_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, user_token

    user_store.close()
