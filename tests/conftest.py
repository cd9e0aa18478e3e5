"""
tests/conftest.py -- Shared test fixtures for the student portal.

This module provides:
  - user_store / session_store: isolated stores for unit tests
  - make_user: factory that creates an account directly through the store
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - web_client: TestClient with follow_redirects=False for route tests
  - logged_in_client: web_client already holding a session

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the user store because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Each fixture gets a uuid-suffixed name so tests never
share accounts.

Environment must be set before any portal import so get_settings() sees it:
DEBUG auto-generates SECRET_KEY, BCRYPT_ROUNDS=10 keeps hashing fast, and
the login/signup limits are raised so repeated logins from "testclient" pass.
The limiter stays enabled; test_rate_limit.py lowers a limit explicitly.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("SIGNUP_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.credentials import hash_password
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings

_DEFAULT_PASSWORD = "Abcdef1"


def _memory_db_url() -> str:
    return f"sqlite:///file:test_portal_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=_memory_db_url())
    yield store
    store.close()


@pytest.fixture
def session_store() -> Generator[SessionStore, None, None]:
    settings = get_settings()
    store = SessionStore(secret_key=settings.secret_key, ttl=settings.session_ttl_seconds)
    yield store
    store.close()


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., int]:
    """Return a factory that creates an account directly through the store."""

    def _make(email: str = "jane@example.com", password: str = _DEFAULT_PASSWORD) -> int:
        return user_store.create_user("Jane", "Doe", email, hash_password(password))

    return _make


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, session_store: SessionStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test stores into app.state so TestClient routes see isolated
    databases rather than the configured ones.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.session_store = session_store
        yield

    return test_lifespan


@pytest.fixture
def web_client(user_store: UserStore, session_store: SessionStore) -> Generator[TestClient, None, None]:
    """Yield a TestClient bound to fresh stores.

    follow_redirects=False is essential: tests assert on redirect *locations*
    (e.g. 302 to /auth/login), which are invisible once the client follows
    the redirect. The client keeps cookies between requests like a browser.
    """
    app.router.lifespan_context = _patch_lifespan(user_store, session_store)
    limiter.reset()
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def logged_in_client(web_client: TestClient, make_user: Callable[..., int]) -> TestClient:
    """A web_client already holding a session for jane@example.com."""
    make_user()
    resp = web_client.post("/auth/login", data={"email": "jane@example.com", "password": _DEFAULT_PASSWORD})
    assert resp.status_code == 302
    return web_client
