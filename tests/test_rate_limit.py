"""
tests/test_rate_limit.py -- slowapi limits on POST /auth/login and POST /auth/signup.

The conftest raises both limits so ordinary tests never trip them. These tests
lower one limit on the cached settings object for the duration of a test; the
routes read the limit through a callable, so the change applies immediately.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from core.config import get_settings


@pytest.fixture
def low_limits() -> Generator[None, None, None]:
    settings = get_settings()
    saved = (settings.login_rate_limit, settings.signup_rate_limit)
    settings.login_rate_limit = "2/minute"
    settings.signup_rate_limit = "1/minute"
    limiter.reset()
    yield
    settings.login_rate_limit, settings.signup_rate_limit = saved
    limiter.reset()


def test_login_limit_returns_429_with_retry_after(web_client: TestClient, low_limits) -> None:
    form = {"email": "jane@example.com", "password": "Wrong123"}
    assert web_client.post("/auth/login", data=form).status_code == 401
    assert web_client.post("/auth/login", data=form).status_code == 401
    resp = web_client.post("/auth/login", data=form)
    assert resp.status_code == 429
    assert "Retry-After" in resp.headers
    assert "Too many requests" in resp.text


def test_signup_limit_returns_429(web_client: TestClient, low_limits) -> None:
    form = {"email": "jane@example.com"}
    assert web_client.post("/auth/signup", data=form).status_code == 400
    assert web_client.post("/auth/signup", data=form).status_code == 429


def test_login_form_get_is_not_limited(web_client: TestClient, low_limits) -> None:
    for _ in range(5):
        assert web_client.get("/auth/login").status_code == 200
