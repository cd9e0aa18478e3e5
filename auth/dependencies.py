"""
auth/dependencies.py -- Store injection and the session gate.

The stores live on app.state (created in the lifespan) and reach handlers
only through get_user_store() / get_session_store(), used with Depends().
No module keeps session state at import level.

try_get_session() is the soft variant (returns None when anonymous).
The hard gate for page routes is web.routes._require_auth(), which turns a
None into a redirect to the login page.

Layer rule: no imports from web/ or students/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.models import Session
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import StoreError

logger = logging.getLogger("portal.auth")


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_session_id(request: Request) -> str:
    """Return the raw session cookie value, or "" when absent."""
    return request.cookies.get(get_settings().session_cookie_name, "")


def try_get_session(request: Request) -> Session | None:
    """Resolve the request's session cookie to a live, authenticated Session.

    Returns None when there is no cookie, the session is unknown or expired,
    or the record carries no user id. A session store failure is logged and
    also yields None, so the client is treated as anonymous.
    """
    session_id = get_session_id(request)
    if not session_id:
        return None
    try:
        session = get_session_store(request).get(session_id)
    except StoreError:
        logger.warning("Session lookup failed; treating request as anonymous")
        return None
    if session is None or not session.user_id:
        return None
    return session


def set_session_cookie(response, session_id: str) -> None:
    """Write the session id as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: HTTPS only when Settings.secure_cookies (on in production).
    max_age: matches the server-side TTL so both expire together.
    """
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)
