"""
auth/flow.py -- Signup, login and logout.

Each function composes the credential utilities with the user and session
stores and reports failure by raising a core.errors.PortalError subclass.
Route handlers decide how to render the outcome; nothing here knows about
HTTP.

State machine over one client: Anonymous -> Authenticated (login) ->
Anonymous (logout or invalidation). Signup leaves the client Anonymous.
"""

from __future__ import annotations

import logging

from auth.credentials import check_credentials, hash_password, validate_email, validate_password
from auth.sessions import SessionStore
from auth.store import UserStore
from core.errors import AuthError, DuplicateEmail, ValidationError

logger = logging.getLogger("portal.auth")


def _present(*values: str | None) -> bool:
    return all(v is not None and v.strip() for v in values)


def signup(
    store: UserStore,
    firstname: str,
    lastname: str,
    email: str,
    password: str,
    confirm_password: str,
) -> int:
    """Register a new account and return its id. Does not log the user in.

    Raises ValidationError (missing_fields, invalid_email, mismatch, a password
    strength reason, email_taken) or StoreError.
    """
    if not _present(firstname, lastname, email, password, confirm_password):
        raise ValidationError("missing_fields")
    if not validate_email(email):
        raise ValidationError("invalid_email")
    if password != confirm_password:
        raise ValidationError("mismatch")
    check = validate_password(password)
    if not check.valid:
        raise ValidationError(check.reason)

    if store.get_by_email(email) is not None:
        raise ValidationError("email_taken")

    try:
        user_id = store.create_user(firstname.strip(), lastname.strip(), email, hash_password(password))
    except DuplicateEmail:
        # A concurrent signup won the insert after our pre-check.
        logger.info("Signup lost uniqueness race for an existing email")
        raise
    logger.info("Registered user id=%d", user_id)
    return user_id


def login(store: UserStore, sessions: SessionStore, email: str, password: str) -> str:
    """Authenticate and open a session. Returns the new opaque session id.

    Unknown email and wrong password raise the same AuthError. A failure in
    either store raises StoreError and no cookie should be set.
    """
    if not _present(email, password):
        raise ValidationError("missing_fields")
    if not validate_email(email):
        raise ValidationError("invalid_email")

    credential = check_credentials(store, email, password)
    if credential is None:
        logger.warning("Failed login attempt")
        raise AuthError()

    session_id = sessions.issue(credential.id, email)
    logger.info("User id=%d logged in", credential.id)
    return session_id


def logout(sessions: SessionStore, session_id: str) -> None:
    """Destroy the session. Failures are logged and never raised."""
    if not session_id:
        return
    try:
        sessions.destroy(session_id)
    except Exception:
        logger.exception("Session destroy failed during logout")
