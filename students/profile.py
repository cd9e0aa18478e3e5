"""
students/profile.py -- Authenticated read/update of a student's academic details.

Every function takes the Session already admitted by the session gate. When
the session's user id no longer resolves to an account (row removed out of
band), the functions raise NotFoundError; the route layer then destroys the
session and sends the client back to login. The dashboard and the profile
page share this policy.

Layer rule: may import from auth/ and core/, never from api/ or web/.
"""

from __future__ import annotations

import logging

from auth.models import PublicUser, Session, StudentProfile
from auth.store import UserStore
from core.errors import NotFoundError, ValidationError

logger = logging.getLogger("portal.students")


def _load_user(store: UserStore, session: Session) -> PublicUser:
    user = store.get_by_id(session.user_id)
    if user is None:
        logger.warning("Session references missing user id=%d", session.user_id)
        raise NotFoundError(f"user id={session.user_id}")
    return user


def view_dashboard(store: UserStore, session: Session) -> PublicUser:
    return _load_user(store, session)


def view_profile(store: UserStore, session: Session) -> PublicUser:
    return _load_user(store, session)


def update_profile(store: UserStore, session: Session, profile: StudentProfile) -> int:
    """Overwrite the session user's profile fields. Returns rows affected (always 1).

    The route layer validates the request body; profile arrives typed and
    trimmed. Raises ValidationError if a required field is still missing,
    NotFoundError when the account is gone, StoreError on persistence failure.
    """
    if not profile.is_complete:
        raise ValidationError("missing_fields")
    rows = store.update_profile(session.user_id, profile)
    if rows == 0:
        logger.warning("Profile update matched no row for user id=%d", session.user_id)
        raise NotFoundError(f"user id={session.user_id}")
    logger.info("Updated profile for user id=%d", session.user_id)
    return rows
