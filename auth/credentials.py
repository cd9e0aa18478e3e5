"""
auth/credentials.py -- Email and password validation, hashing, credential checks.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The cost factor comes from
       Settings.bcrypt_rounds, which refuses values below 10. bcrypt rejects
       inputs longer than 72 bytes, so validate_password() enforces that limit
       before anything reaches hash_password().

  Emails: syntax-only validation through email-validator. Deliverability
       (DNS/MX lookups) is switched off -- signup must not depend on the
       network. Reserved domains (.local, .test) and quoted local parts are
       accepted: any local part, @, and a domain with at least one dot.

  Timing: check_credentials() always runs exactly one bcrypt verification.
       An unknown email is checked against _DUMMY_HASH so response time does
       not reveal whether an account exists.

Layer rule: no imports from api/, web/, or students/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import bcrypt
import email_validator
from email_validator import EmailNotValidError
from email_validator import validate_email as _validate_email_syntax

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import Credential
    from auth.store import UserStore

logger = logging.getLogger("portal.auth")

_settings = get_settings()

_MIN_PASSWORD_LENGTH = 6
_MAX_PASSWORD_BYTES = 72
_UPPERCASE_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"[0-9]")

# Reserved names such as .local and .test are valid addresses here. The
# library consults this list on every call.
email_validator.SPECIAL_USE_DOMAIN_NAMES.clear()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PasswordCheck:
    """Result of validate_password(). reason is None when valid."""

    valid: bool
    reason: str | None = None


def validate_email(email: str) -> bool:
    """Return True if email is a syntactically valid address with a dotted domain.

    Quoted local parts ("jane doe"@uni.edu) and reserved domains are accepted.
    """
    if not email:
        return False
    try:
        _validate_email_syntax(email, check_deliverability=False, allow_quoted_local=True)
    except EmailNotValidError:
        return False
    return True


def validate_password(password: str) -> PasswordCheck:
    """Check password strength. The first failing rule wins.

    Order: length >= 6, an uppercase letter, a digit, then bcrypt's 72-byte
    input ceiling.
    """
    if len(password) < _MIN_PASSWORD_LENGTH:
        return PasswordCheck(False, "too_short")
    if not _UPPERCASE_RE.search(password):
        return PasswordCheck(False, "needs_uppercase")
    if not _DIGIT_RE.search(password):
        return PasswordCheck(False, "needs_digit")
    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        return PasswordCheck(False, "too_long")
    return PasswordCheck(True)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash or an over-long input counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("portal_timing_dummy")


# ---------------------------------------------------------------------------
# Credential check (constant work)
# ---------------------------------------------------------------------------


def check_credentials(store: UserStore, email: str, password: str) -> Credential | None:
    """Return the Credential for a correct email/password pair, None otherwise.

    Always runs bcrypt whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash
    """
    credential = store.get_credential(email)
    if credential is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, credential.hashed_password):
        return None
    return credential
