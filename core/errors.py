"""
core/errors.py -- Error taxonomy shared by the auth and profile flows.

Every failure a flow can report is a PortalError carrying a stable code, a
fixed user-facing message, and the HTTP status the route layer should use.
Messages are looked up from _MESSAGES by code so internal detail (driver
errors, stack traces) can never end up in a response body. The detail
argument is for the server log only.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, students/.
"""

from __future__ import annotations

_MESSAGES: dict[str, str] = {
    "missing_fields": "All fields are required.",
    "invalid_email": "Please enter a valid email address.",
    "mismatch": "Passwords do not match.",
    "too_short": "Password must be at least 6 characters long.",
    "needs_uppercase": "Password must contain at least one uppercase letter.",
    "needs_digit": "Password must contain at least one number.",
    "too_long": "Password must be at most 72 bytes long.",
    "email_taken": "Email already registered. Please login or use a different email.",
    "invalid_cgpa": "CGPA must be a non-negative number.",
    "invalid_credentials": "Invalid email or password.",
    "user_not_found": "Your account could not be found. Please log in again.",
    "store_error": "An internal error occurred. Please try again.",
}


def message_for(code: str) -> str:
    """Return the user-facing message for an error or reason code."""
    return _MESSAGES.get(code, _MESSAGES["store_error"])


class PortalError(Exception):
    """Base class for every failure surfaced by a flow."""

    status_code: int = 500

    def __init__(self, code: str, detail: str | None = None) -> None:
        self.code = code
        self.message = message_for(code)
        self.detail = detail
        super().__init__(detail or self.message)


class ValidationError(PortalError):
    """Client input missing or malformed. Re-render the form with the message."""

    status_code = 400


class DuplicateEmail(ValidationError):
    """The users table rejected an insert on its UNIQUE(email) constraint."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("email_taken", detail)


class AuthError(PortalError):
    """Bad credentials. Always the same generic message."""

    status_code = 401

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("invalid_credentials", detail)


class NotFoundError(PortalError):
    """A session references a user that no longer exists."""

    status_code = 404

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("user_not_found", detail)


class StoreError(PortalError):
    """Unexpected persistence failure. Detail is logged, never shown."""

    status_code = 500

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("store_error", detail)
