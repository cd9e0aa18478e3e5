"""
auth/models.py -- Domain dataclasses for portal accounts and sessions.

Pattern: Data class (pure data container, zero logic beyond trivial
properties). Stores and flows do the work.

The users table is one flat row, but the domain splits it in two: the
mandatory credential fields on PublicUser and the nullable StudentProfile
group that stays unset until the student fills in the profile form.

Layer rule: no imports from api/, web/, or students/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StudentProfile:
    """Academic details recorded by the student. Every field is None until the first update."""

    enrollment_no: str | None = None
    department: str | None = None
    semester: str | None = None
    cgpa: float | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.enrollment_no and self.department and self.semester)


@dataclass
class PublicUser:
    """A user record as every read operation returns it.

    There is no password field: the hash only ever leaves the
    store inside a Credential, via UserStore.get_credential().
    """

    id: int
    firstname: str
    lastname: str
    email: str
    created_at: str
    profile: StudentProfile = field(default_factory=StudentProfile)

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


@dataclass
class Credential:
    """The login comparison pair. Never rendered, never logged."""

    id: int
    hashed_password: str


@dataclass
class Session:
    """Server-side session record.

    expires_at is a UNIX timestamp fixed at issue time (issued_at + TTL).
    Activity does not extend it.
    """

    user_id: int
    email: str
    issued_at: float
    expires_at: float
