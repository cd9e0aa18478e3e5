"""
auth/store.py -- SQLAlchemy Core persistence layer for student accounts.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user is the mapper. Route and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The password hash is selected by exactly one query, get_credential(). Every
  other read goes through _PUBLIC_COLUMNS, which leaves the column out.

Errors:
  Every SQLAlchemyError is converted to core.errors.StoreError; the driver
  message is logged and kept on StoreError.detail, never shown to clients.
  A UNIQUE(email) violation on insert becomes DuplicateEmail. The violation is
  recognised from the driver's structured error kind (SQLite extended error
  name, PostgreSQL SQLSTATE), not from the message text.

DB URL: Settings.database_url (default portal.db in the project root).

Layer rule: no imports from api/, web/, or students/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Credential, PublicUser, StudentProfile
from core.errors import DuplicateEmail, StoreError

logger = logging.getLogger("portal.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

# Column names match the portal's existing users table.
_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("firstname", String(100), nullable=False),
    Column("lastname", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("enrollmentNo", String(50)),
    Column("department", String(100)),
    Column("semester", String(20)),
    Column("cgpa", Float),
    Column("createdAt", String(32), nullable=False),
)

_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "password"]

# Structured unique-violation markers per driver.
_SQLITE_UNIQUE = "SQLITE_CONSTRAINT_UNIQUE"
_PG_UNIQUE_SQLSTATE = "23505"


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_unique_violation(exc: IntegrityError) -> bool:
    """Return True if the driver reports a UNIQUE constraint violation."""
    orig = exc.orig
    if getattr(orig, "sqlite_errorname", None) == _SQLITE_UNIQUE:
        return True
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == _PG_UNIQUE_SQLSTATE


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for student accounts.

    Usage:
        store = UserStore("sqlite:///portal.db")
        user_id = store.create_user("Jane", "Doe", "jane@example.com", hash_password("Abcdef1"))
        user = store.get_by_id(user_id)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self, operation: str) -> Iterator[Connection]:
        """Yield a connection; convert any SQLAlchemyError into StoreError."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("User store %s failed: %s", operation, exc)
            raise StoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, firstname: str, lastname: str, email: str, hashed_password: str) -> int:
        """Insert a new account and return its assigned id.

        Raises DuplicateEmail if the email already exists, StoreError on any
        other failure. Nothing is written in either case.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        firstname=firstname,
                        lastname=lastname,
                        email=email,
                        password=hashed_password,
                        createdAt=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEmail(str(exc.orig)) from exc
            logger.error("User store create failed: %s", exc)
            raise StoreError(str(exc)) from exc
        except SQLAlchemyError as exc:
            logger.error("User store create failed: %s", exc)
            raise StoreError(str(exc)) from exc

    def update_profile(self, user_id: int, profile: StudentProfile) -> int:
        """Overwrite the four profile columns. Returns the number of rows affected.

        0 means user_id does not exist. Credential columns are never touched.
        """
        with self._connect("update_profile") as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    enrollmentNo=profile.enrollment_no,
                    department=profile.department,
                    semester=profile.semester,
                    cgpa=profile.cgpa,
                )
            )
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> PublicUser | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self._connect("get_by_email") as conn:
            row = conn.execute(select(*_PUBLIC_COLUMNS).where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> PublicUser | None:
        """Look up an account by primary key. Returns None if not found."""
        with self._connect("get_by_id") as conn:
            row = conn.execute(select(*_PUBLIC_COLUMNS).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_credential(self, email: str) -> Credential | None:
        """Return (id, password hash) for login comparison. The only read that sees the hash."""
        with self._connect("get_credential") as conn:
            row = conn.execute(select(_users.c.id, _users.c.password).where(_users.c.email == email)).fetchone()
        return Credential(id=row.id, hashed_password=row.password) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("User store ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> PublicUser:
    return PublicUser(
        id=row.id,
        firstname=row.firstname,
        lastname=row.lastname,
        email=row.email,
        created_at=row.createdAt,
        profile=StudentProfile(
            enrollment_no=row.enrollmentNo,
            department=row.department,
            semester=row.semester,
            cgpa=row.cgpa,
        ),
    )
