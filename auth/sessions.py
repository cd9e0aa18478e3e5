"""
auth/sessions.py -- SQLite-backed server-side session store.

Each session is keyed by an opaque identifier that the client holds in an
http-only cookie. The identifier itself is never stored: the key column holds
HMAC-SHA256(SECRET_KEY, session_id), so a copy of the session table cannot be
replayed as cookies.

Expiry is fixed at issue time (issued_at + ttl). get() treats an expired
record as absent and deletes it; purge_expired() trims the rest and runs once
at startup.

The store holds a single sqlite3 connection shared across FastAPI's worker
threads, so every statement runs under self._lock. Driver errors surface as
core.errors.StoreError, like the user store. The default path
":memory:" keeps sessions for the lifetime of the process only.

Usage:
    sessions = SessionStore(secret_key=settings.secret_key)
    session_id = sessions.issue(user_id=1, email="jane@example.com")
    session = sessions.get(session_id)   # Session or None
    sessions.destroy(session_id)

Layer rule: no imports from api/, web/, or students/.
"""

import hashlib
import hmac
import logging
import secrets
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from auth.models import Session
from core.errors import StoreError

logger = logging.getLogger("portal.sessions")

_DEFAULT_TTL = 60 * 60 * 24  # 24 hours in seconds

_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    key_hash    TEXT PRIMARY KEY,
    user_id     INTEGER NOT NULL,
    email       TEXT NOT NULL,
    issued_at   REAL NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class SessionStore:
    def __init__(self, secret_key: str, db_path: str = ":memory:", ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._secret = secret_key.encode()
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def _key(self, session_id: str) -> str:
        return hmac.new(self._secret, session_id.encode(), hashlib.sha256).hexdigest()

    @contextmanager
    def _locked(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Hold the lock and yield the connection; convert sqlite3.Error into StoreError."""
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                logger.error("Session store %s failed: %s", operation, exc)
                raise StoreError(str(exc)) from exc

    def issue(self, user_id: int, email: str) -> str:
        """Create a session for an authenticated user and return its new opaque id."""
        session_id = secrets.token_urlsafe(32)
        now = time.time()
        self.set(session_id, Session(user_id=user_id, email=email, issued_at=now, expires_at=now + self.ttl))
        return session_id

    def set(self, session_id: str, session: Session) -> None:
        """Store session under session_id, replacing any existing record."""
        with self._locked("set") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (key_hash, user_id, email, issued_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (self._key(session_id), session.user_id, session.email, session.issued_at, session.expires_at),
            )
            conn.commit()

    def get(self, session_id: str) -> Optional[Session]:
        """Return the session for session_id if it exists and hasn't expired."""
        if not session_id:
            return None
        key = self._key(session_id)
        with self._locked("get") as conn:
            row = conn.execute(
                "SELECT user_id, email, issued_at, expires_at FROM sessions WHERE key_hash = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            user_id, email, issued_at, expires_at = row
            if time.time() >= expires_at:
                conn.execute("DELETE FROM sessions WHERE key_hash = ?", (key,))
                conn.commit()
                return None
        return Session(user_id=user_id, email=email, issued_at=issued_at, expires_at=expires_at)

    def destroy(self, session_id: str) -> bool:
        """Delete the session. Returns True if a record was removed."""
        with self._locked("destroy") as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE key_hash = ?", (self._key(session_id),))
            conn.commit()
        return cursor.rowcount > 0

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns number of rows removed."""
        with self._locked("purge_expired") as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
            conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()
