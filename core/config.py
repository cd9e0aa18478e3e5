"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the student portal happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, session_ttl_seconds -> SESSION_TTL_SECONDS).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode (DEBUG=true) generates a SECRET_KEY with a warning;
      production mode refuses to start without one. secure_cookies follows the
      mode unless set explicitly.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session ids are stored
  as HMAC-SHA256(SECRET_KEY, id), so a short key weakens every session.

  BCRYPT_ROUNDS below 10 is rejected. Lower cost factors make offline
  brute-force of a leaked users table cheap.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or students/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("portal.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'portal.db'}"

_MIN_BCRYPT_ROUNDS = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    host: str = "127.0.0.1"
    port: int = 3000
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    # ":memory:" keeps sessions for the process lifetime only.
    session_db_path: str = ":memory:"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # None = follow the mode: secure in production, plain in DEBUG.
    secure_cookies: Optional[bool] = None
    session_cookie_name: str = "session_id"
    session_ttl_seconds: int = 24 * 60 * 60
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    signup_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_security(self) -> "Settings":
        """Enforce SECRET_KEY, cookie and hashing policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions are keyed by HMAC with this key, so they do not survive
            a restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters and bcrypt cost
            factors below 10.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.bcrypt_rounds < _MIN_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {_MIN_BCRYPT_ROUNDS}.")
        if self.secure_cookies is None:
            self.secure_cookies = not self.debug
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
