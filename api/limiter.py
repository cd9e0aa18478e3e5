"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to attach to app.state) and web/routes.py (to
apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
RATE_LIMIT_ENABLED=false turns every limit into a no-op.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
