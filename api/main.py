"""
api/main.py -- FastAPI application object, lifespan, and middleware.

Run with:      python main.py
               uvicorn asgi:app --reload

The HTML routes and error pages live in web/ and are attached by asgi.py.

Middleware stack (outermost to innermost):
  1. log_requests          -- one access-log line per request
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan opens the user store and session store on startup, purges expired
sessions once, and closes both on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from api.limiter import limiter
from api.models import HealthResponse
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("portal.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage the user store and session store across the server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("Student portal starting up")
    app.state.user_store = UserStore(db_url=_settings.database_url)
    logger.info("User store initialized")
    app.state.session_store = SessionStore(
        secret_key=_settings.secret_key,
        db_path=_settings.session_db_path,
        ttl=_settings.session_ttl_seconds,
    )
    purged = app.state.session_store.purge_expired()
    logger.info("Session store initialized (%d expired sessions purged)", purged)

    yield

    app.state.session_store.close()
    app.state.user_store.close()
    logger.info("Student portal shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Student Portal",
    description="Student registration, login and academic profile.",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# slowapi looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and per-component status."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )
