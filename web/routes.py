"""
web/routes.py -- Jinja2 template routes for the student portal.

These routes serve server-rendered HTML, except POST /dashboard/update which
answers the profile page's script with a JSON result. Stores are injected
with Depends(); the flows in auth/flow.py and students/profile.py do the work
and report failure by raising core.errors.PortalError subclasses, which the
handlers turn into a status code and a message.

Routes:
  GET  /                  -- landing page (redirects to /dashboard when logged in)
  GET  /auth/signup       -- registration form (anonymous only)
  POST /auth/signup       -- handle registration; 201 with success message
  GET  /auth/login        -- login form (anonymous only)
  POST /auth/login        -- handle login; set session cookie, redirect /dashboard
  GET  /auth/logout       -- destroy session, clear cookie, redirect /
  GET  /dashboard         -- dashboard (auth required)
  GET  /dashboard/profile -- academic profile form (auth required)
  POST /dashboard/update  -- JSON: save academic profile (auth required)

install_error_pages() registers the 404 / 429 / 500 handlers; asgi.py calls it.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PydanticValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, ProfileUpdateRequest, ProfileUpdateResponse
from auth import flow as auth_flow
from auth.dependencies import (
    clear_session_cookie,
    get_session_id,
    get_session_store,
    get_user_store,
    set_session_cookie,
    try_get_session,
)
from auth.models import StudentProfile
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import AuthError, NotFoundError, StoreError, ValidationError
from students import profile as profile_flow

logger = logging.getLogger("portal.web")

_settings = get_settings()

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html calls current_session(request) to pick the navigation links.
templates.env.globals["current_session"] = try_get_session
router = APIRouter()

_LOGIN_URL = "/auth/login"
_DASHBOARD_URL = "/dashboard"

_SIGNUP_SUCCESS = "Registration successful! Please login."
_UPDATE_SUCCESS = "Profile updated successfully"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200) -> HTMLResponse:
    return templates.TemplateResponse(request, name, context or {}, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Session gate for protected routes.

    Returns a RedirectResponse to the login page when the request carries no
    authenticated session, None if OK. On success the Session is available as
    request.state.session. Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    session = try_get_session(request)
    if session is None:
        return _redirect(_LOGIN_URL)
    request.state.session = session
    return None


def _redirect_if_authenticated(request: Request) -> Optional[RedirectResponse]:
    """Anonymous-only routes send logged-in users to the dashboard."""
    if try_get_session(request) is not None:
        return _redirect(_DASHBOARD_URL)
    return None


def _end_stale_session(request: Request, sessions: SessionStore) -> None:
    """Destroy a session whose user no longer exists."""
    auth_flow.logout(sessions, get_session_id(request))


async def _read_payload(request: Request) -> dict[str, Any]:
    """Return the request body as a dict, accepting JSON or form encoding."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return dict(form)


def _profile_error_code(exc: PydanticValidationError) -> str:
    """Map a ProfileUpdateRequest failure onto missing_fields or invalid_cgpa.

    A bad required field takes precedence over a bad cgpa.
    """
    if all(err["loc"] and err["loc"][0] == "cgpa" for err in exc.errors()):
        return "invalid_cgpa"
    return "missing_fields"


def _update_result(success: bool, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ProfileUpdateResponse(success=success, message=message).model_dump(),
    )


# ---------------------------------------------------------------------------
# GET / -- landing page
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> Response:
    if redirect := _redirect_if_authenticated(request):
        return redirect
    return _render(request, "index.html")


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


@router.get("/auth/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> Response:
    if redirect := _redirect_if_authenticated(request):
        return redirect
    return _render(request, "signup.html")


@router.post("/auth/signup", response_class=HTMLResponse)
@limiter.limit(lambda: _settings.signup_rate_limit)
def signup_post(
    request: Request,
    firstname: str = Form(""),
    lastname: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
    users: UserStore = Depends(get_user_store),
) -> Response:
    """Handle the registration form. Never logs the new user in."""
    if redirect := _redirect_if_authenticated(request):
        return redirect

    # Re-filled into the form on error. Passwords are never echoed back.
    form = {"firstname": firstname, "lastname": lastname, "email": email}
    try:
        auth_flow.signup(users, firstname, lastname, email, password, confirm_password)
    except (ValidationError, StoreError) as exc:
        return _render(request, "signup.html", {"error": exc.message, "form": form}, status_code=exc.status_code)

    return _render(request, "signup.html", {"success": _SIGNUP_SUCCESS}, status_code=201)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/auth/login", response_class=HTMLResponse)
def login_form(request: Request) -> Response:
    if redirect := _redirect_if_authenticated(request):
        return redirect
    return _render(request, "login.html")


@router.post("/auth/login", response_class=HTMLResponse)
@limiter.limit(lambda: _settings.login_rate_limit)
def login_post(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
) -> Response:
    """Handle the login form. Wrong password and unknown email look identical."""
    if redirect := _redirect_if_authenticated(request):
        return redirect

    form = {"email": email}
    try:
        session_id = auth_flow.login(users, sessions, email, password)
    except (ValidationError, AuthError, StoreError) as exc:
        resp = _render(request, "login.html", {"error": exc.message, "form": form}, status_code=exc.status_code)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = _redirect(_DASHBOARD_URL)
    set_session_cookie(resp, session_id)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/logout")
def logout(request: Request, sessions: SessionStore = Depends(get_session_store)) -> RedirectResponse:
    """Destroy the session and clear the cookie. Always redirects to /."""
    auth_flow.logout(sessions, get_session_id(request))
    resp = _redirect("/")
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Dashboard and profile
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
) -> Response:
    if redirect := _require_auth(request):
        return redirect
    try:
        user = profile_flow.view_dashboard(users, request.state.session)
    except NotFoundError:
        _end_stale_session(request, sessions)
        resp = _redirect(_LOGIN_URL)
        clear_session_cookie(resp)
        return resp
    except StoreError:
        return _render(request, "error.html", {"message": "Error loading dashboard"}, status_code=500)
    return _render(request, "dashboard.html", {"user": user})


@router.get("/dashboard/profile", response_class=HTMLResponse)
def profile_page(
    request: Request,
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
) -> Response:
    if redirect := _require_auth(request):
        return redirect
    try:
        user = profile_flow.view_profile(users, request.state.session)
    except NotFoundError:
        _end_stale_session(request, sessions)
        resp = _redirect(_LOGIN_URL)
        clear_session_cookie(resp)
        return resp
    except StoreError:
        return _render(request, "error.html", {"message": "Error loading profile"}, status_code=500)
    return _render(request, "profile.html", {"user": user})


@router.post("/dashboard/update")
def update_profile(
    request: Request,
    payload: dict[str, Any] = Depends(_read_payload),
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
) -> Response:
    """Save the academic profile. Answers with {success, message} JSON.

    The body is validated through ProfileUpdateRequest; enrollmentNo,
    department and semester are required, cgpa is optional.
    """
    if redirect := _require_auth(request):
        return redirect
    try:
        body = ProfileUpdateRequest.model_validate(payload)
    except PydanticValidationError as exc:
        error = ValidationError(_profile_error_code(exc))
        return _update_result(False, error.message, error.status_code)

    profile = StudentProfile(
        enrollment_no=body.enrollment_no,
        department=body.department,
        semester=body.semester,
        cgpa=body.cgpa,
    )
    try:
        profile_flow.update_profile(users, request.state.session, profile)
    except NotFoundError as exc:
        _end_stale_session(request, sessions)
        resp = _update_result(False, exc.message, exc.status_code)
        clear_session_cookie(resp)
        return resp
    except ValidationError as exc:
        return _update_result(False, exc.message, exc.status_code)
    except StoreError:
        return _update_result(False, "Error updating profile", 500)
    return _update_result(True, _UPDATE_SUCCESS)


# ---------------------------------------------------------------------------
# Error pages
#
# JSON callers (the update endpoint and /api/) get the ErrorResponse envelope;
# everyone else gets error.html. Internal detail goes to the log only.
# ---------------------------------------------------------------------------


def _wants_json(request: Request) -> bool:
    path = request.url.path
    return path.startswith("/api/") or path == "/dashboard/update"


def _error_response(request: Request, status_code: int, code: str, message: str) -> Response:
    if _wants_json(request):
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
        )
    return _render(request, "error.html", {"message": message}, status_code=status_code)


async def http_error_page(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 404:
        return _error_response(request, 404, "not_found", "Page not found")
    return _error_response(request, exc.status_code, f"http_{exc.status_code}", "An error occurred")


async def rate_limit_page(request: Request, exc: RateLimitExceeded) -> Response:
    """Return 429 with Retry-After when a login or signup limit is exceeded."""
    logger.warning("Rate limit exceeded on %s %s", request.method, request.url.path)
    response = _error_response(request, 429, "rate_limited", "Too many requests. Please wait and try again.")
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


async def server_error_page(request: Request, exc: Exception) -> Response:
    """Catch-all for unexpected failures. The traceback is logged, never rendered."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(request, 500, "internal_error", "An error occurred")


def install_error_pages(app: FastAPI) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limit_page)
    app.add_exception_handler(StarletteHTTPException, http_error_page)
    app.add_exception_handler(Exception, server_error_page)
