"""Request-level session and route-guard middleware.

Extracts the session token from the cookie, validates it, and populates:
  - ``request.state.user``           — dict with id, email, display_name, role
  - ``request.state.backend_tokens`` — backend access/refresh token pair

Unauthenticated requests to protected paths get a 401 or a redirect to the
login page; non-admins are kept out of ``/admin``.

Also enforces double-submit CSRF protection on state-changing methods, and
writes refreshed backend tokens back into the session cookie.
"""

from __future__ import annotations

import re
import secrets

import jwt as pyjwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from .auth import (
    _SESSION_COOKIE_NAME,
    _should_refresh,
    clear_session_cookie,
    create_session_token,
    decode_session_token,
    is_admin,
    session_tokens,
    session_user,
    set_session_cookie,
)

# Paths that do NOT require authentication.
_PUBLIC_PATHS: list[re.Pattern[str]] = [
    re.compile(r"^/health$"),
    re.compile(r"^/winners$"),
    re.compile(r"^/raffles/"),
    re.compile(r"^/subscriptions/plans$"),
    re.compile(r"^/super-chances/price$"),
    re.compile(r"^/app/login$"),
    re.compile(r"^/auth/(login|register|logout|forgot-password|reset-password|verify-email|resend-verification)$"),
    re.compile(r"^/docs$"),
    re.compile(r"^/openapi\.json$"),
    re.compile(r"^/favicon\.ico$"),
]

_ADMIN_PATH_RE = re.compile(r"^/admin(/|$)")

_LOGIN_URL = "/app/login"
_DASHBOARD_URL = "/app/dashboard"

# CSRF settings.
_CSRF_COOKIE_NAME = "raffle_csrf"
_CSRF_HEADER_NAME = "x-csrf-token"
_CSRF_TOKEN_LENGTH = 32
_CSRF_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _is_public(path: str) -> bool:
    for pat in _PUBLIC_PATHS:
        if pat.search(path):
            return True
    return False


def _wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def _deny(request: Request, status_code: int, detail: str, redirect_to: str) -> Response:
    if _wants_json(request):
        return JSONResponse({"detail": detail}, status_code=status_code)
    return RedirectResponse(url=redirect_to, status_code=302)


def _ensure_csrf_cookie(request: Request, response: Response) -> None:
    """Set the CSRF cookie if not already present so JS can read it."""
    if request.cookies.get(_CSRF_COOKIE_NAME):
        return
    token = secrets.token_hex(_CSRF_TOKEN_LENGTH)
    response.set_cookie(
        key=_CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # JS must be able to read it.
        samesite="lax",
        path="/",
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that guards the dashboard and the admin console."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        # Always allow public endpoints.
        if _is_public(path):
            response = await call_next(request)
            _ensure_csrf_cookie(request, response)
            return response

        token = request.cookies.get(_SESSION_COOKIE_NAME)
        if not token:
            return _deny(request, 401, "Not authenticated", _LOGIN_URL)

        try:
            claims = decode_session_token(token)
        except pyjwt.ExpiredSignatureError:
            return _deny(request, 401, "Session expired", _LOGIN_URL)
        except pyjwt.PyJWTError:
            return _deny(request, 401, "Invalid session", _LOGIN_URL)

        user = session_user(claims)
        if _ADMIN_PATH_RE.search(path) and not is_admin(user):
            return _deny(request, 403, "Insufficient permissions", _DASHBOARD_URL)

        # CSRF check for state-changing methods.
        if request.method not in _CSRF_SAFE_METHODS:
            csrf_cookie = request.cookies.get(_CSRF_COOKIE_NAME, "")
            csrf_header = request.headers.get(_CSRF_HEADER_NAME, "")
            if not csrf_cookie or not csrf_header or csrf_cookie != csrf_header:
                return JSONResponse({"detail": "CSRF token mismatch"}, status_code=403)

        # Populate request.state for downstream route handlers.
        request.state.user = user
        request.state.backend_tokens = session_tokens(claims)

        response = await call_next(request)

        # Ensure CSRF cookie is always present.
        _ensure_csrf_cookie(request, response)

        backend = getattr(request.state, "backend", None)
        if backend is not None and backend.session_expired:
            clear_session_cookie(response)
        elif backend is not None and backend.tokens_changed and backend.tokens is not None:
            set_session_cookie(response, create_session_token(user, backend.tokens))
        elif _should_refresh(claims) and request.state.backend_tokens is not None:
            # Sliding window refresh: issue a new token when >50% of lifetime is gone.
            set_session_cookie(response, create_session_token(user, request.state.backend_tokens))

        return response
