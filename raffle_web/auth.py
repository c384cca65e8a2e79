"""Session and authorization helpers.

Provides:
- The session token (PyJWT) that carries the user and the backend token pair
- Session cookie helpers with sliding refresh
- FastAPI dependencies for the current user, role checks and the backend client
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

import jwt
from fastapi import Depends, HTTPException, Request, Response

from .backend import BackendClient, TokenPair

ADMIN_ROLE = "ADMIN"

# Mirrors the backend's password rule for resets.
_PASSWORD_MIN_LENGTH = 8


def validate_password(plain: str) -> str | None:
    """Return an error message if ``plain`` is too weak, else ``None``."""
    if len(plain) < _PASSWORD_MIN_LENGTH:
        return f"Password must be at least {_PASSWORD_MIN_LENGTH} characters."
    return None


# ---------------------------------------------------------------------------
# Session token
# ---------------------------------------------------------------------------

_SESSION_SECRET_ENV = "SESSION_SECRET"
_JWT_ALGORITHM = "HS256"
_JWT_LIFETIME_HOURS = 24
_SESSION_COOKIE_NAME = "raffle_session"
_JWT_REFRESH_FRACTION = 0.5  # issue new token when >50 % of lifetime has passed


def _get_session_secret() -> str:
    secret = os.environ.get(_SESSION_SECRET_ENV, "")
    if not secret:
        # Fallback for development — NOT safe for production.
        secret = "dev-secret-change-me"
    return secret


def create_session_token(user: dict[str, Any], tokens: TokenPair) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.get("id", "")),
        "email": user.get("email", ""),
        "name": user.get("displayName") or user.get("display_name") or "",
        "role": user.get("role", ""),
        "at": tokens.access_token,
        "rt": tokens.refresh_token,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=_JWT_LIFETIME_HOURS)).timestamp()),
    }
    return jwt.encode(payload, _get_session_secret(), algorithm=_JWT_ALGORITHM)


def decode_session_token(token: str) -> dict[str, Any]:
    """Decode and verify a session token.  Raises ``jwt.PyJWTError`` on failure."""
    return jwt.decode(token, _get_session_secret(), algorithms=[_JWT_ALGORITHM])


def session_user(claims: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": claims.get("sub", ""),
        "email": claims.get("email", ""),
        "display_name": claims.get("name", ""),
        "role": claims.get("role", ""),
    }


def session_tokens(claims: dict[str, Any]) -> TokenPair | None:
    access_token = claims.get("at")
    if not access_token:
        return None
    return TokenPair(access_token, claims.get("rt"))


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=_SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=_JWT_LIFETIME_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=_SESSION_COOKIE_NAME, path="/")


def _should_refresh(claims: dict[str, Any]) -> bool:
    """Return True when >50 % of the token lifetime has elapsed."""
    iat = claims.get("iat", 0)
    exp = claims.get("exp", 0)
    if not iat or not exp:
        return False
    lifetime = exp - iat
    if lifetime <= 0:
        return False
    elapsed = time.time() - iat
    return elapsed > (lifetime * _JWT_REFRESH_FRACTION)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def is_admin(user: dict[str, Any] | None) -> bool:
    return bool(user) and user.get("role") == ADMIN_ROLE


def get_current_user(request: Request) -> dict[str, Any]:
    """Extract the authenticated user from ``request.state`` (set by middleware).

    Raises 401 if not authenticated.
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_role(*allowed_roles: str):
    """Return a FastAPI dependency that checks the user's role."""

    def _check(request: Request) -> dict[str, Any]:
        user = get_current_user(request)
        if user["role"] not in allowed_roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return Depends(_check)


def get_backend(request: Request) -> Iterator[BackendClient]:
    """Yield a backend client bound to the caller's session tokens.

    The client is left on ``request.state`` so the middleware can persist
    refreshed tokens into the session cookie.
    """
    client = BackendClient(tokens=getattr(request.state, "backend_tokens", None))
    request.state.backend = client
    try:
        yield client
    finally:
        client.close()
