"""Auth routes: login, registration, logout, password flows, current-user info."""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict

from ..auth import (
    clear_session_cookie,
    create_session_token,
    get_backend,
    get_current_user,
    set_session_cookie,
    validate_password,
)
from ..backend import BackendClient, BackendError

router = APIRouter(prefix="/auth", tags=["auth"])

# ---------------------------------------------------------------------------
# Login rate limiting — 5 attempts per IP per 5-minute window (in-memory).
# ---------------------------------------------------------------------------

_RATE_MAX_ATTEMPTS = 5
_RATE_WINDOW_SECS = 300  # 5 minutes

# ip -> list of attempt timestamps (only failures counted)
_login_attempts: dict[str, list[float]] = defaultdict(list)


def _check_rate_limit(client_ip: str) -> None:
    """Raise 429 if the IP has too many recent failed login attempts."""
    now = time.monotonic()
    cutoff = now - _RATE_WINDOW_SECS
    attempts = _login_attempts[client_ip]
    # Prune old entries.
    _login_attempts[client_ip] = [t for t in attempts if t > cutoff]
    if len(_login_attempts[client_ip]) >= _RATE_MAX_ATTEMPTS:
        raise HTTPException(
            status_code=429,
            detail=f"Too many login attempts. Try again in {_RATE_WINDOW_SECS // 60} minutes.",
        )


def _record_failed_attempt(client_ip: str) -> None:
    _login_attempts[client_ip].append(time.monotonic())


def _clear_attempts(client_ip: str) -> None:
    _login_attempts.pop(client_ip, None)


def _start_session(response: Response, user: dict[str, Any], backend: BackendClient) -> None:
    if backend.tokens is None:
        raise HTTPException(status_code=502, detail="Backend returned no session")
    set_session_cookie(response, create_session_token(user, backend.tokens))


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    backend: BackendClient = Depends(get_backend),
) -> dict[str, Any]:
    """Authenticate against the backend and keep its tokens in the session cookie."""
    client_ip = request.client.host if request.client else "unknown"
    _check_rate_limit(client_ip)

    try:
        user = backend.login(body.email, body.password)
    except BackendError as exc:
        if exc.status_code in (400, 401, 403):
            _record_failed_attempt(client_ip)
            raise HTTPException(status_code=401, detail="Invalid credentials") from exc
        raise

    _start_session(response, user, backend)
    _clear_attempts(client_ip)
    return {"ok": True, "user": user}


class RegisterRequest(BaseModel):
    # Profile fields beyond email/password are forwarded to the backend as sent.
    model_config = ConfigDict(extra="allow")

    email: str
    password: str


@router.post("/register")
def register(
    body: RegisterRequest,
    response: Response,
    backend: BackendClient = Depends(get_backend),
) -> dict[str, Any]:
    pw_err = validate_password(body.password)
    if pw_err:
        raise HTTPException(status_code=400, detail=pw_err)

    user = backend.register(body.model_dump(exclude_none=True))
    _start_session(response, user, backend)
    return {"ok": True, "user": user}


@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    clear_session_cookie(response)
    return {"ok": "true"}


@router.get("/me")
def me(request: Request, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    """Return the session user, refreshed from the backend profile."""
    user = get_current_user(request)
    profile = backend.get_me()
    return {"user": user, "profile": profile}


class EmailRequest(BaseModel):
    email: str


@router.post("/forgot-password")
def forgot_password(body: EmailRequest, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    backend.forgot_password(body.email)
    return {"ok": True}


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    confirm_password: str


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    if body.password != body.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match.")
    pw_err = validate_password(body.password)
    if pw_err:
        raise HTTPException(status_code=400, detail=pw_err)

    backend.reset_password(body.token, body.password)
    return {"ok": True}


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


@router.post("/change-password")
def change_password(body: ChangePasswordRequest, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    pw_err = validate_password(body.new_password)
    if pw_err:
        raise HTTPException(status_code=400, detail=pw_err)

    backend.change_password(body.current_password, body.new_password)
    return {"ok": True}


@router.get("/verify-email")
def verify_email(token: str, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    if not token.strip():
        raise HTTPException(status_code=400, detail="missing token")
    backend.verify_email(token)
    return {"ok": True}


@router.post("/resend-verification")
def resend_verification(body: EmailRequest, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    backend.resend_verification(body.email)
    return {"ok": True}
