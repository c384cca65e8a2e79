from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .auth import clear_session_cookie
from .backend import BackendError, BackendUnavailableError, SessionExpiredError
from .config import configure_logging
from .middleware import AuthMiddleware
from .routes import admin as admin_routes
from .routes import app as app_routes
from .routes import auth as auth_routes
from .routes import public as public_routes
from .routes import winners as winners_routes

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="Raffle Web", version="0.1.0")
app.add_middleware(AuthMiddleware)

app.include_router(winners_routes.router)
app.include_router(public_routes.router)
app.include_router(auth_routes.router)
app.include_router(app_routes.router)
app.include_router(admin_routes.router)


@app.exception_handler(SessionExpiredError)
def _session_expired(request: Request, exc: SessionExpiredError) -> JSONResponse:
    response = JSONResponse({"detail": "Session expired"}, status_code=401)
    clear_session_cookie(response)
    return response


@app.exception_handler(BackendUnavailableError)
def _backend_unavailable(request: Request, exc: BackendUnavailableError) -> JSONResponse:
    log.warning("Backend unavailable on %s %s", request.method, request.url.path)
    return JSONResponse({"detail": exc.detail}, status_code=502)


@app.exception_handler(BackendError)
def _backend_error(request: Request, exc: BackendError) -> JSONResponse:
    # Backend 5xx are reported as a bad gateway; client errors pass through.
    status_code = exc.status_code if 400 <= exc.status_code < 500 else 502
    return JSONResponse({"detail": exc.detail}, status_code=status_code)


@app.get("/health")
def health() -> dict[str, str]:
    return {"ok": "true"}
