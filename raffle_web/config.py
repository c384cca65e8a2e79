from __future__ import annotations

import logging
import os
from datetime import date

_DEFAULT_BACKEND_URL = "http://localhost:8080/api"
_DEFAULT_BACKEND_TIMEOUT_SECONDS = 10.0

# Winners are published from the first draw of 2026 onwards.
_DEFAULT_WINNERS_MIN_DATE = date(2026, 1, 1)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_backend_url() -> str:
    url = os.environ.get("BACKEND_API_URL", "").strip() or _DEFAULT_BACKEND_URL
    return url.rstrip("/")


def get_backend_timeout() -> float:
    raw = os.environ.get("BACKEND_TIMEOUT_SECONDS", "").strip()
    if not raw:
        return _DEFAULT_BACKEND_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        raise RuntimeError(f"BACKEND_TIMEOUT_SECONDS is not a number: {raw!r}") from None
    if timeout <= 0:
        raise RuntimeError("BACKEND_TIMEOUT_SECONDS must be positive")
    return timeout


def get_winners_min_date() -> date:
    raw = os.environ.get("WINNERS_MIN_DATE", "").strip()
    if not raw:
        return _DEFAULT_WINNERS_MIN_DATE
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise RuntimeError(f"WINNERS_MIN_DATE is not an ISO date: {raw!r}") from None


def configure_logging() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise RuntimeError(f"LOG_LEVEL is not a logging level: {level_name!r}")
    logging.basicConfig(level=level, format=_LOG_FORMAT)
