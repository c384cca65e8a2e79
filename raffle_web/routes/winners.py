from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_backend
from ..backend import BackendClient
from ..config import get_winners_min_date
from ..winner_calendar import WinnerCalendar
from ..winners import WinnerParseError, parse_winners

log = logging.getLogger(__name__)

router = APIRouter(tags=["winners"])


def get_clock() -> datetime:
    """Current local time; overridden in tests."""
    return datetime.now()


@router.get("/winners")
def winners_calendar(
    year: int | None = Query(default=None, ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    day: int | None = Query(default=None, ge=0, le=31),
    backend: BackendClient = Depends(get_backend),
    now: datetime = Depends(get_clock),
) -> dict[str, Any]:
    """Winner calendar for one month.

    Without ``year``/``month`` the month of the most recent Friday is shown.
    A month outside the navigable range is ignored, together with ``day``,
    and the default month is returned instead. ``day`` picks one of the
    month's Fridays; ``day=0`` shows every winner of the month. Without
    ``day`` the last Friday of the month is selected.
    """

    if (year is None) != (month is None):
        raise HTTPException(status_code=400, detail="year and month must be given together")

    try:
        winners = parse_winners(backend.get_winners())
    except WinnerParseError as exc:
        log.warning("Unusable winners payload from backend: %s", exc)
        raise HTTPException(status_code=502, detail="invalid winners payload") from exc

    calendar = WinnerCalendar(winners, now=now, min_date=get_winners_min_date())
    if year is not None and month is not None and not calendar.go_to(year, month):
        # The day belonged to the ignored month.
        day = None

    if day is not None:
        try:
            calendar.select_day(day or None)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    return calendar.to_dict()
