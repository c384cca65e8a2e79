from __future__ import annotations

from datetime import date, datetime, timedelta

_FRIDAY = 4  # date.weekday(): Monday == 0

_MONTH_NAMES = (
    "ENERO",
    "FEBRERO",
    "MARZO",
    "ABRIL",
    "MAYO",
    "JUNIO",
    "JULIO",
    "AGOSTO",
    "SEPTIEMBRE",
    "OCTUBRE",
    "NOVIEMBRE",
    "DICIEMBRE",
)

_WEEKDAY_ABBR = ("lun", "mar", "mié", "jue", "vie", "sáb", "dom")


def _as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, so check it first.
    if isinstance(value, datetime):
        return value.date()
    return value


def most_recent_friday(now: date | datetime) -> date:
    """Return the latest Friday on or before the calendar date of ``now``.

    A Friday maps to itself, not to the Friday of the previous week. The time
    of day is dropped.
    """

    today = _as_date(now)
    days_back = (today.weekday() - _FRIDAY) % 7
    return today - timedelta(days=days_back)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by ``delta`` months, rolling the year as needed."""

    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def first_of_month(year: int, month: int) -> date:
    return date(year, month, 1)


def can_go_to_previous_month(year: int, month: int, min_date: date) -> bool:
    prev_year, prev_month = shift_month(year, month, -1)
    return first_of_month(prev_year, prev_month) >= _as_date(min_date)


def can_go_to_next_month(year: int, month: int, max_date: date) -> bool:
    next_year, next_month = shift_month(year, month, 1)
    return first_of_month(next_year, next_month) <= _as_date(max_date)


def fridays_in_month(year: int, month: int, max_date: date | None = None) -> list[date]:
    """List the Fridays of (year, month) in ascending order.

    Fridays strictly after ``max_date`` are left out, so a month that starts
    after ``max_date`` yields an empty list.
    """

    limit = _as_date(max_date) if max_date is not None else None
    first = first_of_month(year, month)
    d = first + timedelta(days=(_FRIDAY - first.weekday()) % 7)

    fridays: list[date] = []
    while d.month == month:
        if limit is not None and d > limit:
            break
        fridays.append(d)
        d += timedelta(days=7)
    return fridays


def month_name(month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return _MONTH_NAMES[month - 1]


def format_date_for_display(d: date) -> str:
    # e.g. "vie, 9 de enero de 2026"
    return f"{_WEEKDAY_ABBR[d.weekday()]}, {d.day} de {month_name(d.month).lower()} de {d.year}"
