"""Winner records as published by the backend's ``/raffles/winners`` endpoint.

Records are validated on the way in (``parse_winner``/``parse_winners``) so
that everything downstream, the filter included, only ever sees well-formed
``Winner`` values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

log = logging.getLogger(__name__)


class WinnerParseError(ValueError):
    """A backend winner record is missing a field or carries a bad value."""


@dataclass(frozen=True)
class Winner:
    id: str
    award_date: date
    prize_name: str
    winner_name: str
    code: str
    image: str

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.award_date.isoformat(),
            "prize_name": self.prize_name,
            "winner_name": self.winner_name,
            "code": self.code,
            "image": self.image,
        }


_REQUIRED_TEXT_FIELDS = (
    ("prizeName", "prize_name"),
    ("winnerName", "winner_name"),
    ("code", "code"),
)


def _parse_award_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise WinnerParseError(f"invalid winner date: {value!r}")

    s = value.strip()
    # Python < 3.11 does not accept a trailing "Z".
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        # The calendar date is taken as written; no timezone conversion.
        return datetime.fromisoformat(s).date()
    except ValueError as exc:
        raise WinnerParseError(f"invalid winner date: {value!r}") from exc


def parse_winner(raw: Any) -> Winner:
    """Build a ``Winner`` from one backend JSON object.

    Raises ``WinnerParseError`` on the first problem found.
    """

    if not isinstance(raw, dict):
        raise WinnerParseError(f"winner record must be an object, got {type(raw).__name__}")

    winner_id = raw.get("id")
    if winner_id is None or str(winner_id).strip() == "":
        raise WinnerParseError("winner record has no id")

    if "date" not in raw:
        raise WinnerParseError(f"winner {winner_id} has no date")
    award_date = _parse_award_date(raw["date"])

    text: dict[str, str] = {}
    for key, attr in _REQUIRED_TEXT_FIELDS:
        v = raw.get(key)
        if not isinstance(v, str):
            raise WinnerParseError(f"winner {winner_id} has no {key}")
        text[attr] = v

    image = raw.get("image")
    if image is not None and not isinstance(image, str):
        raise WinnerParseError(f"winner {winner_id} has an invalid image")

    return Winner(
        id=str(winner_id),
        award_date=award_date,
        image=image or "",
        **text,
    )


def parse_winners(items: Any) -> list[Winner]:
    """Ingest a backend winners payload, dropping records that do not parse."""

    if not isinstance(items, list):
        raise WinnerParseError(f"winners payload must be a list, got {type(items).__name__}")

    winners: list[Winner] = []
    for raw in items:
        try:
            winners.append(parse_winner(raw))
        except WinnerParseError as exc:
            log.warning("Rejected winner record: %s", exc)
    return winners


def filter_winners(
    winners: Iterable[Winner],
    year: int,
    month: int,
    selected_day: int | None = None,
) -> list[Winner]:
    """Winners awarded on (year, month, selected_day), or anywhere in the month.

    Input order is preserved.
    """

    if selected_day is not None:
        target = date(year, month, selected_day)
        return [w for w in winners if w.award_date == target]
    return [w for w in winners if w.award_date.year == year and w.award_date.month == month]
