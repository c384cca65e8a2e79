"""State holder for the public winner calendar.

The calendar shows one month at a time and lets the visitor pick one of that
month's Fridays (draws happen weekly on Fridays). Navigation is bounded by a
fixed platform epoch and by the most recent Friday; moves past either bound
are ignored.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Sequence

from .dates import (
    can_go_to_next_month,
    can_go_to_previous_month,
    first_of_month,
    fridays_in_month,
    month_name,
    most_recent_friday,
    shift_month,
)
from .winners import Winner, filter_winners


class WinnerCalendar:
    def __init__(
        self,
        winners: Sequence[Winner],
        *,
        now: date | datetime,
        min_date: date,
    ) -> None:
        self.all_winners = list(winners)
        self.max_date = most_recent_friday(now)
        # The starting month must stay navigable even when min_date is later.
        self.min_date = min(min_date, first_of_month(self.max_date.year, self.max_date.month))

        self.year = self.max_date.year
        self.month = self.max_date.month
        self.selected_day: int | None = None
        self._auto_select()

    # -- derived values ------------------------------------------------------

    @property
    def fridays(self) -> list[date]:
        return fridays_in_month(self.year, self.month, self.max_date)

    @property
    def can_go_previous(self) -> bool:
        return can_go_to_previous_month(self.year, self.month, self.min_date)

    @property
    def can_go_next(self) -> bool:
        return can_go_to_next_month(self.year, self.month, self.max_date)

    @property
    def winners(self) -> list[Winner]:
        return filter_winners(self.all_winners, self.year, self.month, self.selected_day)

    # -- state changes -------------------------------------------------------

    def _auto_select(self) -> None:
        if self.selected_day is not None:
            return
        fridays = self.fridays
        if fridays:
            self.selected_day = fridays[-1].day

    def _set_month(self, year: int, month: int) -> None:
        self.year, self.month = year, month
        self.selected_day = None
        self._auto_select()

    def previous_month(self) -> bool:
        if not self.can_go_previous:
            return False
        self._set_month(*shift_month(self.year, self.month, -1))
        return True

    def next_month(self) -> bool:
        if not self.can_go_next:
            return False
        self._set_month(*shift_month(self.year, self.month, 1))
        return True

    def go_to(self, year: int, month: int) -> bool:
        """Jump to (year, month); a month outside the navigable range is ignored."""

        if not 1 <= month <= 12:
            return False
        target = first_of_month(year, month)
        if target < self.min_date or target > self.max_date:
            return False
        if (year, month) != (self.year, self.month):
            self._set_month(year, month)
        return True

    def _check_friday(self, day: int) -> None:
        if day not in {d.day for d in self.fridays}:
            raise ValueError(f"{self.year}-{self.month:02d}-{day:02d} is not a selectable Friday")

    def select_day(self, day: int | None) -> None:
        """Select a Friday of the displayed month; ``None`` shows the whole month."""

        if day is not None:
            self._check_friday(day)
        self.selected_day = day

    def toggle_day(self, day: int) -> None:
        if self.selected_day == day:
            self.selected_day = None
            self._auto_select()
            return
        self.select_day(day)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "month_name": month_name(self.month),
            "fridays": [d.isoformat() for d in self.fridays],
            "selected_day": self.selected_day,
            "can_go_previous": self.can_go_previous,
            "can_go_next": self.can_go_next,
            "min_date": self.min_date.isoformat(),
            "max_date": self.max_date.isoformat(),
            "winners": [w.to_public() for w in self.winners],
        }
