from __future__ import annotations

from datetime import date, datetime

import pytest

from raffle_web.winners import Winner


@pytest.fixture()
def fixed_now() -> datetime:
    # Keep tests deterministic: Wednesday 2026-03-18, mid-afternoon.
    return datetime(2026, 3, 18, 15, 30)


@pytest.fixture()
def min_date() -> date:
    return date(2026, 1, 1)


def make_winner(winner_id: str, award_date: date, prize: str = "Prize") -> Winner:
    return Winner(
        id=winner_id,
        award_date=award_date,
        prize_name=prize,
        winner_name=f"Winner {winner_id}",
        code=f"C-{winner_id}",
        image=f"/img/{winner_id}.jpg",
    )


@pytest.fixture()
def winners() -> list[Winner]:
    return [
        make_winner("w1", date(2026, 1, 9), "TV"),
        make_winner("w2", date(2026, 1, 16), "Phone"),
        make_winner("w3", date(2026, 1, 9), "Bike"),
        make_winner("w4", date(2026, 2, 27), "Laptop"),
        make_winner("w5", date(2026, 3, 13), "Console"),
    ]
