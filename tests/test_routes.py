"""HTTP tests for the app: winner calendar, guards, session refresh, auth routes."""

from __future__ import annotations

import functools
import json
from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient

import raffle_web.auth as auth_module
from raffle_web.auth import _SESSION_COOKIE_NAME, create_session_token, decode_session_token
from raffle_web.backend import BackendClient, TokenPair
from raffle_web.main import app
from raffle_web.routes.auth import _clear_attempts
from raffle_web.routes.winners import get_clock

_BASE = "http://backend.test/api"
_CSRF = "csrf-test-token"

_WINNERS = [
    {"id": 1, "date": "2026-01-09", "prizeName": "TV", "winnerName": "Ana", "code": "A1", "image": "/a.jpg"},
    {"id": 2, "date": "2026-01-16", "prizeName": "Phone", "winnerName": "Luis", "code": "B2", "image": "/b.jpg"},
    {"id": 3, "date": "2026-01-09", "prizeName": "Bike", "winnerName": "Eva", "code": "C3", "image": "/c.jpg"},
    {"id": 4, "date": "2026-03-13T19:00:00Z", "prizeName": "Console", "winnerName": "Raúl", "code": "D4", "image": "/d.jpg"},
]


class _FakeBackend:
    def __init__(self) -> None:
        self.valid_access = "access-1"
        self.refresh_ok = True
        self.winners_payload: object = list(_WINNERS)
        self.down = False
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("refused", request=request)

        path = request.url.path.removeprefix("/api")

        if path == "/raffles/winners":
            return httpx.Response(200, json=self.winners_payload)
        if path == "/raffles/active":
            return httpx.Response(200, json={"id": "r1", "status": "ACTIVE"})
        if path == "/raffles/missing":
            return httpx.Response(404, json={"message": "Raffle not found"})
        if path == "/auth/refresh":
            if not self.refresh_ok:
                return httpx.Response(401, json={"message": "expired"})
            self.valid_access = "access-2"
            return httpx.Response(200, json={"accessToken": "access-2", "refreshToken": "refresh-2"})
        if path == "/auth/login":
            body = json.loads(request.content)
            if body["password"] != "Secret123":
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(
                200,
                json={
                    "accessToken": "access-1",
                    "refreshToken": "refresh-1",
                    "user": {"id": "u1", "email": body["email"], "displayName": "Ana", "role": "USER"},
                },
            )

        if request.headers.get("authorization") != f"Bearer {self.valid_access}":
            return httpx.Response(401, json={"message": "Unauthorized"})
        return httpx.Response(200, json={"method": request.method, "path": path})


@pytest.fixture()
def fake_backend(monkeypatch) -> _FakeBackend:
    fake = _FakeBackend()
    monkeypatch.setattr(
        auth_module,
        "BackendClient",
        functools.partial(BackendClient, _BASE, transport=httpx.MockTransport(fake)),
    )
    return fake


@pytest.fixture(autouse=True)
def _fixed_clock(fixed_now: datetime):
    app.dependency_overrides[get_clock] = lambda: fixed_now
    yield
    app.dependency_overrides.pop(get_clock, None)


def _session(role: str = "USER", access: str = "access-1") -> str:
    user = {"id": "u1", "email": "ana@example.com", "displayName": "Ana", "role": role}
    return create_session_token(user, TokenPair(access, "refresh-1"))


def _client(session: str | None = None) -> TestClient:
    cookies = {"raffle_csrf": _CSRF}
    if session:
        cookies[_SESSION_COOKIE_NAME] = session
    return TestClient(app, cookies=cookies)


_JSON = {"accept": "application/json"}


def test_health() -> None:
    response = _client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": "true"}


# ---------------------------------------------------------------------------
# Winner calendar
# ---------------------------------------------------------------------------


class TestWinnersCalendar:
    def test_default_month_is_last_friday(self, fake_backend) -> None:
        data = _client().get("/winners").json()
        assert (data["year"], data["month"]) == (2026, 3)
        assert data["month_name"] == "MARZO"
        assert data["fridays"] == ["2026-03-06", "2026-03-13"]
        assert data["selected_day"] == 13
        assert data["can_go_next"] is False
        assert [w["code"] for w in data["winners"]] == ["D4"]

    def test_exact_day(self, fake_backend) -> None:
        data = _client().get("/winners", params={"year": 2026, "month": 1, "day": 9}).json()
        assert data["selected_day"] == 9
        assert [w["id"] for w in data["winners"]] == ["1", "3"]
        assert data["can_go_previous"] is False

    def test_month_view_with_day_zero(self, fake_backend) -> None:
        data = _client().get("/winners", params={"year": 2026, "month": 1, "day": 0}).json()
        assert data["selected_day"] is None
        assert [w["id"] for w in data["winners"]] == ["1", "2", "3"]

    def test_month_without_day_selects_last_friday(self, fake_backend) -> None:
        data = _client().get("/winners", params={"year": 2026, "month": 1}).json()
        assert data["selected_day"] == 30
        assert data["winners"] == []

    def test_out_of_range_month_is_ignored(self, fake_backend) -> None:
        data = _client().get("/winners", params={"year": 2025, "month": 6}).json()
        assert (data["year"], data["month"]) == (2026, 3)

    def test_day_of_ignored_month_is_ignored(self, fake_backend) -> None:
        response = _client().get("/winners", params={"year": 2025, "month": 12, "day": 26})
        assert response.status_code == 200
        data = response.json()
        assert (data["year"], data["month"]) == (2026, 3)
        assert data["selected_day"] == 13

    def test_year_without_month_rejected(self, fake_backend) -> None:
        assert _client().get("/winners", params={"year": 2026}).status_code == 400

    def test_non_friday_rejected(self, fake_backend) -> None:
        response = _client().get("/winners", params={"year": 2026, "month": 1, "day": 10})
        assert response.status_code == 400

    def test_malformed_records_dropped(self, fake_backend) -> None:
        fake_backend.winners_payload = list(_WINNERS) + [
            {"id": 9, "date": "13/03/2026", "prizeName": "X", "winnerName": "Y", "code": "Z"}
        ]
        data = _client().get("/winners").json()
        assert [w["code"] for w in data["winners"]] == ["D4"]

    def test_non_list_payload_is_bad_gateway(self, fake_backend) -> None:
        fake_backend.winners_payload = {"error": "nope"}
        assert _client().get("/winners").status_code == 502

    def test_backend_down_is_bad_gateway(self, fake_backend) -> None:
        fake_backend.down = True
        response = _client().get("/winners")
        assert response.status_code == 502


def test_public_raffle_error_passes_through(fake_backend) -> None:
    assert _client().get("/raffles/active").json() == {"id": "r1", "status": "ACTIVE"}
    response = _client().get("/raffles/missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Raffle not found"}


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class TestGuards:
    def test_dashboard_requires_session_json(self, fake_backend) -> None:
        response = _client().get("/app/orders", headers=_JSON)
        assert response.status_code == 401

    def test_dashboard_redirects_browser_to_login(self, fake_backend) -> None:
        response = _client().get("/app/orders", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/app/login"

    def test_login_redirect_lands_on_public_page(self, fake_backend) -> None:
        response = _client().get("/app/orders")
        assert response.status_code == 200
        assert response.url.path == "/app/login"
        assert response.json()["login"] == {"method": "POST", "url": "/auth/login"}

    def test_garbage_session_rejected(self, fake_backend) -> None:
        response = _client("not-a-jwt").get("/app/orders", headers=_JSON)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid session"

    def test_user_reaches_dashboard(self, fake_backend) -> None:
        response = _client(_session()).get("/app/orders")
        assert response.status_code == 200
        assert response.json() == {"method": "GET", "path": "/orders/me"}

    def test_user_kept_out_of_admin(self, fake_backend) -> None:
        response = _client(_session("USER")).get("/admin/raffles", headers=_JSON)
        assert response.status_code == 403

    def test_user_redirected_to_dashboard_from_admin(self, fake_backend) -> None:
        response = _client(_session("USER")).get("/admin/raffles", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/app/dashboard"

    def test_admin_redirect_lands_on_dashboard(self, fake_backend) -> None:
        response = _client(_session("USER")).get("/admin/raffles")
        assert response.status_code == 200
        assert response.url.path == "/app/dashboard"
        assert response.json()["user"]["role"] == "USER"

    def test_admin_reaches_admin(self, fake_backend) -> None:
        response = _client(_session("ADMIN")).get("/admin/raffles")
        assert response.status_code == 200
        assert response.json()["path"] == "/admin/raffles"

    def test_state_change_requires_csrf(self, fake_backend) -> None:
        client = _client(_session())
        assert client.post("/app/orders/o1/cancel").status_code == 403
        response = client.post("/app/orders/o1/cancel", headers={"x-csrf-token": _CSRF})
        assert response.status_code == 200
        assert response.json() == {"method": "POST", "path": "/orders/o1/cancel"}

    def test_admin_order_status_validated(self, fake_backend) -> None:
        client = _client(_session("ADMIN"))
        assert client.get("/admin/orders", params={"status": "paid"}).json()["path"] == "/admin/orders/status/PAID"
        assert client.get("/admin/orders", params={"status": "ALL"}).json()["path"] == "/admin/orders"
        assert client.get("/admin/orders", params={"status": "lost"}).status_code == 400


# ---------------------------------------------------------------------------
# Backend session refresh through the cookie
# ---------------------------------------------------------------------------


class TestSessionRefresh:
    def test_refreshed_tokens_written_back(self, fake_backend) -> None:
        fake_backend.valid_access = "access-2"
        response = _client(_session(access="stale")).get("/app/cards")
        assert response.status_code == 200

        new_cookie = response.cookies.get(_SESSION_COOKIE_NAME)
        assert new_cookie
        claims = decode_session_token(new_cookie)
        assert claims["at"] == "access-2"
        assert claims["rt"] == "refresh-2"
        assert claims["role"] == "USER"

    def test_failed_refresh_clears_session(self, fake_backend) -> None:
        fake_backend.valid_access = "access-2"
        fake_backend.refresh_ok = False
        response = _client(_session(access="stale")).get("/app/cards")
        assert response.status_code == 401
        assert response.json() == {"detail": "Session expired"}
        set_cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith(f"{_SESSION_COOKIE_NAME}=") and "Max-Age=0" in c for c in set_cookies)

    def test_no_cookie_rewrite_without_refresh(self, fake_backend) -> None:
        response = _client(_session()).get("/app/cards")
        assert response.status_code == 200
        assert _SESSION_COOKIE_NAME not in response.cookies


# ---------------------------------------------------------------------------
# Auth routes
# ---------------------------------------------------------------------------


class TestAuthRoutes:
    def setup_method(self) -> None:
        _clear_attempts("testclient")

    def teardown_method(self) -> None:
        _clear_attempts("testclient")

    def test_login_sets_session(self, fake_backend) -> None:
        response = _client().post("/auth/login", json={"email": "ana@example.com", "password": "Secret123"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "USER"

        claims = decode_session_token(response.cookies[_SESSION_COOKIE_NAME])
        assert claims["sub"] == "u1"
        assert claims["at"] == "access-1"
        assert claims["rt"] == "refresh-1"

    def test_login_bad_credentials(self, fake_backend) -> None:
        response = _client().post("/auth/login", json={"email": "ana@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_login_rate_limited(self, fake_backend) -> None:
        client = _client()
        for _ in range(5):
            client.post("/auth/login", json={"email": "ana@example.com", "password": "nope"})
        response = client.post("/auth/login", json={"email": "ana@example.com", "password": "Secret123"})
        assert response.status_code == 429

    def test_reset_password_mismatch(self, fake_backend) -> None:
        response = _client().post(
            "/auth/reset-password",
            json={"token": "t", "password": "Secret123", "confirm_password": "Secret124"},
        )
        assert response.status_code == 400
        assert fake_backend.requests == []

    def test_reset_password_too_short(self, fake_backend) -> None:
        response = _client().post(
            "/auth/reset-password",
            json={"token": "t", "password": "short", "confirm_password": "short"},
        )
        assert response.status_code == 400
        assert "8 characters" in response.json()["detail"]

    def test_me_requires_session(self, fake_backend) -> None:
        assert _client().get("/auth/me", headers=_JSON).status_code == 401

    def test_me_returns_session_user(self, fake_backend) -> None:
        data = _client(_session()).get("/auth/me").json()
        assert data["user"]["email"] == "ana@example.com"
        assert data["user"]["display_name"] == "Ana"
        assert data["profile"]["path"] == "/users/me"
