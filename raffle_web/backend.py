"""HTTP client for the raffle platform's backend REST API.

Every call carries the user's access token when one is held. A 401 answer
triggers one refresh through ``POST /auth/refresh`` followed by a single
retry of the original request; a failed refresh drops both tokens and raises
``SessionExpiredError`` so the caller can send the user back to the login
page.

Usage:
    with BackendClient(tokens=TokenPair(access, refresh)) as client:
        raffle = client.get_active_raffle()
        if client.tokens_changed:
            ...  # persist client.tokens
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import get_backend_timeout, get_backend_url

log = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str | None = None


class BackendError(Exception):
    """The backend answered with an error status."""

    def __init__(self, status_code: int, detail: Any = None) -> None:
        super().__init__(f"backend returned {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class BackendUnavailableError(BackendError):
    """The backend could not be reached or timed out."""

    def __init__(self, detail: Any = "Backend unavailable") -> None:
        super().__init__(502, detail)


class SessionExpiredError(BackendError):
    """The access token was rejected and could not be refreshed."""

    def __init__(self, detail: Any = "Session expired") -> None:
        super().__init__(401, detail)


def _error_detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return body[key]
    return body


def _json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    return response.json()


def _page(page: int, size: int) -> dict[str, int]:
    return {"page": page, "size": size}


class BackendClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        tokens: TokenPair | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or get_backend_url()).rstrip("/")
        self.tokens = tokens
        # Set once the token pair was replaced (refresh, login, register).
        self.tokens_changed = False
        self.session_expired = False
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else get_backend_timeout(),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> BackendClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        headers: dict[str, str] = {}
        if authenticated and self.tokens and self.tokens.access_token:
            headers["Authorization"] = f"Bearer {self.tokens.access_token}"

        log.debug("[backend] %s %s params=%s", method, path, params)
        try:
            response = self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            log.warning("[backend] timeout: %s %s", method, path)
            raise BackendUnavailableError("Backend timed out") from exc
        except httpx.RequestError as exc:
            log.warning("[backend] request error: %s %s (%s)", method, path, type(exc).__name__)
            raise BackendUnavailableError() from exc

        log.debug("[backend] %s %s -> %s", method, path, response.status_code)
        return response

    def _refresh(self) -> None:
        refresh_token = self.tokens.refresh_token if self.tokens else None
        try:
            response = self._send(
                "POST",
                "/auth/refresh",
                json={"refreshToken": refresh_token},
                authenticated=False,
            )
            if response.is_error:
                raise BackendError(response.status_code, _error_detail(response))
            data = _json(response) or {}
            access_token = data["accessToken"]
        except (BackendError, KeyError, TypeError, ValueError) as exc:
            log.info("[backend] token refresh failed: %s", exc)
            self.tokens = None
            self.session_expired = True
            raise SessionExpiredError() from exc

        self.tokens = TokenPair(access_token, data.get("refreshToken") or refresh_token)
        self.tokens_changed = True
        log.info("[backend] access token refreshed")

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        refresh: bool = True,
    ) -> httpx.Response:
        """Send a request, refreshing the session once on a 401.

        Raises ``BackendError`` for any error status left after that.
        """

        response = self._send(method, path, params=params, json=json)

        can_refresh = refresh and self.tokens is not None and bool(self.tokens.refresh_token)
        if response.status_code == 401 and can_refresh:
            self._refresh()
            response = self._send(method, path, params=params, json=json)

        if response.is_error:
            detail = _error_detail(response)
            log.warning("[backend] %s %s failed with %s: %s", method, path, response.status_code, detail)
            raise BackendError(response.status_code, detail)
        return response

    def get(self, path: str, **params: Any) -> Any:
        return _json(self.request("GET", path, params=params or None))

    def post(self, path: str, body: Any = None, *, params: dict[str, Any] | None = None) -> Any:
        return _json(self.request("POST", path, params=params, json=body))

    def put(self, path: str, body: Any = None) -> Any:
        return _json(self.request("PUT", path, json=body))

    def delete(self, path: str) -> Any:
        return _json(self.request("DELETE", path))

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _start_session(self, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict) or not data.get("accessToken"):
            raise BackendError(502, "Backend returned no access token")
        self.tokens = TokenPair(data["accessToken"], data.get("refreshToken"))
        self.tokens_changed = True
        self.session_expired = False
        return data.get("user") or {}

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and keep the returned token pair; returns the user payload."""

        response = self.request(
            "POST", "/auth/login", json={"email": email, "password": password}, refresh=False
        )
        return self._start_session(_json(response))

    def register(self, data: dict[str, Any]) -> dict[str, Any]:
        response = self.request("POST", "/auth/register", json=data, refresh=False)
        return self._start_session(_json(response))

    def forgot_password(self, email: str) -> Any:
        return _json(self.request("POST", "/auth/forgot-password", json={"email": email}, refresh=False))

    def reset_password(self, token: str, new_password: str) -> Any:
        body = {"token": token, "newPassword": new_password}
        return _json(self.request("POST", "/auth/reset-password", json=body, refresh=False))

    def change_password(self, current_password: str, new_password: str) -> Any:
        return self.post(
            "/auth/change-password",
            {"currentPassword": current_password, "newPassword": new_password},
        )

    def verify_email(self, token: str) -> Any:
        return _json(self.request("GET", "/auth/verify-email", params={"token": token}, refresh=False))

    def resend_verification(self, email: str) -> Any:
        return _json(self.request("POST", "/auth/resend-verification", json={"email": email}, refresh=False))

    def get_me(self) -> dict[str, Any]:
        return self.get("/users/me")

    # ------------------------------------------------------------------
    # Raffles
    # ------------------------------------------------------------------

    def get_active_raffle(self) -> Any:
        return self.get("/raffles/active")

    def get_raffle(self, raffle_id: str) -> Any:
        return self.get(f"/raffles/{raffle_id}")

    def get_raffle_history(self) -> Any:
        return self.get("/raffles/history")

    def get_winners(self) -> Any:
        return self.get("/raffles/winners")

    def list_raffles(self) -> Any:
        return self.get("/admin/raffles")

    def create_raffle(self, data: dict[str, Any]) -> Any:
        return self.post("/admin/raffles", data)

    def update_raffle(self, raffle_id: str, data: dict[str, Any]) -> Any:
        return self.put(f"/admin/raffles/{raffle_id}", data)

    def activate_raffle(self, raffle_id: str) -> Any:
        return self.post(f"/admin/raffles/{raffle_id}/activate")

    def close_raffle(self, raffle_id: str) -> Any:
        return self.post(f"/admin/raffles/{raffle_id}/close")

    def finalize_raffle(self, raffle_id: str, participant_code: str) -> Any:
        return self.post(f"/admin/raffles/{raffle_id}/finalize", {"participantCode": participant_code})

    def delete_raffle(self, raffle_id: str) -> Any:
        return self.delete(f"/admin/raffles/{raffle_id}")

    # ------------------------------------------------------------------
    # Subscriptions and super chances
    # ------------------------------------------------------------------

    def get_subscription_plans(self) -> Any:
        return self.get("/subscriptions/plans")

    def get_my_subscriptions(self) -> Any:
        return self.get("/subscriptions/me")

    def create_subscription(self, data: dict[str, Any]) -> Any:
        return self.post("/subscriptions", data)

    def create_recurring_subscription(self, plan_type: str, saved_card_id: str) -> Any:
        return self.post("/subscriptions/recurring", {"type": plan_type, "savedCardId": saved_card_id})

    def cancel_recurring_subscription(self, subscription_id: str) -> Any:
        return self.delete(f"/subscriptions/{subscription_id}/cancel")

    def list_subscriptions(self) -> Any:
        return self.get("/admin/subscriptions")

    def get_super_chance_price(self) -> Any:
        return self.get("/super-chances/price")

    def create_super_chance(self, data: dict[str, Any]) -> Any:
        return self.post("/super-chances", data)

    # ------------------------------------------------------------------
    # Orders, participation, participants
    # ------------------------------------------------------------------

    def get_my_orders(self) -> Any:
        return self.get("/orders/me")

    def get_order(self, order_id: str) -> Any:
        return self.get(f"/orders/{order_id}")

    def cancel_order(self, order_id: str) -> Any:
        return self.post(f"/orders/{order_id}/cancel")

    def list_orders(self) -> Any:
        return self.get("/admin/orders")

    def list_orders_by_status(self, status: str) -> Any:
        return self.get(f"/admin/orders/status/{status}")

    def get_pending_orders_summary(self, raffle_id: str) -> Any:
        return self.get(f"/admin/orders/raffle/{raffle_id}/pending/summary")

    def get_my_participation(self) -> Any:
        return self.get("/participation/me")

    def list_participants(self, raffle_id: str, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get(f"/admin/participants/raffle/{raffle_id}", **_page(page, size))

    def count_participants(self, raffle_id: str) -> Any:
        return self.get(f"/admin/participants/raffle/{raffle_id}/count")

    def get_total_tickets(self, raffle_id: str) -> Any:
        return self.get(f"/admin/participants/raffle/{raffle_id}/tickets")

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def list_audit(self, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get("/admin/audit", **_page(page, size))

    def list_audit_today(self, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get("/admin/audit/today", **_page(page, size))

    def list_audit_by_type(self, event_type: str, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get(f"/admin/audit/by-type/{event_type}", **_page(page, size))

    def list_audit_by_user(self, user_id: str, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get(f"/admin/audit/by-user/{user_id}", **_page(page, size))

    def get_raffle_audit(self, raffle_id: str) -> Any:
        return self.get(f"/admin/audit/raffle/{raffle_id}")

    def list_payment_audit(self, page: int = 0, size: int = _DEFAULT_PAGE_SIZE) -> Any:
        return self.get("/admin/audit/payments", **_page(page, size))

    def get_audit_event_types(self) -> Any:
        return self.get("/admin/audit/event-types")

    # ------------------------------------------------------------------
    # Payments, cards, exports
    # ------------------------------------------------------------------

    def simulate_payment(self, order_id: str, method: str = "yape") -> Any:
        return self.post(f"/webhooks/simulate/{order_id}", params={"paymentMethod": method})

    def charge(self, order_id: str, token: str) -> Any:
        return self.post("/payments/charge", {"orderId": order_id, "token": token})

    def get_my_cards(self) -> Any:
        return self.get("/cards")

    def save_card(self, token: str) -> Any:
        return self.post("/cards", {"token": token})

    def delete_card(self, card_id: str) -> Any:
        return self.delete(f"/cards/{card_id}")

    def export_raffle_tickets(self, raffle_id: str) -> tuple[bytes, str]:
        """Return the raw ticket export and its content type."""

        response = self.request("GET", f"/admin/exports/raffle/{raffle_id}/tickets")
        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type
