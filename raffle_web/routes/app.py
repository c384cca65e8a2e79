"""User dashboard routes (``/app``): profile, orders, subscriptions, cards.

These are thin passthroughs; the backend owns every rule about orders,
tickets and payments.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel

from ..auth import get_backend, get_current_user
from ..backend import BackendClient

router = APIRouter(prefix="/app", tags=["app"])


@router.get("/login")
def login_page() -> dict[str, Any]:
    """Landing target for unauthenticated browsers; points at the login endpoint."""
    return {
        "detail": "Not authenticated",
        "login": {"method": "POST", "url": "/auth/login"},
        "register": {"method": "POST", "url": "/auth/register"},
    }


@router.get("/dashboard")
def dashboard(request: Request, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    """Everything the dashboard landing page shows in one round trip."""
    return {
        "user": get_current_user(request),
        "active_raffle": backend.get_active_raffle(),
        "participation": backend.get_my_participation(),
        "subscriptions": backend.get_my_subscriptions(),
    }


@router.get("/profile")
def profile(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_me()


@router.get("/participation")
def participation(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_my_participation()


@router.get("/raffles/history")
def raffle_history(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_raffle_history()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.get("/orders")
def my_orders(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_my_orders()


@router.get("/orders/{order_id}")
def get_order(order_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_order(order_id)


@router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.cancel_order(order_id)


# ---------------------------------------------------------------------------
# Subscriptions and super chances
# ---------------------------------------------------------------------------


@router.get("/subscriptions")
def my_subscriptions(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_my_subscriptions()


@router.post("/subscriptions")
def create_subscription(
    data: dict[str, Any] = Body(...),
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.create_subscription(data)


class RecurringSubscriptionRequest(BaseModel):
    type: str
    saved_card_id: str


@router.post("/subscriptions/recurring")
def create_recurring_subscription(
    body: RecurringSubscriptionRequest,
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.create_recurring_subscription(body.type, body.saved_card_id)


@router.delete("/subscriptions/{subscription_id}")
def cancel_recurring_subscription(subscription_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.cancel_recurring_subscription(subscription_id)


@router.post("/super-chances")
def create_super_chance(
    data: dict[str, Any] = Body(...),
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.create_super_chance(data)


# ---------------------------------------------------------------------------
# Cards and payments
# ---------------------------------------------------------------------------


class CardTokenRequest(BaseModel):
    token: str


@router.get("/cards")
def my_cards(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_my_cards()


@router.post("/cards")
def save_card(body: CardTokenRequest, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.save_card(body.token)


@router.delete("/cards/{card_id}")
def delete_card(card_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.delete_card(card_id)


class ChargeRequest(BaseModel):
    order_id: str
    token: str


@router.post("/payments/charge")
def charge(body: ChargeRequest, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.charge(body.order_id, body.token)
