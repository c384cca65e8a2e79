"""Admin console routes (``/admin``), restricted to the ADMIN role."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from ..auth import ADMIN_ROLE, get_backend, require_role
from ..backend import BackendClient

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[require_role(ADMIN_ROLE)])

_PAGE_SIZE_MAX = 200

# Order states accepted by the backend's status filter.
_ORDER_STATUSES = frozenset({"PENDING", "PAID", "EXPIRED", "CANCELLED"})


# ---------------------------------------------------------------------------
# Raffles
# ---------------------------------------------------------------------------


@router.get("/raffles")
def list_raffles(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.list_raffles()


@router.post("/raffles")
def create_raffle(data: dict[str, Any] = Body(...), backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.create_raffle(data)


@router.put("/raffles/{raffle_id}")
def update_raffle(
    raffle_id: str,
    data: dict[str, Any] = Body(...),
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.update_raffle(raffle_id, data)


@router.post("/raffles/{raffle_id}/activate")
def activate_raffle(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.activate_raffle(raffle_id)


@router.post("/raffles/{raffle_id}/close")
def close_raffle(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.close_raffle(raffle_id)


class FinalizeRequest(BaseModel):
    participant_code: str


@router.post("/raffles/{raffle_id}/finalize")
def finalize_raffle(raffle_id: str, body: FinalizeRequest, backend: BackendClient = Depends(get_backend)) -> Any:
    code = body.participant_code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="missing participant_code")
    return backend.finalize_raffle(raffle_id, code)


@router.delete("/raffles/{raffle_id}")
def delete_raffle(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.delete_raffle(raffle_id)


@router.get("/raffles/{raffle_id}/tickets/export")
def export_raffle_tickets(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Response:
    content, content_type = backend.export_raffle_tickets(raffle_id)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="raffle-{raffle_id}-tickets.csv"'},
    )


# ---------------------------------------------------------------------------
# Orders, participants, subscriptions
# ---------------------------------------------------------------------------


@router.get("/orders")
def list_orders(
    status: str | None = None,
    backend: BackendClient = Depends(get_backend),
) -> Any:
    if status is None or status.upper() == "ALL":
        return backend.list_orders()
    status = status.upper()
    if status not in _ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"unknown order status: {status}")
    return backend.list_orders_by_status(status)


@router.get("/orders/raffle/{raffle_id}/pending")
def pending_orders_summary(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_pending_orders_summary(raffle_id)


@router.post("/orders/{order_id}/simulate-payment")
def simulate_payment(
    order_id: str,
    method: str = "yape",
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.simulate_payment(order_id, method)


@router.get("/participants/raffle/{raffle_id}")
def list_participants(
    raffle_id: str,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=_PAGE_SIZE_MAX),
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.list_participants(raffle_id, page, size)


@router.get("/participants/raffle/{raffle_id}/summary")
def participants_summary(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> dict[str, Any]:
    return {
        "participants": backend.count_participants(raffle_id),
        "tickets": backend.get_total_tickets(raffle_id),
    }


@router.get("/subscriptions")
def list_subscriptions(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.list_subscriptions()


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


@router.get("/audit")
def list_audit(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=_PAGE_SIZE_MAX),
    today: bool = False,
    event_type: str | None = None,
    user_id: str | None = None,
    backend: BackendClient = Depends(get_backend),
) -> Any:
    """Audit entries, optionally narrowed to today, one event type or one user."""
    if sum(bool(f) for f in (today, event_type, user_id)) > 1:
        raise HTTPException(status_code=400, detail="use only one of today, event_type, user_id")
    if today:
        return backend.list_audit_today(page, size)
    if event_type:
        return backend.list_audit_by_type(event_type, page, size)
    if user_id:
        return backend.list_audit_by_user(user_id, page, size)
    return backend.list_audit(page, size)


@router.get("/audit/event-types")
def audit_event_types(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_audit_event_types()


@router.get("/audit/payments")
def payment_audit(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=_PAGE_SIZE_MAX),
    backend: BackendClient = Depends(get_backend),
) -> Any:
    return backend.list_payment_audit(page, size)


@router.get("/audit/raffle/{raffle_id}")
def raffle_audit(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_raffle_audit(raffle_id)
