"""Public raffle information shown on the marketing pages."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..auth import get_backend
from ..backend import BackendClient

router = APIRouter(tags=["public"])


@router.get("/raffles/active")
def active_raffle(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_active_raffle()


@router.get("/raffles/{raffle_id}")
def get_raffle(raffle_id: str, backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_raffle(raffle_id)


@router.get("/subscriptions/plans")
def subscription_plans(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_subscription_plans()


@router.get("/super-chances/price")
def super_chance_price(backend: BackendClient = Depends(get_backend)) -> Any:
    return backend.get_super_chance_price()
