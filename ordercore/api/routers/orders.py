# ordercore/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ordercore.api.deps import get_identity, http_error
from ordercore.data.database import get_db
from ordercore.domain.errors import OrderCoreError
from ordercore.domain.identity import Identity
from ordercore.domain.schemas import OrderOut, StatusIn
from ordercore.services.notification_service import NotificationService
from ordercore.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db, notification_service=NotificationService())


@router.get("/", response_model=List[OrderOut])
def list_orders(
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_service),
):
    """
    Historia zamówień użytkownika, najnowsze pierwsze.
    """
    try:
        return svc.list_orders(identity)
    except OrderCoreError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_service),
):
    """
    Pobiera szczegóły zamówienia.
    """
    try:
        return svc.get_order(order_id, identity)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except OrderCoreError as e:
        raise http_error(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    identity: Identity = Depends(get_identity),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.cancel(order_id, identity)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except OrderCoreError as e:
        raise http_error(e)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: StatusIn,
    svc: OrderService = Depends(get_service),
):
    """
    Zmiana statusu z back-office (autoryzacja admina poza tym serwisem).
    """
    try:
        return svc.change_status(order_id, payload.status)
    except OrderCoreError as e:
        raise http_error(e)
