#ordercore/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ordercore.api.deps import get_identity, http_error
from ordercore.data.database import get_db
from ordercore.domain.errors import OrderCoreError
from ordercore.domain.identity import Identity
from ordercore.domain.schemas import (
    CartOut,
    CartSummaryOut,
    CartTotals,
    ItemIn,
    OrderOut,
    QuantityIn,
    ShippingDetails,
)
from ordercore.services.cart_service import CartService
from ordercore.services.checkout_service import CheckoutService
from ordercore.services.lock_service import LockService
from ordercore.services.notification_service import NotificationService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db)


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(
        db=db,
        lock_service=LockService(),
        notification_service=NotificationService(),
    )


@router.get("/", response_model=CartOut)
def get_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    return svc.get_cart(identity)


@router.get("/summary", response_model=CartSummaryOut)
def get_summary(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    return svc.summary(identity)


@router.get("/totals", response_model=CartTotals)
def get_totals(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    return svc.compute_totals(identity)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.add_item(identity, payload.product_id, payload.quantity)
    except OrderCoreError as e:
        raise http_error(e)


@router.patch("/items/{line_id}", response_model=CartOut)
def update_item(
    line_id: int,
    payload: QuantityIn,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.update_item_quantity(identity, line_id, payload.quantity)
    except OrderCoreError as e:
        raise http_error(e)


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_item(
    line_id: int,
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.remove_item(identity, line_id)
    except OrderCoreError as e:
        raise http_error(e)


@router.delete("/", response_model=CartOut)
def clear_cart(
    identity: Identity = Depends(get_identity),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.clear(identity)
    except OrderCoreError as e:
        raise http_error(e)


@router.post("/checkout", response_model=OrderOut, status_code=201)
def checkout(
    payload: ShippingDetails,
    identity: Identity = Depends(get_identity),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Tworzy zamówienie z koszyka w jednej transakcji.
    Wysyła powiadomienie asynchronicznie.
    """
    try:
        return svc.checkout(identity, payload)
    except OrderCoreError as e:
        raise http_error(e)
