# ordercore/api/deps.py
from fastapi import HTTPException, Query, status

from ordercore.domain.errors import (
    AuthenticationRequired,
    CartConflict,
    CartLineNotFound,
    CheckoutFailed,
    CheckoutInProgress,
    EmptyCart,
    InsufficientStock,
    InvalidQuantity,
    InvalidStatus,
    InvalidTransition,
    OrderCoreError,
    OrderNotFound,
    ProductUnavailable,
    StorageFailure,
)
from ordercore.domain.identity import Identity
from ordercore.domain.schemas import StockShortageOut

_STATUS_CODES = {
    InvalidQuantity: status.HTTP_400_BAD_REQUEST,
    EmptyCart: status.HTTP_400_BAD_REQUEST,
    InvalidStatus: status.HTTP_400_BAD_REQUEST,
    AuthenticationRequired: status.HTTP_401_UNAUTHORIZED,
    CartLineNotFound: status.HTTP_404_NOT_FOUND,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    ProductUnavailable: status.HTTP_409_CONFLICT,
    InsufficientStock: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    CartConflict: status.HTTP_409_CONFLICT,
    CheckoutInProgress: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
    CheckoutFailed: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_identity(
    user_id: int | None = Query(None, gt=0),
    session_token: str | None = Query(None, min_length=1, max_length=100),
) -> Identity:
    """Tozsamosc z warstwy sesji/auth; dokladnie jeden parametr."""
    try:
        return Identity(user_id=user_id, session_token=session_token)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def http_error(exc: OrderCoreError) -> HTTPException:
    detail = {"code": exc.code, "message": exc.message}

    if isinstance(exc, InsufficientStock):
        detail["shortages"] = [
            StockShortageOut(
                product_id=s.product_id,
                requested=s.requested,
                available=s.available,
                shortfall=s.shortfall,
            ).model_dump()
            for s in exc.shortages
        ]
    elif isinstance(exc, ProductUnavailable):
        detail["product_ids"] = exc.product_ids

    code = _STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=detail)
