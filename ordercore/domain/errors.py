# ordercore/domain/errors.py
"""
Wyjatki domenowe silnika koszyk -> zamowienie.

Bledy walidacji (InvalidQuantity, EmptyCart, ProductUnavailable,
InsufficientStock) to oczekiwane wyniki biznesowe, nie bugi.
Bledy storage sa opakowywane w CheckoutFailed.
"""
from dataclasses import dataclass
from typing import Iterable, List


class OrderCoreError(Exception):
    code = "order_core_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class InvalidQuantity(OrderCoreError):
    code = "invalid_quantity"

    def __init__(self, quantity: int):
        super().__init__(f"Quantity must be at least 1, got {quantity}")
        self.quantity = quantity


class ProductUnavailable(OrderCoreError):
    code = "product_unavailable"

    def __init__(self, product_ids: Iterable[int]):
        self.product_ids = sorted(set(product_ids))
        super().__init__(f"Products unavailable: {self.product_ids}")


@dataclass(frozen=True)
class StockShortage:
    product_id: int
    requested: int
    available: int

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


class InsufficientStock(OrderCoreError):
    code = "insufficient_stock"

    def __init__(self, shortages: List[StockShortage]):
        self.shortages = list(shortages)
        listed = ", ".join(
            f"product {s.product_id} (requested {s.requested}, available {s.available})"
            for s in self.shortages
        )
        super().__init__(f"Insufficient stock: {listed}")

    @property
    def product_ids(self) -> List[int]:
        return [s.product_id for s in self.shortages]


class EmptyCart(OrderCoreError):
    code = "empty_cart"

    def __init__(self):
        super().__init__("Cart is empty")


class CartLineNotFound(OrderCoreError):
    code = "cart_line_not_found"

    def __init__(self, line_id: int):
        super().__init__(f"Cart line {line_id} not found")
        self.line_id = line_id


class CartConflict(OrderCoreError):
    code = "cart_conflict"

    def __init__(self, cart_id: int):
        super().__init__(f"Cart {cart_id} was modified by another operation")
        self.cart_id = cart_id


class InvalidStatus(OrderCoreError):
    code = "invalid_status"

    def __init__(self, value):
        super().__init__(f"Unknown order status: {value!r}")
        self.value = value


class InvalidTransition(OrderCoreError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition order from {current} to {target}")
        self.current = current
        self.target = target


class OrderNotFound(OrderCoreError):
    code = "order_not_found"

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class AuthenticationRequired(OrderCoreError):
    code = "authentication_required"

    def __init__(self):
        super().__init__("Checkout requires an authenticated user")


class CheckoutInProgress(OrderCoreError):
    code = "checkout_in_progress"

    def __init__(self, cart_id: int):
        super().__init__(f"Another checkout is already running for cart {cart_id}")
        self.cart_id = cart_id


class OrderNumberCollision(OrderCoreError):
    """Internal: wygenerowany numer zamowienia juz istnieje."""

    code = "order_number_collision"

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already exists")
        self.order_number = order_number


class StorageFailure(OrderCoreError):
    code = "storage_failure"


class CheckoutFailed(OrderCoreError):
    code = "checkout_failed"

    def __init__(self):
        super().__init__("Checkout failed, no changes were made")


class OrderStatusConflict(OrderCoreError):
    """Internal: status zamowienia zmieniony rownolegle miedzy odczytem a zapisem."""

    code = "order_status_conflict"

    def __init__(self, order_id: int, expected: str):
        super().__init__(f"Order {order_id} is no longer {expected}")
        self.order_id = order_id
        self.expected = expected
