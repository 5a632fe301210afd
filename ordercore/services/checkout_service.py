# ordercore/services/checkout_service.py
import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ordercore.data.models.cart import CartModel
from ordercore.data.models.cart_item import CartItemModel
from ordercore.data.models.order import OrderModel
from ordercore.data.models.order_line import OrderLineModel
from ordercore.domain import pricing
from ordercore.domain.errors import (
    AuthenticationRequired,
    CartConflict,
    CheckoutFailed,
    CheckoutInProgress,
    EmptyCart,
    InsufficientStock,
    OrderNumberCollision,
    ProductUnavailable,
    StockShortage,
    StorageFailure,
)
from ordercore.domain.identity import Identity
from ordercore.domain.order_status import OrderStatus, PaymentStatus
from ordercore.domain.schemas import OrderOut, ShippingDetails
from ordercore.repos.cart_repo import CartRepo
from ordercore.repos.order_repo import OrderRepo
from ordercore.repos.product_repo import ProductRepo
from ordercore.services.lock_service import LockService
from ordercore.services.notification_service import NotificationService
from ordercore.services.order_service import order_to_out
from ordercore.services.stock_ledger import StockLedger
from ordercore.utils.retry import cart_conflict_retry, order_number_retry
from ordercore.utils.settings import TAX_RATE
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)


def generate_order_number() -> str:
    # ORD-20260101120000-9F2A1C
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"ORD-{stamp}-{secrets.token_hex(3).upper()}"


class CheckoutService:
    """
    Przejscie koszyk -> zamowienie jako jedna transakcja.

    1. walidacja: koszyk niepusty, produkty istnieja i sa aktywne,
       stock >= ilosc dla KAZDEJ linii (zbieramy wszystkie braki)
    2. sumy ze snapshotow cen w koszyku
    3. claim koszyka (version CAS) + zamowienie Pending z unikalnym numerem
    4. linie zamowienia
    5. decrement stocku przez StockLedger
    6. czyszczenie koszyka
    7. commit; kazdy blad -> rollback calej sesji, koszyk i stock bez zmian
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService | None = None,
        notification_service: NotificationService | None = None,
        tax_rate: Decimal = TAX_RATE,
        order_number_factory: Callable[[], str] = generate_order_number,
    ):
        self.db = db
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.products = ProductRepo(db)
        self.stock = StockLedger(db)
        self.lock_service = lock_service
        self.notification_service = notification_service
        self.tax_rate = Decimal(tax_rate)
        self.order_number_factory = order_number_factory

    def checkout(self, identity: Identity, shipping: ShippingDetails) -> OrderOut:
        if not identity.is_authenticated:
            raise AuthenticationRequired()

        cart = self.carts.get_cart_by_identity(identity)
        if cart is None:
            logger.info(f"Checkout odrzucony dla {identity}: brak koszyka")
            raise EmptyCart()
        cart_id = cart.id

        token = None
        if self.lock_service is not None:
            token = self._acquire_lock(cart_id)

        try:
            order = self._place_order_with_retry(identity, shipping)
        finally:
            if token is not None:
                self._release_lock(cart_id, token)

        self._notify(order)
        return order

    def _acquire_lock(self, cart_id: int) -> str:
        token = self.lock_service.new_token()
        try:
            acquired = self.lock_service.acquire_checkout_lock(cart_id, token)
        except RedisError as e:
            logger.exception(f"Redis niedostepny przy locku checkoutu koszyka {cart_id}")
            raise CheckoutFailed() from e
        if not acquired:
            logger.info(f"Checkout koszyka {cart_id} juz trwa")
            raise CheckoutInProgress(cart_id)
        return token

    def _release_lock(self, cart_id: int, token: str) -> None:
        try:
            self.lock_service.release_checkout_lock(cart_id, token)
        except RedisError as e:
            # lock i tak wygasnie po TTL
            logger.warning(f"Nie zwolniono locka checkoutu koszyka {cart_id}: {e}")

    @cart_conflict_retry()
    def _place_order_with_retry(self, identity: Identity, shipping: ShippingDetails) -> OrderOut:
        try:
            return self._place_order_numbered(identity, shipping)
        except OrderNumberCollision as e:
            # po wyczerpaniu prob kolizja jest bledem wewnetrznym
            logger.error(f"Nie udalo sie wygenerowac unikalnego numeru zamowienia: {e}")
            raise CheckoutFailed() from e

    @order_number_retry()
    def _place_order_numbered(self, identity: Identity, shipping: ShippingDetails) -> OrderOut:
        try:
            return self._place_order(identity, shipping)
        except (EmptyCart, ProductUnavailable, InsufficientStock, CartConflict, OrderNumberCollision):
            self.db.rollback()
            raise
        except (SQLAlchemyError, StorageFailure) as e:
            self.db.rollback()
            logger.exception(f"Blad storage podczas checkoutu dla {identity}")
            raise CheckoutFailed() from e
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Nieoczekiwany blad podczas checkoutu dla {identity}")
            raise CheckoutFailed() from e

    def _place_order(self, identity: Identity, shipping: ShippingDetails) -> OrderOut:
        # read set pobrany jawnie z gory, bez lazy loadingu w transakcji
        cart = self.carts.get_cart_by_identity(identity)
        if cart is None:
            raise EmptyCart()

        items = self.carts.get_cart_items(cart.id)
        if not items:
            logger.info(f"Checkout odrzucony dla koszyka {cart.id}: pusty koszyk")
            raise EmptyCart()

        products = self.products.get_products(i.product_id for i in items)
        self._validate(cart, items, products)

        totals = pricing.cart_totals(items, self.tax_rate)
        now = datetime.now(timezone.utc)

        # claim koszyka; drugi rownolegly checkout tego koszyka tu przegra
        rowcount = self.carts.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1, "updated_at": now},
        )
        if rowcount == 0:
            logger.warning(f"Konflikt wersji koszyka {cart.id} podczas checkoutu")
            raise CartConflict(cart.id)

        order_number = self.order_number_factory()
        if self.orders.order_number_exists(order_number):
            logger.warning(f"Kolizja numeru zamowienia {order_number}, generuje nowy")
            raise OrderNumberCollision(order_number)

        # unikalny indeks na order_number rozstrzyga wyscig dwoch checkoutow
        try:
            order = self.orders.add_order(
                OrderModel(
                    order_number=order_number,
                    user_id=identity.user_id,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    payment_method=shipping.payment_method.value,
                    subtotal_amount=totals.subtotal,
                    total_amount=totals.total,
                    shipping_address=shipping.flattened_address(),
                    billing_address=shipping.billing_address or shipping.flattened_address(),
                    notes=shipping.notes,
                    created_at=now,
                )
            )
        except IntegrityError as e:
            logger.warning(f"Kolizja numeru zamowienia {order_number} przy zapisie, generuje nowy")
            raise OrderNumberCollision(order_number) from e

        for item in items:
            self.orders.add_order_line(
                OrderLineModel(
                    order_id=order.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price=item.price,
                    created_at=now,
                )
            )

        # rownolegly checkout mogl zjesc stock od kroku 1 -> InsufficientStock i rollback
        for item in items:
            self.stock.decrement(item.product_id, item.quantity)

        self.carts.clear_cart_items(cart.id)
        self.orders.commit()

        logger.info(
            f"Zamowienie {order_number} utworzone z koszyka {cart.id}, "
            f"linii {len(items)}, total {totals.total}"
        )

        return order_to_out(order, self.orders.get_order_lines(order.id))

    def _validate(self, cart: CartModel, items: List[CartItemModel], products) -> None:
        unavailable = [
            i.product_id
            for i in items
            if i.product_id not in products or not products[i.product_id].is_active
        ]
        if unavailable:
            logger.info(f"Checkout koszyka {cart.id}: niedostepne produkty {unavailable}")
            raise ProductUnavailable(unavailable)

        shortages = [
            StockShortage(
                product_id=i.product_id,
                requested=i.quantity,
                available=products[i.product_id].stock_quantity,
            )
            for i in items
            if i.quantity > products[i.product_id].stock_quantity
        ]
        if shortages:
            logger.info(
                f"Checkout koszyka {cart.id}: brak stocku dla {[s.product_id for s in shortages]}"
            )
            raise InsufficientStock(shortages)

    def _notify(self, order: OrderOut) -> None:
        if self.notification_service is None:
            return
        try:
            self.notification_service.send_order_placed(order.user_id, order.id, order.order_number)
        except Exception as e:
            # zamowienie juz zacommitowane, powiadomienie nie moze go cofnac
            logger.warning(f"Nie wyslano powiadomienia dla zamowienia {order.order_number}: {e}")
