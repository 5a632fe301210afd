# ordercore/services/order_service.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from ordercore.data.models.order import OrderModel
from ordercore.data.models.order_line import OrderLineModel
from ordercore.domain import pricing
from ordercore.domain.errors import (
    AuthenticationRequired,
    InvalidTransition,
    OrderNotFound,
    OrderStatusConflict,
    ProductUnavailable,
)
from ordercore.domain.identity import Identity
from ordercore.domain.order_status import (
    CANCELLABLE,
    OrderStatus,
    PaymentStatus,
    assert_transition,
    parse_status,
)
from ordercore.domain.schemas import OrderLineOut, OrderOut
from ordercore.repos.order_repo import OrderRepo
from ordercore.services.notification_service import NotificationService
from ordercore.services.stock_ledger import StockLedger
from ordercore.utils.retry import order_status_retry
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)


def order_to_out(order: OrderModel, lines: List[OrderLineModel]) -> OrderOut:
    return OrderOut(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        subtotal_amount=order.subtotal_amount,
        total_amount=order.total_amount,
        shipping_address=order.shipping_address,
        billing_address=order.billing_address,
        notes=order.notes,
        items=[
            OrderLineOut(
                id=line.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.price,
                line_total=pricing.line_subtotal(line),
            )
            for line in lines
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
    )


class OrderService:
    """
    Serwis odpowiedzialny za cykl zycia zamowienia po checkoucie.
    Przejscia statusow tylko wg tabeli TRANSITIONS, anulowanie oddaje stock.
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.stock = StockLedger(db)
        self.notification_service = notification_service

    #query
    def get_order(self, order_id: int, identity: Identity | None = None) -> OrderOut:
        """
        Pobranie zamowienia. Z identity sprawdza wlasciciela,
        bez identity (back-office) zwraca kazde.
        """
        order = self._get_owned(order_id, identity)
        return order_to_out(order, self.repo.get_order_lines(order.id))

    def list_orders(self, identity: Identity) -> List[OrderOut]:
        if not identity.is_authenticated:
            raise AuthenticationRequired()

        orders = self.repo.list_orders_for_user(identity.user_id)
        return [order_to_out(o, self.repo.get_order_lines(o.id)) for o in orders]

    #commands
    def cancel(self, order_id: int, identity: Identity) -> OrderOut:
        """Anulowanie przez klienta, tylko wlasne zamowienie."""
        order = self._get_owned(order_id, identity)

        # statusy ida tylko do przodu, wiec odrzucenie na starym odczycie jest pewne
        current = OrderStatus(order.status)
        if current not in CANCELLABLE:
            logger.info(f"Odrzucono anulowanie zamowienia {order.order_number} w statusie {current.value}")
            raise InvalidTransition(current.value, OrderStatus.CANCELLED.value)

        return self.change_status(order_id, OrderStatus.CANCELLED)

    def change_status(self, order_id: int, status) -> OrderOut:
        target = parse_status(status)

        try:
            out = self._change_status(order_id, target)
        except OrderStatusConflict:
            # ciagle przegrywa wyscig, raportujemy stan z bazy
            fresh = self.repo.get_order(order_id)
            logger.warning(f"Status zamowienia {order_id} zmieniany rownolegle, ostatnio {fresh.status}")
            raise InvalidTransition(fresh.status, target.value)

        self._notify(out)
        return out

    @order_status_retry()
    def _change_status(self, order_id: int, target: OrderStatus) -> OrderOut:
        order = self.repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        current = OrderStatus(order.status)
        try:
            assert_transition(current, target)
        except InvalidTransition:
            logger.info(f"Odrzucono zmiane statusu zamowienia {order.order_number}: {current.value} -> {target.value}")
            raise

        now = datetime.now(timezone.utc)
        new_data = {"status": target.value, "updated_at": now}

        if target == OrderStatus.SHIPPED:
            new_data["shipped_at"] = now
        elif target == OrderStatus.DELIVERED:
            new_data["delivered_at"] = now
            # platnosc przy odbiorze
            new_data["payment_status"] = PaymentStatus.PAID.value
        elif target == OrderStatus.REFUNDED and order.payment_status == PaymentStatus.PAID.value:
            new_data["payment_status"] = PaymentStatus.REFUNDED.value

        # compare-and-set: dwa rownolegle anulowania nie oddadza stocku dwa razy
        rowcount = self.repo.update_order_status(order.id, current.value, new_data)
        if rowcount == 0:
            # rollback wygasza sesje, kolejna proba czyta swiezy status
            self.repo.rollback()
            logger.info(f"Status zamowienia {order_id} nie jest juz {current.value}, ponawiam")
            raise OrderStatusConflict(order_id, current.value)

        lines = self.repo.get_order_lines(order.id)
        if target == OrderStatus.CANCELLED:
            self._restore_stock(order, lines)

        self.repo.commit()

        logger.info(f"Zamowienie {order.order_number}: {current.value} -> {target.value}")

        return order_to_out(order, lines)

    #helpers
    def _get_owned(self, order_id: int, identity: Identity | None) -> OrderModel:
        order = self.repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        if identity is not None:
            if not identity.is_authenticated:
                raise AuthenticationRequired()
            if order.user_id != identity.user_id:
                raise PermissionError("Brak dostępu do zamówienia")

        return order

    def _restore_stock(self, order: OrderModel, lines: List[OrderLineModel]) -> None:
        for line in lines:
            try:
                self.stock.restore(line.product_id, line.quantity)
            except ProductUnavailable:
                # produkt usuniety z katalogu, nie ma gdzie oddac
                logger.warning(
                    f"Pominieto zwrot stocku produktu {line.product_id} "
                    f"dla zamowienia {order.order_number}: produkt nie istnieje"
                )

    def _notify(self, order: OrderOut) -> None:
        if self.notification_service is None:
            return
        try:
            self.notification_service.send_status_changed(order.user_id, order.id, order.status)
        except Exception as e:
            logger.warning(f"Nie wyslano powiadomienia o statusie zamowienia {order.order_number}: {e}")
