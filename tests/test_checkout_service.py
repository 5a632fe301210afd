import re
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ordercore.domain.errors import (
    AuthenticationRequired,
    CheckoutFailed,
    CheckoutInProgress,
    EmptyCart,
    InsufficientStock,
    ProductUnavailable,
)
from ordercore.domain.identity import Identity
from ordercore.services.cart_service import CartService
from ordercore.services.checkout_service import CheckoutService, generate_order_number

TAX_RATE = Decimal("0.20")


@pytest.fixture()
def two_product_cart(cart_service, user, make_product):
    a = make_product(price="20.00", stock=10, name="A")
    b = make_product(price="5.00", stock=1, name="B")
    cart_service.add_item(user, a, 2)
    cart_service.add_item(user, b, 1)
    return a, b


class TestGenerateOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"ORD-\d{14}-[0-9A-F]{6}", generate_order_number())


class TestCheckout:
    def test_places_order_and_moves_stock(self, checkout_service, cart_service, user, shipping, two_product_cart, stock_of):
        a, b = two_product_cart

        order = checkout_service.checkout(user, shipping)

        assert order.subtotal_amount == Decimal("45.00")
        assert order.total_amount == Decimal("54.00")
        assert order.status == "Pending"
        assert order.payment_status == "Pending"
        assert order.payment_method == "CashOnDelivery"
        assert order.user_id == 1
        assert [(i.product_id, i.quantity, i.unit_price) for i in order.items] == [
            (a, 2, Decimal("20.00")),
            (b, 1, Decimal("5.00")),
        ]
        assert stock_of(a) == 8
        assert stock_of(b) == 0
        assert cart_service.get_cart(user).items == []

    def test_addresses_are_flattened(self, checkout_service, user, shipping, two_product_cart):
        order = checkout_service.checkout(user, shipping)

        assert order.shipping_address == "ul. Prosta 1, 00-001 Warszawa, PL"
        assert order.billing_address == order.shipping_address

    def test_order_uses_cart_price_snapshot(self, checkout_service, cart_service, user, shipping, make_product, update_product):
        product_id = make_product(price="20.00")
        cart_service.add_item(user, product_id, 1)
        update_product(product_id, price=Decimal("30.00"))

        order = checkout_service.checkout(user, shipping)

        assert order.items[0].unit_price == Decimal("20.00")
        assert order.subtotal_amount == Decimal("20.00")

    def test_stock_drop_rejects_whole_checkout(self, checkout_service, cart_service, user, shipping, two_product_cart, stock_of, update_product):
        a, b = two_product_cart
        update_product(b, stock_quantity=0)

        with pytest.raises(InsufficientStock) as exc:
            checkout_service.checkout(user, shipping)

        assert exc.value.product_ids == [b]
        assert stock_of(a) == 10
        cart = cart_service.get_cart(user)
        assert [(i.product_id, i.quantity) for i in cart.items] == [(a, 2), (b, 1)]

    def test_reports_every_short_line(self, checkout_service, user, shipping, two_product_cart, update_product):
        a, b = two_product_cart
        update_product(a, stock_quantity=1)
        update_product(b, stock_quantity=0)

        with pytest.raises(InsufficientStock) as exc:
            checkout_service.checkout(user, shipping)

        assert sorted(exc.value.product_ids) == sorted([a, b])

    def test_deactivated_product_blocks_checkout(self, checkout_service, cart_service, user, shipping, two_product_cart, update_product):
        a, b = two_product_cart
        update_product(a, is_active=False)

        with pytest.raises(ProductUnavailable) as exc:
            checkout_service.checkout(user, shipping)

        assert exc.value.product_ids == [a]
        assert len(cart_service.get_cart(user).items) == 2

    def test_guest_must_authenticate(self, checkout_service, cart_service, guest, shipping, make_product):
        cart_service.add_item(guest, make_product(), 1)

        with pytest.raises(AuthenticationRequired):
            checkout_service.checkout(guest, shipping)

    def test_without_cart(self, checkout_service, user, shipping):
        with pytest.raises(EmptyCart):
            checkout_service.checkout(user, shipping)

    def test_empty_cart(self, checkout_service, cart_service, user, shipping):
        cart_service.get_cart(user)

        with pytest.raises(EmptyCart):
            checkout_service.checkout(user, shipping)

    def test_second_checkout_of_same_cart_is_empty(self, checkout_service, user, shipping, two_product_cart):
        checkout_service.checkout(user, shipping)

        with pytest.raises(EmptyCart):
            checkout_service.checkout(user, shipping)


class TestOrderNumbers:
    def test_collision_is_retried(self, db, cart_service, shipping, make_product):
        product_id = make_product(stock=10)
        first, second = Identity.for_user(1), Identity.for_user(2)
        cart_service.add_item(first, product_id, 1)
        cart_service.add_item(second, product_id, 1)

        CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: "ORD-FIXED").checkout(first, shipping)
        numbers = iter(["ORD-FIXED", "ORD-NEXT"])
        order = CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: next(numbers)).checkout(
            second, shipping
        )

        assert order.order_number == "ORD-NEXT"

    def test_exhausted_collisions_fail_without_changes(self, db, cart_service, shipping, make_product, stock_of):
        product_id = make_product(stock=10)
        first, second = Identity.for_user(1), Identity.for_user(2)
        cart_service.add_item(first, product_id, 1)
        cart_service.add_item(second, product_id, 1)
        CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: "ORD-FIXED").checkout(first, shipping)

        with pytest.raises(CheckoutFailed):
            CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: "ORD-FIXED").checkout(
                second, shipping
            )

        assert stock_of(product_id) == 9
        assert len(cart_service.get_cart(second).items) == 1

    def test_unique_index_clash_is_retried(self, db, cart_service, shipping, make_product, monkeypatch):
        product_id = make_product(stock=10)
        first, second = Identity.for_user(1), Identity.for_user(2)
        cart_service.add_item(first, product_id, 1)
        cart_service.add_item(second, product_id, 1)
        CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: "ORD-FIXED").checkout(first, shipping)

        numbers = iter(["ORD-FIXED", "ORD-NEXT"])
        service = CheckoutService(db, tax_rate=TAX_RATE, order_number_factory=lambda: next(numbers))
        # rownolegly checkout wstawil ten sam numer juz po sprawdzeniu
        monkeypatch.setattr(service.orders, "order_number_exists", lambda number: False)

        order = service.checkout(second, shipping)

        assert order.order_number == "ORD-NEXT"


class TestStorageFailure:
    def test_commit_failure_rolls_back_everything(self, db, checkout_service, cart_service, user, shipping, two_product_cart, stock_of, monkeypatch):
        a, b = two_product_cart

        def boom():
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(db, "commit", boom)

        with pytest.raises(CheckoutFailed):
            checkout_service.checkout(user, shipping)

        monkeypatch.undo()
        assert stock_of(a) == 10
        assert stock_of(b) == 1
        assert len(cart_service.get_cart(user).items) == 2


class TestCheckoutLock:
    def test_running_checkout_blocks_second(self, db, user, shipping, two_product_cart):
        lock = MagicMock()
        lock.new_token.return_value = "token"
        lock.acquire_checkout_lock.return_value = False

        with pytest.raises(CheckoutInProgress):
            CheckoutService(db, lock_service=lock, tax_rate=TAX_RATE).checkout(user, shipping)

        lock.release_checkout_lock.assert_not_called()

    def test_lock_released_after_order(self, db, user, shipping, two_product_cart):
        lock = MagicMock()
        lock.new_token.return_value = "token"
        lock.acquire_checkout_lock.return_value = True

        CheckoutService(db, lock_service=lock, tax_rate=TAX_RATE).checkout(user, shipping)

        cart_id = lock.acquire_checkout_lock.call_args.args[0]
        lock.release_checkout_lock.assert_called_once_with(cart_id, "token")

    def test_lock_released_after_failure(self, db, user, shipping, two_product_cart, update_product):
        a, _ = two_product_cart
        update_product(a, stock_quantity=0)
        lock = MagicMock()
        lock.new_token.return_value = "token"
        lock.acquire_checkout_lock.return_value = True

        with pytest.raises(InsufficientStock):
            CheckoutService(db, lock_service=lock, tax_rate=TAX_RATE).checkout(user, shipping)

        lock.release_checkout_lock.assert_called_once()


class TestNotifications:
    def test_order_placed_notification(self, db, user, shipping, two_product_cart):
        notifications = MagicMock()

        order = CheckoutService(db, notification_service=notifications, tax_rate=TAX_RATE).checkout(user, shipping)

        notifications.send_order_placed.assert_called_once_with(1, order.id, order.order_number)

    def test_notification_failure_keeps_order(self, db, user, shipping, two_product_cart, stock_of):
        a, _ = two_product_cart
        notifications = MagicMock()
        notifications.send_order_placed.side_effect = RuntimeError("broker down")

        order = CheckoutService(db, notification_service=notifications, tax_rate=TAX_RATE).checkout(user, shipping)

        assert order.id is not None
        assert stock_of(a) == 8


def _run_concurrently(session_factory, jobs):
    barrier = threading.Barrier(len(jobs))
    results = [None] * len(jobs)

    def worker(index, identity, shipping):
        session = session_factory()
        try:
            barrier.wait()
            results[index] = CheckoutService(session, tax_rate=TAX_RATE).checkout(identity, shipping)
        except Exception as e:
            results[index] = e
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(i, *job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentCheckout:
    def test_two_carts_competing_for_last_unit(self, session_factory, cart_service, shipping, make_product, stock_of):
        product_id = make_product(stock=1)
        first, second = Identity.for_user(1), Identity.for_user(2)
        cart_service.add_item(first, product_id, 1)
        cart_service.add_item(second, product_id, 1)

        results = _run_concurrently(session_factory, [(first, shipping), (second, shipping)])

        placed = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(placed) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0], InsufficientStock)
        assert stock_of(product_id) == 0

        loser = second if placed[0].user_id == 1 else first
        with session_factory() as s:
            assert len(CartService(s).get_cart(loser).items) == 1

    def test_double_submit_creates_one_order(self, session_factory, cart_service, user, shipping, make_product, stock_of):
        product_id = make_product(stock=10)
        cart_service.add_item(user, product_id, 2)

        results = _run_concurrently(session_factory, [(user, shipping), (user, shipping)])

        placed = [r for r in results if not isinstance(r, Exception)]
        assert len(placed) == 1
        assert [type(r) for r in results if isinstance(r, Exception)] == [EmptyCart]
        assert stock_of(product_id) == 8

    def test_order_numbers_are_unique(self, session_factory, cart_service, shipping, make_product):
        product_id = make_product(stock=10)
        identities = [Identity.for_user(n) for n in range(1, 4)]
        for identity in identities:
            cart_service.add_item(identity, product_id, 1)

        results = _run_concurrently(session_factory, [(i, shipping) for i in identities])

        numbers = [r.order_number for r in results]
        assert len(set(numbers)) == 3
