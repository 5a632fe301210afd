# ordercore/services/cart_service.py
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ordercore.data.models.cart import CartModel
from ordercore.data.models.cart_item import CartItemModel
from ordercore.domain import pricing
from ordercore.domain.errors import (
    CartConflict,
    CartLineNotFound,
    InsufficientStock,
    InvalidQuantity,
    ProductUnavailable,
    StockShortage,
)
from ordercore.domain.identity import Identity
from ordercore.domain.schemas import CartLineOut, CartOut, CartSummaryOut, CartTotals
from ordercore.repos.cart_repo import CartRepo
from ordercore.repos.product_repo import ProductRepo
from ordercore.utils.retry import cart_conflict_retry
from ordercore.utils.settings import TAX_RATE
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Cart Store - koszyk per tozsamosc (user albo anonimowa sesja).
    commands (add, update, remove, clear) modyfikuja stan i podbijaja version
    query (get, totals, summary) tylko odczyt, poza leniwym utworzeniem koszyka
    """

    def __init__(self, db: Session, tax_rate: Decimal = TAX_RATE):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.tax_rate = Decimal(tax_rate)

    #query - odczyt
    def get_cart(self, identity: Identity) -> CartOut:
        cart = self.get_or_create(identity)
        return self._to_out(cart)

    def compute_totals(self, identity: Identity) -> CartTotals:
        cart = self.get_or_create(identity)
        return self._totals(self.repo.get_cart_items(cart.id))

    def summary(self, identity: Identity) -> CartSummaryOut:
        cart = self.get_or_create(identity)
        items = self.repo.get_cart_items(cart.id)
        totals = pricing.cart_totals(items, self.tax_rate)
        return CartSummaryOut(
            item_count=pricing.item_count(items),
            line_count=len(items),
            subtotal=totals.subtotal,
            total_with_tax=totals.total,
        )

    #commands
    def get_or_create(self, identity: Identity) -> CartModel:
        cart = self.repo.get_cart_by_identity(identity)
        if cart:
            return cart

        now = datetime.now(timezone.utc)
        new_cart = CartModel(
            user_id=identity.user_id,
            session_token=identity.session_token,
            version=1,
            created_at=now,
            updated_at=now,
        )

        try:
            self.repo.create_cart(new_cart)
            self.repo.commit()
        except IntegrityError:
            # ta sama tozsamosc utworzyla koszyk rownolegle
            self.repo.rollback()
            cart = self.repo.get_cart_by_identity(identity)
            if cart is None:
                raise
            return cart

        logger.info(f"Utworzono nowy koszyk {new_cart.id} dla {identity}")
        return new_cart

    @cart_conflict_retry()
    def add_item(self, identity: Identity, product_id: int, quantity: int) -> CartOut:
        if quantity < 1:
            logger.info(f"Odrzucono dodanie produktu {product_id}: ilosc {quantity}")
            raise InvalidQuantity(quantity)

        cart = self.get_or_create(identity)
        product = self.products.get_product(product_id)

        if product is None or not product.is_active:
            logger.info(f"Produkt {product_id} niedostepny, koszyk {cart.id}")
            raise ProductUnavailable([product_id])

        # Sprawdz czy produkt juz jest w koszyku, limit liczymy od sumy
        existing_item = self.repo.get_cart_item(cart.id, product_id)
        requested = quantity + (existing_item.quantity if existing_item else 0)

        if requested > product.stock_quantity:
            logger.info(
                f"Za maly stock produktu {product_id}: requested {requested}, "
                f"available {product.stock_quantity}"
            )
            raise InsufficientStock(
                [StockShortage(product_id=product_id, requested=requested, available=product.stock_quantity)]
            )

        now = datetime.now(timezone.utc)
        self._bump_version(cart, now)

        if existing_item:
            logger.info(
                f"Produkt {product_id} już jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {requested}"
            )
            existing_item.quantity = requested
            existing_item.price = product.price  # update ceny
        else:
            logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    quantity=quantity,
                    price=product.price,
                    added_at=now,
                )
            )

        self.repo.commit()
        return self._to_out(cart)

    @cart_conflict_retry()
    def update_item_quantity(self, identity: Identity, line_id: int, quantity: int) -> CartOut:
        cart = self.get_or_create(identity)

        if quantity < 1:
            # 0 nigdy nie jest zapisywane, linia znika
            self._remove(cart, line_id)
            return self._to_out(cart)

        item = self.repo.get_cart_item_by_id(cart.id, line_id)
        if item is None:
            raise CartLineNotFound(line_id)

        product = self.products.get_product(item.product_id)
        if product is None or not product.is_active:
            raise ProductUnavailable([item.product_id])

        if quantity > product.stock_quantity:
            logger.info(
                f"Za maly stock produktu {item.product_id}: requested {quantity}, "
                f"available {product.stock_quantity}"
            )
            raise InsufficientStock(
                [StockShortage(product_id=item.product_id, requested=quantity, available=product.stock_quantity)]
            )

        self._bump_version(cart, datetime.now(timezone.utc))
        item.quantity = quantity
        self.repo.commit()

        logger.info(f"Linia {line_id} koszyka {cart.id} ma teraz ilosc {quantity}")
        return self._to_out(cart)

    @cart_conflict_retry()
    def remove_item(self, identity: Identity, line_id: int) -> CartOut:
        cart = self.get_or_create(identity)
        self._remove(cart, line_id)
        return self._to_out(cart)

    @cart_conflict_retry()
    def clear(self, identity: Identity) -> CartOut:
        cart = self.get_or_create(identity)

        self._bump_version(cart, datetime.now(timezone.utc))
        removed = self.repo.clear_cart_items(cart.id)
        self.repo.commit()

        logger.info(f"Wyczyszczono koszyk {cart.id}, usunieto {removed} linii")
        return self._to_out(cart)

    #helpers
    def _remove(self, cart: CartModel, line_id: int) -> None:
        item = self.repo.get_cart_item_by_id(cart.id, line_id)
        if item is None:
            # idempotentne, brak linii to nie blad
            return

        self._bump_version(cart, datetime.now(timezone.utc))
        self.repo.delete_cart_item(item)
        self.repo.commit()

        logger.info(f"Usunieto linie {line_id} z koszyka {cart.id}")

    def _bump_version(self, cart: CartModel, now: datetime) -> None:
        # Optimistic locking
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1, "updated_at": now},
        )
        if rowcount == 0:
            self.repo.rollback()
            logger.warning(f"Konflikt wersji koszyka {cart.id}")
            raise CartConflict(cart.id)

    def _totals(self, items) -> CartTotals:
        totals = pricing.cart_totals(items, self.tax_rate)
        return CartTotals(
            subtotal=totals.subtotal,
            tax=totals.tax,
            total_with_tax=totals.total,
            tax_rate=self.tax_rate,
        )

    def _to_out(self, cart: CartModel) -> CartOut:
        items = self.repo.get_cart_items(cart.id)
        return CartOut(
            cart_id=cart.id,
            user_id=cart.user_id,
            session_token=cart.session_token,
            items=[
                CartLineOut(
                    id=i.id,
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=i.price,
                    line_total=pricing.line_subtotal(i),
                    added_at=i.added_at,
                )
                for i in items
            ],
            totals=self._totals(items),
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )
