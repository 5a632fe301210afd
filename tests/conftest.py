"""Shared fixtures: a fresh file-backed SQLite database per test."""

import os

# modul database tworzy engine przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal

import pytest
from sqlalchemy import update

from ordercore.data.database import build_engine, create_tables, make_session_factory
from ordercore.data.models import ProductModel
from ordercore.domain.identity import Identity
from ordercore.domain.order_status import PaymentMethod
from ordercore.domain.schemas import ShippingDetails
from ordercore.services.cart_service import CartService
from ordercore.services.checkout_service import CheckoutService
from ordercore.services.order_service import OrderService

TAX_RATE = Decimal("0.20")


@pytest.fixture()
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'ordercore.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_product(session_factory):
    def _make(price="10.00", stock=10, active=True, name="Produkt"):
        with session_factory() as s:
            product = ProductModel(
                name=name,
                price=Decimal(price),
                stock_quantity=stock,
                is_active=active,
            )
            s.add(product)
            s.commit()
            return product.id

    return _make


@pytest.fixture()
def stock_of(session_factory):
    def _stock(product_id):
        with session_factory() as s:
            return s.get(ProductModel, product_id).stock_quantity

    return _stock


@pytest.fixture()
def update_product(session_factory):
    """Zmiana katalogu z zewnatrz, np. admin zmienia stock albo cene."""

    def _update(product_id, **values):
        with session_factory() as s:
            s.execute(update(ProductModel).where(ProductModel.id == product_id).values(**values))
            s.commit()

    return _update


@pytest.fixture()
def user():
    return Identity.for_user(1)


@pytest.fixture()
def guest():
    return Identity.for_session("guest-session-token")


@pytest.fixture()
def shipping():
    return ShippingDetails(
        email="jan@example.com",
        phone="+48 600 100 200",
        address="ul. Prosta 1",
        city="Warszawa",
        postal_code="00-001",
        country="PL",
        payment_method=PaymentMethod.CASH_ON_DELIVERY,
    )


@pytest.fixture()
def cart_service(db):
    return CartService(db, tax_rate=TAX_RATE)


@pytest.fixture()
def checkout_service(db):
    return CheckoutService(db, tax_rate=TAX_RATE)


@pytest.fixture()
def order_service(db):
    return OrderService(db)
