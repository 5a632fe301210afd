# ordercore/domain/pricing.py
"""
Kalkulator cen - czyste funkcje, bez efektow ubocznych.

Dziala na dowolnych obiektach z polami ``price`` i ``quantity``
(CartItemModel, OrderLineModel), wiec zamowienie liczy sie zawsze ze
snapshotow, nigdy z aktualnej ceny produktu.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class Totals(NamedTuple):
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def quantize(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def line_subtotal(line) -> Decimal:
    return Decimal(line.price) * line.quantity


def _totals(lines: Iterable, tax_rate: Decimal) -> Totals:
    raw = sum((line_subtotal(line) for line in lines), ZERO)
    subtotal = quantize(raw)
    total = quantize(raw * (Decimal(1) + Decimal(tax_rate)))
    return Totals(subtotal=subtotal, tax=total - subtotal, total=total)


def cart_totals(lines: Iterable, tax_rate: Decimal) -> Totals:
    return _totals(lines, tax_rate)


def order_totals(order_lines: Iterable, tax_rate: Decimal) -> Totals:
    return _totals(order_lines, tax_rate)


def item_count(lines: Iterable) -> int:
    return sum(line.quantity for line in lines)
