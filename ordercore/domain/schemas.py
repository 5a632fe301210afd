# ordercore/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import List
from decimal import Decimal
from datetime import datetime

from ordercore.domain.order_status import PaymentMethod


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(..., description="Ilość produktu (>= 1, walidowane w serwisie)")


class QuantityIn(BaseModel):
    """Schema dla zmiany ilości; 0 lub mniej usuwa linię."""

    quantity: int


class StatusIn(BaseModel):
    status: str = Field(..., min_length=1, max_length=50)


class ShippingDetails(BaseModel):
    """Dane z formularza checkoutu."""

    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=30)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    payment_method: PaymentMethod
    billing_address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    def flattened_address(self) -> str:
        return f"{self.address}, {self.postal_code} {self.city}, {self.country}"


class CartLineOut(BaseModel):
    """Linia koszyka (response)."""

    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CartTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    total_with_tax: Decimal
    tax_rate: Decimal


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int
    user_id: int | None = None
    session_token: str | None = None
    items: List[CartLineOut]
    totals: CartTotals
    created_at: datetime
    updated_at: datetime


class CartSummaryOut(BaseModel):
    item_count: int
    line_count: int
    subtotal: Decimal
    total_with_tax: Decimal


class OrderLineOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    payment_method: str | None = None
    subtotal_amount: Decimal
    total_amount: Decimal
    shipping_address: str
    billing_address: str | None = None
    notes: str | None = None
    items: List[OrderLineOut]
    created_at: datetime
    updated_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None


class StockShortageOut(BaseModel):
    product_id: int
    requested: int
    available: int
    shortfall: int
