from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from ordercore.data.database import Base
from ordercore.domain.order_status import OrderStatus, PaymentStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(50), nullable=False, unique=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(String(50), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(50), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)

    # snapshoty, nie przeliczane pozniej
    subtotal_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    shipping_address = Column(Text, nullable=False)
    billing_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # bez cascade delete - historia sprzedazy
    lines = relationship("OrderLineModel", back_populates="order", order_by="OrderLineModel.id")
