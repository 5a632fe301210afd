from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, CheckConstraint

from ordercore.data.database import Base


class ProductModel(Base):
    """Wiersz katalogu; silnik tylko czyta, stock zmienia wylacznie StockLedger."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),)
