# ordercore/data/seed.py
from datetime import datetime, timezone
from decimal import Decimal

from ordercore.data.database import SessionLocal, create_tables
from ordercore.data.models import ProductModel
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {"name": "Kubek ceramiczny", "price": Decimal("10.00"), "stock_quantity": 50},
    {"name": "Koszulka bawelniana", "price": Decimal("25.00"), "stock_quantity": 20},
    {"name": "Plecak miejski", "price": Decimal("149.99"), "stock_quantity": 5},
]


def seed():
    create_tables()
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        now = datetime.now(timezone.utc)
        for data in DEMO_PRODUCTS:
            db.add(ProductModel(is_active=True, created_at=now, **data))
        db.commit()
        logger.info(f"Seeded {len(DEMO_PRODUCTS)} products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
