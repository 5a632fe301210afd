# ordercore/repos/product_repo.py
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ordercore.data.models.product import ProductModel


class ProductRepo:
    """Odczyt katalogu; zapisy stocku tylko przez StockLedger."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        stmt = (
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, ProductModel]:
        ids = set(product_ids)
        if not ids:
            return {}
        stmt = (
            select(ProductModel)
            .where(ProductModel.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return {p.id: p for p in self.db.execute(stmt).scalars().all()}
