# ordercore/services/stock_ledger.py
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from ordercore.data.models.product import ProductModel
from ordercore.domain.errors import InsufficientStock, InvalidQuantity, ProductUnavailable, StockShortage
from ordercore.repos.product_repo import ProductRepo
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    Jedyne miejsce ktore zapisuje products.stock_quantity.

    -decrement: atomowe "odejmij jesli wystarczy" jednym UPDATE ... WHERE,
     wiec dwa rownolegle decrementy nie przejda oba gdy razem przekraczaja stock
    -restore: dodaje z powrotem, bez gornego limitu
    Dziala w transakcji wywolujacego: flush tak, commit nie.
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepo(db)

    def decrement(self, product_id: int, quantity: int) -> int:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=ProductModel.stock_quantity - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(ProductModel.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        new_level = result.scalar_one_or_none()

        if new_level is None:
            # brak wiersza: albo produkt nie istnieje albo stock za maly
            product = self.products.get_product(product_id)
            if product is None:
                raise ProductUnavailable([product_id])
            logger.info(
                f"Decrement odrzucony dla produktu {product_id}: "
                f"requested {quantity}, available {product.stock_quantity}"
            )
            raise InsufficientStock(
                [StockShortage(product_id=product_id, requested=quantity, available=product.stock_quantity)]
            )

        logger.info(f"Stock produktu {product_id} -{quantity}, nowy stan {new_level}")
        return new_level

    def restore(self, product_id: int, quantity: int) -> int:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock_quantity=ProductModel.stock_quantity + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(ProductModel.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        new_level = result.scalar_one_or_none()

        if new_level is None:
            raise ProductUnavailable([product_id])

        logger.info(f"Stock produktu {product_id} +{quantity}, nowy stan {new_level}")
        return new_level
