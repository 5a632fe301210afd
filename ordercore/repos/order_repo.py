# ordercore/repos/order_repo.py
from typing import Any, Dict, List

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordercore.data.models.order import OrderModel
from ordercore.data.models.order_line import OrderLineModel
from ordercore.domain.errors import StorageFailure


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_line(self, line: OrderLineModel) -> OrderLineModel:
        self.db.add(line)
        return line

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def order_number_exists(self, order_number: str) -> bool:
        stmt = select(OrderModel.id).where(OrderModel.order_number == order_number)
        return self.db.execute(stmt).first() is not None

    def get_order_lines(self, order_id: int) -> List[OrderLineModel]:
        stmt = (
            select(OrderLineModel)
            .where(OrderLineModel.order_id == order_id)
            .order_by(OrderLineModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_orders_for_user(self, user_id: int) -> List[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def update_order_status(self, order_id: int, expected_status: str, new_data: Dict[str, Any]) -> int:
        # compare-and-set na statusie, jak wersja w koszyku
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected_status)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        self.db.rollback()
