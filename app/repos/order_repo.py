# app/repos/order_repo.py
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel, TERMINAL_STATUSES


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        #pas de commit, la transaction appartient au service
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(OrderModel.id).where(OrderModel.order_number == order_number)
        ).first() is not None

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[OrderModel], int]:
        query = select(OrderModel)
        if user_id is not None:
            query = query.where(OrderModel.user_id == user_id)
        if status:
            query = query.where(OrderModel.status == status)

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
        orders = self.db.execute(
            query.order_by(OrderModel.created_at.desc()).offset(offset).limit(limit)
        ).scalars().all()
        return list(orders), total

    def count_orders(self, user_id: int | None = None, status: str | None = None) -> int:
        query = select(func.count(OrderModel.id))
        if user_id is not None:
            query = query.where(OrderModel.user_id == user_id)
        if status:
            query = query.where(OrderModel.status == status)
        return self.db.execute(query).scalar_one()

    def total_revenue(self, user_id: int | None = None) -> Decimal:
        query = select(func.coalesce(func.sum(OrderModel.total), 0)).where(
            OrderModel.status.notin_(TERMINAL_STATUSES)
        )
        if user_id is not None:
            query = query.where(OrderModel.user_id == user_id)
        return Decimal(str(self.db.execute(query).scalar_one()))
