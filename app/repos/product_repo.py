# app/repos/product_repo.py
from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.data.models.inventory_log import InventoryLogModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def reload_product(self, product_id: str) -> ProductModel | None:
        # relire la ligne apres un UPDATE en masse (identity map potentiellement perimee)
        return self.db.get(ProductModel, product_id, populate_existing=True)

    def list_active(self, offset: int = 0, limit: int = 20) -> tuple[list[ProductModel], int]:
        query = select(ProductModel).where(ProductModel.is_active.is_(True))
        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
        products = self.db.execute(
            query.order_by(ProductModel.name).offset(offset).limit(limit)
        ).scalars().all()
        return list(products), total

    def create_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def update_product(self, product: ProductModel, data: dict) -> ProductModel:
        for field, value in data.items():
            setattr(product, field, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def decrement_stock_if_available(self, product_id: str, quantity: int, active_only: bool = True) -> int:
        """
        UPDATE products SET stock_quantity = stock_quantity - :q
        WHERE id = :id [AND is_active] AND stock_quantity >= :q
        Retourne le nombre de lignes modifiees (0 = refuse).
        """
        conditions = [ProductModel.id == product_id, ProductModel.stock_quantity >= quantity]
        if active_only:
            conditions.append(ProductModel.is_active.is_(True))

        stmt = (
            update(ProductModel)
            .where(*conditions)
            .values(stock_quantity=ProductModel.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def increment_stock(self, product_id: str, quantity: int) -> int:
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock_quantity=ProductModel.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def set_stock(self, product_id: str, quantity: int) -> int:
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock_quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def get_out_of_stock(self) -> list[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(ProductModel.stock_quantity == 0, ProductModel.is_active.is_(True))
                .order_by(ProductModel.name)
            ).scalars().all()
        )

    def get_low_stock(self, threshold: int) -> list[ProductModel]:
        return list(
            self.db.execute(
                select(ProductModel)
                .where(
                    ProductModel.stock_quantity > 0,
                    ProductModel.stock_quantity <= threshold,
                    ProductModel.is_active.is_(True),
                )
                .order_by(ProductModel.stock_quantity.asc(), ProductModel.name)
            ).scalars().all()
        )

    def add_inventory_log(self, log: InventoryLogModel) -> InventoryLogModel:
        self.db.add(log)
        return log

    def get_inventory_logs(self, product_id: str) -> list[InventoryLogModel]:
        return list(
            self.db.execute(
                select(InventoryLogModel)
                .where(InventoryLogModel.product_id == product_id)
                .order_by(InventoryLogModel.id)
            ).scalars().all()
        )
