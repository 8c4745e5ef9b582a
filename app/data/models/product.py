# app/data/models/product.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, CheckConstraint

from app.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sku = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    name_ar = Column(String(255), nullable=True)

    price = Column(Numeric(12, 2), nullable=False)
    sale_price = Column(Numeric(12, 2), nullable=True)

    #modifie uniquement par reserve/release
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )

    @property
    def effective_price(self):
        return self.sale_price if self.sale_price is not None else self.price
