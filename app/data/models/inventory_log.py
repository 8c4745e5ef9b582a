from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime

from app.data.database import Base


#SALE/RETURN: commandes, STOCK_IN/STOCK_OUT/ADJUSTMENT: saisie admin
INVENTORY_TYPES = ("SALE", "RETURN", "STOCK_IN", "STOCK_OUT", "ADJUSTMENT")
ADMIN_INVENTORY_TYPES = ("STOCK_IN", "STOCK_OUT", "ADJUSTMENT")


class InventoryLogModel(Base):
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)

    type = Column(String, nullable=False)  # voir INVENTORY_TYPES
    quantity = Column(Integer, nullable=False)  # variation signee (new - old)
    reason = Column(String, nullable=False)
    reference = Column(String(36), nullable=True)
    old_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
