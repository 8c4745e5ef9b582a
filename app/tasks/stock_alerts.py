# app/tasks/stock_alerts.py
from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.services.product_validation_service import ProductValidationService
from app.utils.settings import LOW_STOCK_THRESHOLD
from app.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.stock_alerts.report_low_stock_task")
def report_low_stock_task(threshold: int = LOW_STOCK_THRESHOLD):
    logger.info("Low stock report task started")

    db = SessionLocal()
    try:
        service = ProductValidationService(db)
        low = service.get_low_stock_products(threshold)
        out = service.get_out_of_stock_products()

        for product in out:
            logger.warning(f"Rupture de stock: {product.sku} {product.name}")
        for product in low:
            logger.warning(
                f"Stock faible: {product.sku} {product.name} ({product.stock_quantity} <= {threshold})"
            )

        logger.info(f"Found {len(low)} low stock and {len(out)} out of stock products")
        return {
            "low_stock": [p.id for p in low],
            "out_of_stock": [p.id for p in out],
        }

    finally:
        db.close()
