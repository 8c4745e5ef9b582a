# app/celery_worker.py
from celery import Celery

from app.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    STOCK_ALERT_INTERVAL_SECONDS,
)

celery_app = Celery(
    "mj_chauffage",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# import explicite des taches pour que Celery les enregistre
celery_app.conf.imports = (
    "app.tasks.stock_alerts",
    "app.services.notification_service",
)

# beat: rapport de stock faible
celery_app.conf.beat_schedule = {
    "report-low-stock": {
        "task": "app.tasks.stock_alerts.report_low_stock_task",
        "schedule": float(STOCK_ALERT_INTERVAL_SECONDS),
    },
}

celery_app.conf.timezone = "Africa/Algiers"
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
