# app/services/shipping.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.utils.settings import FREE_SHIPPING_THRESHOLD, DEFAULT_SHIPPING_RATE

SHIPPING_RATES = {
    "Alger": 500,
    "Blida": 600,
    "Oran": 850,
    "Constantine": 800,
}

#livraison express (2 jours ouvres) pour les grandes villes
MAJOR_CITIES = ("Alger", "Oran", "Constantine", "Annaba", "Blida")


def shipping_cost(subtotal, wilaya: str | None) -> Decimal:
    if not wilaya:
        return Decimal("0")
    if Decimal(str(subtotal)) >= FREE_SHIPPING_THRESHOLD:
        return Decimal("0")
    return Decimal(SHIPPING_RATES.get(wilaya, DEFAULT_SHIPPING_RATE))


def estimated_delivery(wilaya: str | None, now: datetime | None = None) -> datetime:
    days = 2 if wilaya in MAJOR_CITIES else 5
    return (now or datetime.now(timezone.utc)) + timedelta(days=days)
