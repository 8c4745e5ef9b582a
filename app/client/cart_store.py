# app/client/cart_store.py
import json
import uuid
from decimal import Decimal

import requests
from pydantic import BaseModel, Field, ValidationError

from app.client.api_client import CartApiClient, error_message
from app.services.shipping import shipping_cost
from app.utils.logging import get_logger

logger = get_logger(__name__)

STORAGE_KEY = "mj-chauffage-cart"
STOCK_ERROR = "Stock insuffisant pour ce produit"
NETWORK_ERROR = "Impossible de contacter le serveur"


class CartLine(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    product_id: str
    name: str = ""
    sku: str | None = None
    price: Decimal = Decimal("0")
    quantity: int = 1
    max_stock: int | None = None


class CartStore:
    """
    Miroir local du panier (consultatif): borne les quantites au stock connu
    avant l'aller-retour reseau. Le serveur reste seul juge a la commande.

    Chaque mutation est persistee dans `storage` sous STORAGE_KEY.
    """

    def __init__(
        self,
        storage,
        api_client: CartApiClient | None = None,
        max_lines: int | None = None,
    ):
        self.storage = storage
        self.api_client = api_client
        self.max_lines = max_lines
        self.items: list[CartLine] = []
        self.loading = False
        self.error: str | None = None
        self._load()

    # ==========================
    # mutations
    # ==========================
    def add_item(self, line: dict) -> None:
        requested = line.get("quantity")
        if requested is None:
            requested = 1
        elif requested <= 0:
            raise ValueError("La quantité doit être supérieure à 0")

        existing = self._find_by_product(line["product_id"])

        if existing:
            max_stock = line.get("max_stock", existing.max_stock)
            quantity, clamped = _clamp(existing.quantity + requested, max_stock)
            existing.quantity = quantity
            existing.max_stock = max_stock
        else:
            new_line = CartLine(**{**line, "quantity": requested})
            quantity, clamped = _clamp(requested, new_line.max_stock)

            if quantity > 0:
                #plafond atteint: on evince la ligne la plus ancienne (FIFO)
                if self.max_lines is not None and len(self.items) >= self.max_lines:
                    evicted = self.items.pop(0)
                    logger.info(f"Panier plein, ligne {evicted.product_id} retirée")
                new_line.quantity = quantity
                self.items.append(new_line)

        self.error = STOCK_ERROR if clamped else None
        self._persist()

    def update_quantity(self, line_id: str, quantity: int) -> None:
        line = self._find(line_id)
        if not line:
            return

        if quantity <= 0:
            self.remove_item(line_id)
            return

        line.quantity, clamped = _clamp(quantity, line.max_stock)
        self.error = STOCK_ERROR if clamped else None
        self._persist()

    def remove_item(self, line_id: str) -> None:
        self.items = [i for i in self.items if i.id != line_id]
        self._persist()

    def clear_cart(self) -> None:
        self.items = []
        self._persist()

    def set_loading(self, loading: bool) -> None:
        self.loading = loading

    def clear_error(self) -> None:
        self.error = None

    # ==========================
    # agregats
    # ==========================
    def get_total_items(self) -> int:
        return sum(i.quantity for i in self.items)

    def get_subtotal(self) -> Decimal:
        return sum((i.price * i.quantity for i in self.items), Decimal("0"))

    def get_shipping_cost(self, wilaya: str | None = None) -> Decimal:
        return shipping_cost(self.get_subtotal(), wilaya)

    def get_total(self, wilaya: str | None = None) -> Decimal:
        return self.get_subtotal() + self.get_shipping_cost(wilaya)

    # ==========================
    # serveur
    # ==========================
    def validate_with_server(self) -> dict | None:
        """
        Revalide les lignes contre le stock serveur et met a jour max_stock.
        """
        if not self.api_client:
            raise RuntimeError("Aucun client API configuré")

        self.loading = True
        try:
            result = self.api_client.validate(self._payload())
        except requests.RequestException as e:
            logger.warning(f"Validation du panier impossible: {e}")
            self.error = error_message(e, NETWORK_ERROR)
            return None
        finally:
            self.loading = False

        for err in result.get("errors", []):
            line = self._find_by_product(err["product_id"])
            if line:
                line.max_stock = err["available_stock"]

        self.error = result["errors"][0]["message"] if result.get("errors") else None
        self._persist()
        return result

    def sync_with_server(self) -> bool:
        """Envoie le panier local; en cas de succes les lignes serveur remplacent les locales."""
        if not self.api_client:
            raise RuntimeError("Aucun client API configuré")

        self.loading = True
        try:
            cart = self.api_client.sync(self._payload())
        except requests.RequestException as e:
            logger.warning(f"Synchronisation du panier impossible: {e}")
            self.error = error_message(e, NETWORK_ERROR)
            return False
        finally:
            self.loading = False

        self.items = [CartLine(**line) for line in cart["items"]]
        self.error = None
        self._persist()
        return True

    # ==========================
    # helpers
    # ==========================
    def _find(self, line_id: str) -> CartLine | None:
        return next((i for i in self.items if i.id == line_id), None)

    def _find_by_product(self, product_id: str) -> CartLine | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def _payload(self) -> list[dict]:
        return [{"product_id": i.product_id, "quantity": i.quantity} for i in self.items]

    def _persist(self) -> None:
        data = {"items": [i.model_dump(mode="json") for i in self.items]}
        self.storage.set_item(STORAGE_KEY, json.dumps(data))

    def _load(self) -> None:
        raw = self.storage.get_item(STORAGE_KEY)
        if not raw:
            return
        try:
            self.items = [CartLine(**line) for line in json.loads(raw)["items"]]
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Panier local illisible, réinitialisé: {e}")
            self.storage.remove_item(STORAGE_KEY)
            self.items = []


def _clamp(quantity: int, max_stock: int | None) -> tuple[int, bool]:
    if max_stock is not None and quantity > max_stock:
        return max(max_stock, 0), True
    return quantity, False
