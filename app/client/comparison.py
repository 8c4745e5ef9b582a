# app/client/comparison.py
import json
from collections import deque

from app.utils.logging import get_logger

logger = get_logger(__name__)

STORAGE_KEY = "mj_comparison"
MAX_ITEMS = 4


class ComparisonList:
    """
    Liste de comparaison bornee (MAX_ITEMS), le plus ancien sort en premier.
    Re-ajouter un produit deja present le retire (bascule).
    """

    def __init__(self, storage, max_items: int = MAX_ITEMS):
        self.storage = storage
        self.items: deque[dict] = deque(maxlen=max_items)
        self._load()

    def toggle(self, item: dict) -> bool:
        """Retourne True si le produit est maintenant dans la comparaison."""
        if self.contains(item["product_id"]):
            self.remove(item["product_id"])
            return False

        #deque(maxlen) evince le plus ancien
        self.items.append(dict(item))
        self._persist()
        return True

    def remove(self, product_id: str) -> None:
        self.items = deque((i for i in self.items if i["product_id"] != product_id), maxlen=self.items.maxlen)
        self._persist()

    def contains(self, product_id: str) -> bool:
        return any(i["product_id"] == product_id for i in self.items)

    def clear(self) -> None:
        self.items.clear()
        self._persist()

    def product_ids(self) -> list[str]:
        return [i["product_id"] for i in self.items]

    def _persist(self) -> None:
        self.storage.set_item(STORAGE_KEY, json.dumps(list(self.items)))

    def _load(self) -> None:
        raw = self.storage.get_item(STORAGE_KEY)
        if not raw:
            return
        try:
            self.items.extend(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Comparaison locale illisible, réinitialisée: {e}")
            self.storage.remove_item(STORAGE_KEY)
