from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Iterable
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value
from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.errors import CartValidationError, ProductValidationError
from app.domain.schemas import StockValidationResult
from app.repos.cart_repo import CartRepo
from app.services.product_validation_service import ProductValidationService, _unpack_item
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Panier serveur, un panier ACTIVE par utilisateur
    commands (add, update, remove, clear, sync) modifient l'etat
    query (get, validate) lecture seule
    chaque quantite passe par ProductValidationService avant d'etre enregistree
    """

    def __init__(self, db: Session, validation_service: ProductValidationService | None = None):
        self.repo = CartRepo(db)
        self.validation = validation_service or ProductValidationService(db)

    #query - lecture
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_active_cart_by_user(user_id)

        if not cart:
            return {"cart_id": None, "items": [], "total": Decimal("0.00"), "item_count": 0}

        items = [self._item_to_dict(i) for i in self.repo.get_cart_items(cart.id)]
        total = sum((i["price"] * i["quantity"] for i in items), Decimal("0.00"))

        #dict transforme en json par le schema CartOut
        return {
            "cart_id": cart.id,
            "items": items,
            "total": total,
            "item_count": sum(i["quantity"] for i in items),
        }

    def validate_cart_items(self, items: Iterable) -> StockValidationResult:
        return self.validation.validate_multiple_products_stock(items)

    #commands
    def add_item(self, user_id: int, product_id: str, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValueError("La quantité doit être supérieure à 0")

        cart = self._get_or_create_cart(user_id)
        existing_item = self.repo.get_cart_item_by_product(cart.id, product_id)

        #on valide la quantite totale (deja au panier + demandee)
        total_quantity = (existing_item.quantity if existing_item else 0) + quantity
        self._ensure_available(product_id, total_quantity)

        if existing_item:
            logger.info(
                f"Produit {product_id} déjà au panier {cart.id}, quantité "
                f"{existing_item.quantity} -> {total_quantity}"
            )
            existing_item.quantity = total_quantity
            item = existing_item
        else:
            logger.info(f"Ajout du produit {product_id} au panier {cart.id}")
            item = self.repo.add_cart_item(
                CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
            )

        self._bump_version(cart)
        self.repo.commit()

        return self._item_to_dict(item)

    def update_item(self, user_id: int, item_id: str, quantity: int) -> Dict[str, Any] | None:
        if quantity < 0:
            raise ValueError("La quantité ne peut pas être négative")

        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return None

        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            return None

        if quantity == 0:
            self.repo.delete_cart_item(item)
            self._bump_version(cart)
            self.repo.commit()
            logger.info(f"Ligne {item_id} supprimée du panier {cart.id} (quantité 0)")
            return None

        self._ensure_available(item.product_id, quantity)

        item.quantity = quantity
        self._bump_version(cart)
        self.repo.commit()

        return self._item_to_dict(item)

    def remove_item(self, user_id: int, item_id: str) -> bool:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return False

        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            return False

        self.repo.delete_cart_item(item)
        self._bump_version(cart)
        self.repo.commit()

        logger.info(f"Ligne {item_id} supprimée du panier {cart.id}")
        return True

    def clear_cart(self, user_id: int) -> None:
        cart = self.repo.get_active_cart_by_user(user_id)
        if not cart:
            return

        self.repo.delete_all_items(cart.id)
        self._bump_version(cart)
        self.repo.commit()
        logger.info(f"Panier {cart.id} vidé")

    def sync_cart(self, user_id: int, items: list) -> Dict[str, Any]:
        """
        Remplace le contenu du panier par la liste envoyee par le client.
        Tout ou rien: la liste est validee avant toute modification.
        """
        merged: Dict[str, int] = {}
        for raw in items:
            product_id, quantity = _unpack_item(raw)
            merged[product_id] = merged.get(product_id, 0) + quantity

        validation = self.validate_cart_items(
            [{"product_id": pid, "quantity": q} for pid, q in merged.items()]
        )
        if not validation.is_valid:
            raise CartValidationError(validation.errors)

        cart = self._get_or_create_cart(user_id)
        self.repo.delete_all_items(cart.id)

        for product_id, quantity in merged.items():
            self.repo.add_cart_item(
                CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
            )

        self._bump_version(cart)
        self.repo.commit()

        logger.info(f"Panier {cart.id} synchronisé ({len(merged)} lignes)")
        return self.get_cart(user_id)

    #helpers
    def _get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_active_cart_by_user(user_id)
        if cart:
            return cart

        cart = self.repo.create_cart(CartModel(user_id=user_id, status="ACTIVE", version=1))
        logger.info(f"Nouveau panier {cart.id} pour l'utilisateur {user_id}")
        return cart

    def _ensure_available(self, product_id: str, quantity: int) -> None:
        validation = self.validation.validate_product_availability(product_id, quantity)
        if not validation.is_valid:
            self.repo.rollback()
            raise ProductValidationError(
                validation.error,
                kind=validation.kind,
                product_id=product_id,
                requested=quantity,
                available=validation.available_stock,
            )

    def _bump_version(self, cart: CartModel) -> None:
        # Optimistic locking
        # UPDATE carts SET version = 2 WHERE id = 1 AND version = 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise RuntimeError(
                "Conflit de concurrence - le panier a été modifié par une autre opération"
            )

        set_committed_value(cart, "version", cart.version + 1)

    @staticmethod
    def _item_to_dict(item: CartItemModel) -> Dict[str, Any]:
        product = item.product
        return {
            "id": item.id,
            "product_id": item.product_id,
            "name": product.name,
            "sku": product.sku,
            "price": Decimal(product.effective_price),
            "quantity": item.quantity,
            "max_stock": product.stock_quantity,
        }
