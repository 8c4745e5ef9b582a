# app/services/product_validation_service.py
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.data.models.inventory_log import ADMIN_INVENTORY_TYPES, InventoryLogModel
from app.data.models.product import ProductModel
from app.domain.errors import ProductValidationError, ValidationErrorKind
from app.domain.schemas import (
    ProductSnapshot,
    ProductValidationResult,
    StockValidationErrorItem,
    StockValidationResult,
)
from app.repos.product_repo import ProductRepo
from app.utils.settings import LOW_STOCK_THRESHOLD
from app.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_PRODUCT_NAME = "Produit inconnu"


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError("La quantité doit être supérieure à 0")


class ProductValidationService:
    """
    Source unique pour "peut-on vendre cette quantite maintenant".
    - validations en lecture seule: resultats, jamais d'exception
    - reserve/release: modifient le stock, le commit reste a l'appelant
    - adjust_inventory: saisie admin autonome, commit inclus
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProductRepo(db)

    #query - lecture
    def validate_product_availability(
        self, product_id: str, requested_quantity: int
    ) -> ProductValidationResult:
        product = self.repo.get_product(product_id)

        if not product:
            return ProductValidationResult(
                is_valid=False,
                kind=ValidationErrorKind.NOT_FOUND,
                error=f"Produit avec ID {product_id} non trouvé",
            )

        snapshot = ProductSnapshot.model_validate(product)

        if not product.is_active:
            return ProductValidationResult(
                is_valid=False,
                product=snapshot,
                kind=ValidationErrorKind.INACTIVE,
                error=f'Le produit "{product.name}" n\'est plus disponible',
            )

        if product.stock_quantity < requested_quantity:
            return ProductValidationResult(
                is_valid=False,
                product=snapshot,
                available_stock=product.stock_quantity,
                kind=ValidationErrorKind.INSUFFICIENT_STOCK,
                error=(
                    f'Stock insuffisant pour "{product.name}". '
                    f"Disponible: {product.stock_quantity}, Demandé: {requested_quantity}"
                ),
            )

        return ProductValidationResult(
            is_valid=True,
            product=snapshot,
            available_stock=product.stock_quantity,
        )

    def validate_multiple_products_stock(self, items: Iterable) -> StockValidationResult:
        """
        Valide chaque ligne l'une apres l'autre et collecte toutes les erreurs
        dans l'ordre d'entree (pas de court-circuit).
        Accepte des dicts {product_id, quantity} ou des objets avec ces attributs.
        """
        errors: list[StockValidationErrorItem] = []

        for item in items:
            product_id, quantity = _unpack_item(item)
            validation = self.validate_product_availability(product_id, quantity)

            if not validation.is_valid:
                errors.append(
                    StockValidationErrorItem(
                        product_id=product_id,
                        product_name=validation.product.name if validation.product else UNKNOWN_PRODUCT_NAME,
                        requested_quantity=quantity,
                        available_stock=validation.available_stock or 0,
                        message=validation.error or "Erreur de validation",
                        kind=validation.kind,
                    )
                )

        if errors:
            logger.info(f"Validation de stock: {len(errors)} ligne(s) en erreur")

        return StockValidationResult(is_valid=not errors, errors=errors)

    #commands - modification du stock
    def reserve_stock(self, product_id: str, quantity: int) -> ProductModel:
        _check_quantity(quantity)

        #UPDATE conditionnel: pas de lecture prealable, pas de course check-then-act
        rowcount = self.repo.decrement_stock_if_available(product_id, quantity)

        if rowcount == 0:
            #on relit seulement pour expliquer le refus
            self.repo.reload_product(product_id)
            validation = self.validate_product_availability(product_id, quantity)
            kind = validation.kind or ValidationErrorKind.INSUFFICIENT_STOCK
            message = validation.error or f"Stock insuffisant pour le produit {product_id}"

            logger.warning(f"Réservation refusée pour {product_id} (x{quantity}): {kind.value}")
            raise ProductValidationError(
                message,
                kind=kind,
                product_id=product_id,
                requested=quantity,
                available=validation.available_stock,
            )

        product = self.repo.reload_product(product_id)
        logger.info(f"Stock réservé: {product_id} -{quantity}, reste {product.stock_quantity}")
        return product

    def release_stock(self, product_id: str, quantity: int) -> ProductModel:
        _check_quantity(quantity)

        rowcount = self.repo.increment_stock(product_id, quantity)

        if rowcount == 0:
            raise ProductValidationError(
                f"Produit avec ID {product_id} non trouvé",
                kind=ValidationErrorKind.NOT_FOUND,
                product_id=product_id,
                requested=quantity,
            )

        product = self.repo.reload_product(product_id)
        logger.info(f"Stock libéré: {product_id} +{quantity}, total {product.stock_quantity}")
        return product

    def adjust_inventory(
        self, product_id: str, type: str, quantity: int, reason: str | None = None
    ) -> dict:
        """
        Saisie de stock admin, journalisee dans inventory_logs puis commitee.
        - STOCK_IN: +quantity
        - STOCK_OUT: -quantity, refuse si le stock est insuffisant (jamais negatif)
        - ADJUSTMENT: stock fixe a quantity (inventaire physique)
        """
        if type not in ADMIN_INVENTORY_TYPES:
            raise ValueError(f"Type de mouvement inconnu: {type}")
        if type == "ADJUSTMENT":
            if quantity < 0:
                raise ValueError("Le stock ne peut pas être négatif")
        else:
            _check_quantity(quantity)

        product = self.repo.reload_product(product_id)
        if not product:
            raise ProductValidationError(
                f"Produit avec ID {product_id} non trouvé",
                kind=ValidationErrorKind.NOT_FOUND,
                product_id=product_id,
                requested=quantity,
            )

        try:
            if type == "STOCK_IN":
                self.repo.increment_stock(product_id, quantity)
                change = quantity
            elif type == "STOCK_OUT":
                #meme UPDATE conditionnel que la reservation, produits inactifs compris
                if self.repo.decrement_stock_if_available(product_id, quantity, active_only=False) == 0:
                    available = self.repo.reload_product(product_id).stock_quantity
                    raise ProductValidationError(
                        f'Stock insuffisant pour "{product.name}". '
                        f"Disponible: {available}, Demandé: {quantity}",
                        kind=ValidationErrorKind.INSUFFICIENT_STOCK,
                        product_id=product_id,
                        requested=quantity,
                        available=available,
                    )
                change = -quantity
            else:
                change = quantity - product.stock_quantity
                self.repo.set_stock(product_id, quantity)

            new_quantity = self.repo.reload_product(product_id).stock_quantity
            old_quantity = new_quantity - change

            self.repo.add_inventory_log(
                InventoryLogModel(
                    product_id=product_id,
                    type=type,
                    quantity=change,
                    reason=reason or "Mouvement manuel",
                    old_quantity=old_quantity,
                    new_quantity=new_quantity,
                )
            )
            self.db.commit()

        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Inventaire {product_id} ({type}): {old_quantity} -> {new_quantity}")
        return {
            "product_id": product_id,
            "type": type,
            "old_quantity": old_quantity,
            "new_quantity": new_quantity,
            "change": change,
        }

    #rapports
    def is_low_stock(self, product_id: str, threshold: int = LOW_STOCK_THRESHOLD) -> bool:
        try:
            product = self.repo.get_product(product_id)
        except SQLAlchemyError as e:
            #statut inconnu traite comme "pas faible"
            logger.warning(f"Lecture du stock impossible pour {product_id}: {e}")
            return False

        if not product:
            return False

        return product.stock_quantity <= threshold

    def get_out_of_stock_products(self) -> list[ProductModel]:
        return self.repo.get_out_of_stock()

    def get_low_stock_products(self, threshold: int = LOW_STOCK_THRESHOLD) -> list[ProductModel]:
        return self.repo.get_low_stock(threshold)


def _unpack_item(item) -> tuple[str, int]:
    if isinstance(item, dict):
        return item["product_id"], item["quantity"]
    return item.product_id, item.quantity
