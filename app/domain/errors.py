# app/domain/errors.py
from enum import Enum


class ValidationErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


class ProductValidationError(Exception):
    """
    Levée par les opérations qui modifient le stock (réservation, ajout panier).
    Le type d'erreur est porté par `kind`, jamais par le texte du message.
    """

    def __init__(
        self,
        message: str,
        kind: ValidationErrorKind,
        product_id: str,
        requested: int | None = None,
        available: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def __str__(self) -> str:
        return self.message


class CartValidationError(Exception):
    """Au moins une ligne du panier ne passe pas la validation de stock."""

    def __init__(self, errors: list, message: str = "Validation du panier échouée"):
        super().__init__(message)
        self.message = message
        self.errors = errors


class OrderNotFoundError(LookupError):
    pass


class OrderStateError(ValueError):
    pass
