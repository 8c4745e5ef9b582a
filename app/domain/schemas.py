# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Generic, List, Optional, TypeVar
from decimal import Decimal
from datetime import datetime

from app.domain.errors import ValidationErrorKind

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Enveloppe commune des réponses."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


# =====================================================
# PRODUITS
# =====================================================
class ProductSnapshot(BaseModel):
    """Vue du produit renvoyée avec un résultat de validation."""

    id: str
    name: str
    stock_quantity: int
    is_active: bool
    price: Decimal
    sale_price: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    name_ar: str | None = Field(None, max_length=255)
    price: Decimal = Field(..., gt=0)
    sale_price: Decimal | None = Field(None, gt=0)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    name_ar: str | None = Field(None, max_length=255)
    price: Decimal | None = Field(None, gt=0)
    sale_price: Decimal | None = Field(None, gt=0)
    is_active: bool | None = None


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    name_ar: str | None = None
    price: Decimal
    sale_price: Decimal | None = None
    stock_quantity: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class StockReportItem(BaseModel):
    id: str
    name: str
    sku: str
    stock_quantity: int

    model_config = ConfigDict(from_attributes=True)


class InventoryAdjustIn(BaseModel):
    """Mouvement de stock saisi par un admin (ADJUSTMENT fixe le stock a `quantity`)."""

    type: str = Field(..., pattern="^(STOCK_IN|STOCK_OUT|ADJUSTMENT)$")
    quantity: int = Field(..., ge=0)
    reason: str | None = Field(None, max_length=255)


class InventoryAdjustOut(BaseModel):
    product_id: str
    type: str
    old_quantity: int
    new_quantity: int
    change: int


class LowStockOut(BaseModel):
    product_id: str
    threshold: int
    is_low_stock: bool


# =====================================================
# VALIDATION DE STOCK
# =====================================================
class StockItemIn(BaseModel):
    """Ligne {product_id, quantity} soumise à validation."""

    product_id: str = Field(..., min_length=1, description="ID du produit")
    quantity: int = Field(..., gt=0, description="Quantité (doit être > 0)")


class ValidateCartIn(BaseModel):
    items: List[StockItemIn]


class ProductValidationResult(BaseModel):
    is_valid: bool
    product: ProductSnapshot | None = None
    available_stock: int | None = None
    error: str | None = None
    kind: ValidationErrorKind | None = None


class StockValidationErrorItem(BaseModel):
    product_id: str
    product_name: str
    requested_quantity: int
    available_stock: int
    message: str
    kind: ValidationErrorKind | None = None


class StockValidationResult(BaseModel):
    is_valid: bool
    errors: List[StockValidationErrorItem] = []


# =====================================================
# PANIER
# =====================================================
class ItemIn(BaseModel):
    """Ajout d'un produit au panier."""

    product_id: str = Field(..., min_length=1, description="ID du produit")
    quantity: int = Field(..., gt=0, description="Quantité (doit être > 0)")


class ItemUpdateIn(BaseModel):
    """0 supprime la ligne."""

    quantity: int = Field(..., ge=0)


class SyncCartIn(BaseModel):
    items: List[StockItemIn]


class CartItemOut(BaseModel):
    id: str
    product_id: str
    name: str
    sku: str
    price: Decimal
    quantity: int
    max_stock: int


class CartOut(BaseModel):
    cart_id: int | None = None
    items: List[CartItemOut]
    total: Decimal
    item_count: int


# =====================================================
# UTILISATEURS
# =====================================================
class UserCreate(BaseModel):
    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=32)
    is_admin: bool = False


class UserRead(BaseModel):
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    is_admin: bool = False

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# COMMANDES
# =====================================================
class CheckoutIn(BaseModel):
    """Passage de commande depuis le panier (paiement à la livraison par défaut)."""

    wilaya: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=6, max_length=32)
    notes: str | None = None
    payment_method: str = "CASH_ON_DELIVERY"


class CancelOrderIn(BaseModel):
    reason: str | None = None


class OrderStatusIn(BaseModel):
    status: str = Field(..., pattern="^(PENDING|CONFIRMED|PROCESSING|SHIPPED|DELIVERED|CANCELLED|REFUNDED)$")
    notes: str | None = None


class OrderItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: str
    order_number: str
    user_id: int
    status: str
    payment_method: str
    payment_status: str
    subtotal: Decimal
    shipping_amount: Decimal
    total: Decimal
    wilaya: str
    city: str
    street: str
    phone: str
    notes: str | None = None
    items: List[OrderItemOut]
    created_at: datetime
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    estimated_delivery: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class OrderStatsOut(BaseModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    cancelled_orders: int
    total_revenue: Decimal


class ProductListOut(BaseModel):
    products: List[ProductOut]
    total: int
    page: int
    limit: int
