# app/services/order_service.py
import math
import random
import time
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from app.data.models.inventory_log import InventoryLogModel
from app.data.models.order import (
    CANCELLABLE_STATUSES,
    STATUS_FLOW,
    TERMINAL_STATUSES,
    OrderItemModel,
    OrderModel,
)
from app.data.models.user import UserModel
from app.domain.errors import CartValidationError, OrderNotFoundError, OrderStateError
from app.repos.cart_repo import CartRepo
from app.repos.order_repo import OrderRepo
from app.repos.product_repo import ProductRepo
from app.services.cache_service import CacheService
from app.services.notification_service import NotificationService
from app.services.product_validation_service import ProductValidationService
from app.services.shipping import shipping_cost, estimated_delivery
from app.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Domaine des commandes, separe du CartService.
    Reservation du stock a la creation, liberation a l'annulation.
    """

    def __init__(
        self,
        db: Session,
        validation_service: ProductValidationService | None = None,
        cache_service: CacheService | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.product_repo = ProductRepo(db)
        self.validation = validation_service or ProductValidationService(db)
        self.cache = cache_service
        self.notification_service = notification_service or NotificationService()

    def create_order_from_cart(self, user_id: int, checkout) -> OrderModel:
        """
        Use Case: commande depuis le panier.

        1. Revalide toutes les lignes contre le stock reel (refus global si une ligne echoue)
        2. Cree la commande avec un instantane prix/quantite par ligne
        3. Reserve le stock ligne par ligne + journal SALE
        4. Vide le panier, commit
        5. Invalide le cache et envoie la confirmation (async)
        """
        cart = self.cart_repo.get_active_cart_by_user(user_id)
        items = self.cart_repo.get_cart_items(cart.id) if cart else []

        if not items:
            raise ValueError("Le panier est vide")

        validation = self.validation.validate_multiple_products_stock(items)
        if not validation.is_valid:
            logger.info(f"Commande refusée pour l'utilisateur {user_id}: stock insuffisant")
            raise CartValidationError(validation.errors, "Certains produits ne sont pas disponibles")

        subtotal = sum(
            (Decimal(i.product.effective_price) * i.quantity for i in items), Decimal("0.00")
        )
        shipping = shipping_cost(subtotal, checkout.wilaya)

        order = OrderModel(
            order_number=self._generate_order_number(),
            user_id=user_id,
            status="PENDING",
            payment_method=checkout.payment_method,
            payment_status="PENDING",
            subtotal=subtotal,
            shipping_amount=shipping,
            total=subtotal + shipping,
            wilaya=checkout.wilaya,
            city=checkout.city,
            street=checkout.street,
            phone=checkout.phone,
            notes=checkout.notes,
        )

        try:
            self.repo.add_order(order)

            for item in items:
                product = item.product
                unit_price = Decimal(product.effective_price)

                order.items.append(
                    OrderItemModel(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=item.quantity,
                        unit_price=unit_price,
                        total_price=unit_price * item.quantity,
                    )
                )

                #leve ProductValidationError si le stock a bouge depuis la validation
                reserved = self.validation.reserve_stock(product.id, item.quantity)

                self.product_repo.add_inventory_log(
                    InventoryLogModel(
                        product_id=product.id,
                        type="SALE",
                        quantity=-item.quantity,
                        reason=f"Commande {order.order_number}",
                        reference=order.id,
                        old_quantity=reserved.stock_quantity + item.quantity,
                        new_quantity=reserved.stock_quantity,
                    )
                )

            self.cart_repo.delete_all_items(cart.id)
            cart.status = "CHECKED_OUT"
            self.db.commit()

        except Exception:
            #rien de partiel: ni commande, ni decrement
            self.db.rollback()
            raise

        logger.info(f"Commande {order.order_number} créée pour l'utilisateur {user_id}, total {order.total}")

        self._invalidate_cache(user_id)
        self._notify_created(order)

        return order

    def get_order(self, order_id: str, user_id: int | None = None) -> OrderModel:
        order = self.repo.get_order(order_id)

        #un client ne voit que ses commandes
        if not order or (user_id is not None and order.user_id != user_id):
            raise OrderNotFoundError("Commande introuvable")

        return order

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        orders, total = self.repo.list_orders(
            user_id=user_id, status=status, offset=(page - 1) * limit, limit=limit
        )
        total_pages = math.ceil(total / limit) if limit else 0

        return {
            "orders": orders,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def update_order_status(self, order_id: str, status: str, notes: str | None = None) -> OrderModel:
        """
        Transitions admin. CANCELLED et REFUNDED rendent le stock et sont definitifs;
        les autres statuts avancent uniquement dans l'ordre de STATUS_FLOW.
        """
        order = self.get_order(order_id)
        previous = order.status

        if previous in TERMINAL_STATUSES:
            raise OrderStateError(
                f"La commande {order.order_number} est clôturée (statut {previous})"
            )

        if status == "CANCELLED":
            return self.cancel_order(order_id, reason=notes)
        if status == "REFUNDED":
            return self.refund_order(order_id, reason=notes)

        if STATUS_FLOW.index(status) < STATUS_FLOW.index(previous):
            raise OrderStateError(
                f"La commande {order.order_number} ne peut pas repasser de {previous} à {status}"
            )

        order.status = status
        if notes:
            order.notes = notes

        now = datetime.now(timezone.utc)
        if status == "SHIPPED" and previous != "SHIPPED":
            order.shipped_at = now
        elif status == "DELIVERED" and previous != "DELIVERED":
            order.delivered_at = now
            #paiement a la livraison encaisse
            if order.payment_method == "CASH_ON_DELIVERY":
                order.payment_status = "COMPLETED"

        self.db.commit()
        logger.info(f"Commande {order.order_number}: statut {previous} -> {status}")

        self._invalidate_cache(order.user_id)
        return order

    def cancel_order(self, order_id: str, reason: str | None = None, user_id: int | None = None) -> OrderModel:
        """
        Annule une commande PENDING/CONFIRMED et remet le stock (journal RETURN).
        """
        order = self.get_order(order_id, user_id)

        if order.status not in CANCELLABLE_STATUSES:
            raise OrderStateError(
                f"La commande {order.order_number} ne peut pas être annulée (statut {order.status})"
            )

        self._release_order(order, "CANCELLED", f"Annulée: {reason}" if reason else None, "annulée")
        logger.info(f"Commande {order.order_number} annulée, stock remis")

        user = self.db.get(UserModel, order.user_id)
        self.notification_service.send_order_cancellation(order.order_number, user.email if user else None)

        return order

    def refund_order(self, order_id: str, reason: str | None = None) -> OrderModel:
        """Remboursement: possible a tout statut non clos, le stock revient une seule fois."""
        order = self.get_order(order_id)

        if order.status in TERMINAL_STATUSES:
            raise OrderStateError(
                f"La commande {order.order_number} ne peut pas être remboursée (statut {order.status})"
            )

        order.payment_status = "REFUNDED"
        self._release_order(order, "REFUNDED", f"Remboursée: {reason}" if reason else None, "remboursée")

        logger.info(f"Commande {order.order_number} remboursée, stock remis")
        return order

    def get_order_statistics(self, user_id: int | None = None) -> dict:
        return {
            "total_orders": self.repo.count_orders(user_id),
            "pending_orders": self.repo.count_orders(user_id, "PENDING"),
            "completed_orders": self.repo.count_orders(user_id, "DELIVERED"),
            "cancelled_orders": self.repo.count_orders(user_id, "CANCELLED"),
            "total_revenue": self.repo.total_revenue(user_id),
        }

    @staticmethod
    def calculate_estimated_delivery(wilaya: str | None, now: datetime | None = None) -> datetime:
        return estimated_delivery(wilaya, now)

    def _generate_order_number(self) -> str:
        #MJ + 8 derniers chiffres du timestamp + 3 chiffres aleatoires
        while True:
            timestamp = str(int(time.time() * 1000))[-8:]
            order_number = f"MJ{timestamp}{random.randint(0, 999):03d}"
            if not self.repo.order_number_exists(order_number):
                return order_number

    def _release_order(self, order: OrderModel, status: str, notes: str | None, label: str) -> None:
        #seul chemin qui rend le stock d'une commande: appele une fois, avant un statut terminal
        try:
            order.status = status
            if notes:
                order.notes = notes

            for item in order.items:
                released = self.validation.release_stock(item.product_id, item.quantity)

                self.product_repo.add_inventory_log(
                    InventoryLogModel(
                        product_id=item.product_id,
                        type="RETURN",
                        quantity=item.quantity,
                        reason=f"Commande {order.order_number} {label}",
                        reference=order.id,
                        old_quantity=released.stock_quantity - item.quantity,
                        new_quantity=released.stock_quantity,
                    )
                )

            self.db.commit()

        except Exception:
            self.db.rollback()
            raise

        self._invalidate_cache(order.user_id)

    def _invalidate_cache(self, user_id: int) -> None:
        if self.cache is None:
            return
        self.cache.invalidate_stock_cache()
        self.cache.invalidate_order_cache(user_id)

    def _notify_created(self, order: OrderModel) -> None:
        user = self.db.get(UserModel, order.user_id)
        self.notification_service.send_order_confirmation(
            {
                "order_number": order.order_number,
                "total": str(order.total),
                "email": user.email if user else None,
                "customer_name": user.name if user else None,
            }
        )
