from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest

from app.domain.errors import (
    CartValidationError,
    OrderNotFoundError,
    OrderStateError,
    ProductValidationError,
)
from app.domain.schemas import CheckoutIn, StockValidationResult
from app.repos.cart_repo import CartRepo
from app.repos.product_repo import ProductRepo
from app.services.cache_service import ORDER_STATS_KEY, low_stock_key
from app.services.cart_service import CartService
from app.services.order_service import OrderService

from tests.conftest import ADMIN_ID, CUSTOMER_ID


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def svc(db, users, products, cache, notifier):
    return OrderService(db, cache_service=cache, notification_service=notifier)


@pytest.fixture
def cart(db, users, products):
    return CartService(db)


@pytest.fixture
def checkout():
    return CheckoutIn(wilaya="Alger", city="Bab Ezzouar", street="Cité 5 Juillet", phone="0550000000")


def stock(db, product_id):
    return ProductRepo(db).reload_product(product_id).stock_quantity


def test_checkout_creates_order_and_reserves_stock(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 2)
    cart.add_item(CUSTOMER_ID, "p-radiator", 1)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert order.status == "PENDING"
    assert order.payment_method == "CASH_ON_DELIVERY"
    assert order.subtotal == Decimal("2700.00")
    assert order.shipping_amount == Decimal("500")
    assert order.total == Decimal("3200.00")
    assert stock(db, "p-boiler") == 3
    assert stock(db, "p-radiator") == 2


def test_checkout_snapshots_lines(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-radiator", 2)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    [line] = order.items
    assert line.product_name == "Radiateur aluminium"
    assert line.unit_price == Decimal("300.00")
    assert line.total_price == Decimal("600.00")
    assert line.quantity == 2


def test_order_number_format(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert order.order_number.startswith("MJ")
    assert len(order.order_number) == 13
    assert order.order_number[2:].isdigit()


def test_checkout_writes_sale_logs(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 2)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    [log] = ProductRepo(db).get_inventory_logs("p-boiler")
    assert log.type == "SALE"
    assert log.quantity == -2
    assert log.old_quantity == 5
    assert log.new_quantity == 3
    assert log.reference == order.id


def test_checkout_empties_cart(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    cart_id = cart.get_cart(CUSTOMER_ID)["cart_id"]

    svc.create_order_from_cart(CUSTOMER_ID, checkout)

    repo = CartRepo(db)
    assert repo.get_active_cart_by_user(CUSTOMER_ID) is None
    assert repo.get_cart(cart_id).status == "CHECKED_OUT"
    assert repo.get_cart_items(cart_id) == []


def test_free_shipping_above_threshold(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-pump", 1)
    cart.add_item(CUSTOMER_ID, "p-boiler", 2)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert order.shipping_amount == Decimal("0")
    assert order.total == Decimal("50400.00")


def test_empty_cart_rejected(svc, checkout):
    with pytest.raises(ValueError, match="vide"):
        svc.create_order_from_cart(CUSTOMER_ID, checkout)


def test_whole_order_rejected_when_one_line_fails(svc, cart, db, products, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 2)
    cart.add_item(CUSTOMER_ID, "p-radiator", 3)
    products["radiator"].stock_quantity = 1
    db.commit()

    with pytest.raises(CartValidationError) as exc_info:
        svc.create_order_from_cart(CUSTOMER_ID, checkout)

    [error] = exc_info.value.errors
    assert error.product_id == "p-radiator"
    assert error.available_stock == 1
    assert exc_info.value.message == "Certains produits ne sont pas disponibles"

    assert stock(db, "p-boiler") == 5
    assert len(cart.get_cart(CUSTOMER_ID)["items"]) == 2
    assert svc.list_orders(user_id=CUSTOMER_ID)["pagination"]["total"] == 0


def test_reservation_race_rolls_everything_back(svc, cart, db, checkout, mocker):
    cart.add_item(CUSTOMER_ID, "p-radiator", 2)
    cart.add_item(CUSTOMER_ID, "p-boiler", 4)

    # stock vendu ailleurs entre la validation et la reservation
    ProductRepo(db).decrement_stock_if_available("p-boiler", 3)
    db.commit()
    mocker.patch.object(
        svc.validation,
        "validate_multiple_products_stock",
        return_value=StockValidationResult(is_valid=True),
    )

    with pytest.raises(ProductValidationError):
        svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert stock(db, "p-radiator") == 3
    assert stock(db, "p-boiler") == 2
    assert ProductRepo(db).get_inventory_logs("p-radiator") == []
    assert len(cart.get_cart(CUSTOMER_ID)["items"]) == 2
    assert svc.list_orders()["pagination"]["total"] == 0


def test_checkout_invalidates_cache_and_notifies(svc, cart, cache, notifier, checkout):
    cache.set_json(low_stock_key(10), [{"id": "p-boiler"}])
    cache.set_json(ORDER_STATS_KEY, {"total_orders": 0})
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)

    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert cache.get_json(low_stock_key(10)) is None
    assert cache.get_json(ORDER_STATS_KEY) is None
    notifier.send_order_confirmation.assert_called_once_with(
        {
            "order_number": order.order_number,
            "total": "1700.00",
            "email": "karim@example.dz",
            "customer_name": "Karim",
        }
    )


def test_checkout_with_celery_notification(db, users, products, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)

    order = OrderService(db).create_order_from_cart(CUSTOMER_ID, checkout)

    assert order.status == "PENDING"


def test_get_order_of_another_user_is_hidden(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    assert svc.get_order(order.id, CUSTOMER_ID) is order
    assert svc.get_order(order.id) is order
    with pytest.raises(OrderNotFoundError):
        svc.get_order(order.id, ADMIN_ID)
    with pytest.raises(OrderNotFoundError):
        svc.get_order("missing")


def test_list_orders_pagination(svc, cart, checkout):
    for _ in range(3):
        cart.add_item(CUSTOMER_ID, "p-pump", 1)
        svc.create_order_from_cart(CUSTOMER_ID, checkout)

    result = svc.list_orders(user_id=CUSTOMER_ID, page=2, limit=2)

    assert len(result["orders"]) == 1
    assert result["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": False,
        "has_prev": True,
    }


def test_cancel_releases_stock_and_logs_return(svc, cart, db, notifier, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 2)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    cancelled = svc.cancel_order(order.id, reason="Client absent", user_id=CUSTOMER_ID)

    assert cancelled.status == "CANCELLED"
    assert cancelled.notes == "Annulée: Client absent"
    assert stock(db, "p-boiler") == 5

    sale, ret = ProductRepo(db).get_inventory_logs("p-boiler")
    assert sale.type == "SALE"
    assert ret.type == "RETURN"
    assert ret.quantity == 2
    assert (ret.old_quantity, ret.new_quantity) == (3, 5)
    notifier.send_order_cancellation.assert_called_once_with(order.order_number, "karim@example.dz")


def test_cancel_confirmed_order(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.update_order_status(order.id, "CONFIRMED")

    assert svc.cancel_order(order.id).status == "CANCELLED"
    assert stock(db, "p-boiler") == 5


@pytest.mark.parametrize("status", ["SHIPPED", "DELIVERED"])
def test_cancel_after_shipping_rejected(svc, cart, db, checkout, status):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.update_order_status(order.id, status)

    with pytest.raises(OrderStateError):
        svc.cancel_order(order.id)

    assert stock(db, "p-boiler") == 4


def test_cancel_twice_rejected(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.cancel_order(order.id)

    with pytest.raises(OrderStateError):
        svc.cancel_order(order.id)

    assert stock(db, "p-boiler") == 5


def test_update_status_sets_timestamps(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    shipped = svc.update_order_status(order.id, "SHIPPED")
    assert shipped.shipped_at is not None
    assert shipped.payment_status == "PENDING"

    delivered = svc.update_order_status(order.id, "DELIVERED", notes="Remis en main propre")
    assert delivered.delivered_at is not None
    assert delivered.payment_status == "COMPLETED"
    assert delivered.notes == "Remis en main propre"


def test_update_status_to_cancelled_releases_stock(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 3)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)

    svc.update_order_status(order.id, "CANCELLED", notes="Rupture fournisseur")

    assert stock(db, "p-boiler") == 5


def test_order_statistics(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    first = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    cart.add_item(CUSTOMER_ID, "p-radiator", 1)
    svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.cancel_order(first.id)

    stats = svc.get_order_statistics(CUSTOMER_ID)

    assert stats["total_orders"] == 2
    assert stats["pending_orders"] == 1
    assert stats["cancelled_orders"] == 1
    assert stats["completed_orders"] == 0
    assert stats["total_revenue"] == Decimal("800")


@pytest.mark.parametrize("wilaya, days", [("Alger", 2), ("Annaba", 2), ("Tlemcen", 5), (None, 5)])
def test_estimated_delivery(wilaya, days):
    now = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)

    eta = OrderService.calculate_estimated_delivery(wilaya, now)

    assert (eta - now).days == days


def test_cancelled_order_cannot_be_reopened(svc, cart, db, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 3)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.update_order_status(order.id, "CANCELLED")
    assert stock(db, "p-boiler") == 5

    with pytest.raises(OrderStateError):
        svc.update_order_status(order.id, "PENDING")
    with pytest.raises(OrderStateError):
        svc.update_order_status(order.id, "CANCELLED")
    with pytest.raises(OrderStateError):
        svc.update_order_status(order.id, "REFUNDED")

    assert svc.get_order(order.id).status == "CANCELLED"
    assert stock(db, "p-boiler") == 5
    assert [log.type for log in ProductRepo(db).get_inventory_logs("p-boiler")] == ["SALE", "RETURN"]


@pytest.mark.parametrize("current, target", [("SHIPPED", "PENDING"), ("DELIVERED", "CONFIRMED"), ("DELIVERED", "SHIPPED")])
def test_status_never_moves_backwards(svc, cart, checkout, current, target):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.update_order_status(order.id, current)

    with pytest.raises(OrderStateError):
        svc.update_order_status(order.id, target)

    assert svc.get_order(order.id).status == current


def test_same_status_keeps_timestamp(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    shipped_at = svc.update_order_status(order.id, "SHIPPED").shipped_at

    assert svc.update_order_status(order.id, "SHIPPED", notes="Relance transporteur").shipped_at == shipped_at


@pytest.mark.parametrize("before", ["PENDING", "SHIPPED", "DELIVERED"])
def test_refund_restores_stock_once(svc, cart, db, checkout, before):
    cart.add_item(CUSTOMER_ID, "p-boiler", 3)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    if before != "PENDING":
        svc.update_order_status(order.id, before)

    refunded = svc.update_order_status(order.id, "REFUNDED", notes="Colis endommagé")

    assert refunded.status == "REFUNDED"
    assert refunded.payment_status == "REFUNDED"
    assert refunded.notes == "Remboursée: Colis endommagé"
    assert stock(db, "p-boiler") == 5

    with pytest.raises(OrderStateError):
        svc.update_order_status(order.id, "REFUNDED")
    with pytest.raises(OrderStateError):
        svc.cancel_order(order.id)

    assert stock(db, "p-boiler") == 5
    sale, ret = ProductRepo(db).get_inventory_logs("p-boiler")
    assert (ret.type, ret.quantity, ret.old_quantity, ret.new_quantity) == ("RETURN", 3, 2, 5)


def test_refunded_order_excluded_from_revenue(svc, cart, checkout):
    cart.add_item(CUSTOMER_ID, "p-boiler", 1)
    order = svc.create_order_from_cart(CUSTOMER_ID, checkout)
    svc.refund_order(order.id)

    assert svc.get_order_statistics(CUSTOMER_ID)["total_revenue"] == Decimal("0")
