import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from app.client.cart_store import CartStore, NETWORK_ERROR, STOCK_ERROR, STORAGE_KEY
from app.client.storage import MemoryStorage, RedisStorage


def line(product_id="p-boiler", quantity=1, max_stock=5, price="1200"):
    return {
        "product_id": product_id,
        "name": product_id,
        "sku": product_id.upper(),
        "price": Decimal(price),
        "quantity": quantity,
        "max_stock": max_stock,
    }


def http_error(status, body):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode()
    return requests.HTTPError(response=response)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return CartStore(storage)


class TestMutations:

    def test_add_new_line(self, store):
        store.add_item(line(quantity=2))

        [item] = store.items
        assert item.quantity == 2
        assert item.id
        assert store.error is None

    def test_add_defaults_to_one(self, store):
        store.add_item({**line(), "quantity": None})

        assert store.items[0].quantity == 1

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_add_non_positive_quantity_rejected(self, store, quantity):
        store.add_item(line(quantity=2))

        with pytest.raises(ValueError):
            store.add_item(line(quantity=quantity))

        assert store.items[0].quantity == 2

    def test_add_existing_increments(self, store):
        store.add_item(line(quantity=2))
        store.add_item(line(quantity=2))

        assert len(store.items) == 1
        assert store.items[0].quantity == 4

    def test_add_existing_is_clamped(self, store):
        store.add_item(line(quantity=4))
        store.add_item(line(quantity=3))

        assert store.items[0].quantity == 5
        assert store.error == STOCK_ERROR

    def test_new_line_is_clamped(self, store):
        store.add_item(line(quantity=9, max_stock=3))

        assert store.items[0].quantity == 3
        assert store.error == STOCK_ERROR

    def test_product_without_stock_not_added(self, store):
        store.add_item(line(max_stock=0))

        assert store.items == []
        assert store.error == STOCK_ERROR

    def test_unknown_max_stock_is_not_clamped(self, store):
        store.add_item(line(quantity=50, max_stock=None))

        assert store.items[0].quantity == 50

    def test_successful_add_clears_error(self, store):
        store.add_item(line(quantity=9))
        store.add_item(line("p-pump", quantity=1, max_stock=20))

        assert store.error is None

    def test_fifo_eviction(self, storage):
        store = CartStore(storage, max_lines=2)

        store.add_item(line("a"))
        store.add_item(line("b"))
        store.add_item(line("c"))

        assert [i.product_id for i in store.items] == ["b", "c"]

    def test_update_quantity(self, store):
        store.add_item(line())
        line_id = store.items[0].id

        store.update_quantity(line_id, 4)
        assert store.items[0].quantity == 4
        assert store.error is None

        store.update_quantity(line_id, 8)
        assert store.items[0].quantity == 5
        assert store.error == STOCK_ERROR

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_update_to_zero_removes(self, store, quantity):
        store.add_item(line())

        store.update_quantity(store.items[0].id, quantity)

        assert store.items == []

    def test_update_unknown_line_is_noop(self, store):
        store.add_item(line())

        store.update_quantity("missing", 3)

        assert store.items[0].quantity == 1

    def test_remove_and_clear(self, store):
        store.add_item(line("a"))
        store.add_item(line("b"))

        store.remove_item(store.items[0].id)
        assert [i.product_id for i in store.items] == ["b"]

        store.clear_cart()
        assert store.items == []

    def test_loading_and_error_flags(self, store):
        store.set_loading(True)
        assert store.loading is True

        store.add_item(line(quantity=10))
        store.clear_error()
        assert store.error is None


class TestTotals:

    def test_totals(self, store):
        store.add_item(line("a", quantity=2, price="1200"))
        store.add_item(line("b", quantity=1, price="300.50"))

        assert store.get_total_items() == 3
        assert store.get_subtotal() == Decimal("2700.50")
        assert store.get_shipping_cost("Alger") == Decimal("500")
        assert store.get_total("Alger") == Decimal("3200.50")
        assert store.get_total() == Decimal("2700.50")

    def test_empty_cart(self, store):
        assert store.get_total_items() == 0
        assert store.get_subtotal() == Decimal("0")

    def test_free_shipping(self, store):
        store.add_item(line(quantity=1, price="50000", max_stock=None))

        assert store.get_shipping_cost("Tamanrasset") == Decimal("0")


class TestPersistence:

    def test_mutations_are_persisted(self, store, storage):
        store.add_item(line(quantity=2))

        data = json.loads(storage.get_item(STORAGE_KEY))
        assert data["items"][0]["product_id"] == "p-boiler"
        assert data["items"][0]["quantity"] == 2

    def test_reload_from_storage(self, store, storage):
        store.add_item(line(quantity=2))
        store.add_item(line("p-pump", max_stock=20, price="48000"))

        reloaded = CartStore(storage)

        assert [i.product_id for i in reloaded.items] == ["p-boiler", "p-pump"]
        assert reloaded.items[0].id == store.items[0].id
        assert reloaded.get_subtotal() == Decimal("50400")

    @pytest.mark.parametrize("raw", ["{not json", '{"other": []}', '{"items": [{"quantity": 1}]}'])
    def test_corrupted_storage_is_reset(self, storage, raw):
        storage.set_item(STORAGE_KEY, raw)

        store = CartStore(storage)

        assert store.items == []
        assert storage.get_item(STORAGE_KEY) is None

    def test_redis_storage(self, fake_redis):
        storage = RedisStorage("client-1", client=fake_redis)
        store = CartStore(storage)
        store.add_item(line(quantity=3))

        assert fake_redis.get(f"client-1:{STORAGE_KEY}") is not None
        assert CartStore(RedisStorage("client-1", client=fake_redis)).items[0].quantity == 3
        assert CartStore(RedisStorage("client-2", client=fake_redis)).items == []

        storage.remove_item(STORAGE_KEY)
        assert fake_redis.get(f"client-1:{STORAGE_KEY}") is None


class TestServer:

    def test_validate_updates_max_stock(self, storage):
        api = Mock()
        api.validate.return_value = {
            "is_valid": False,
            "errors": [
                {
                    "product_id": "p-boiler",
                    "product_name": "Chaudière murale",
                    "requested_quantity": 4,
                    "available_stock": 2,
                    "message": 'Stock insuffisant pour "Chaudière murale". Disponible: 2, Demandé: 4',
                }
            ],
        }
        store = CartStore(storage, api_client=api)
        store.add_item(line(quantity=4))

        result = store.validate_with_server()

        api.validate.assert_called_once_with([{"product_id": "p-boiler", "quantity": 4}])
        assert result["is_valid"] is False
        assert store.items[0].max_stock == 2
        assert store.error.startswith("Stock insuffisant")
        assert store.loading is False

    def test_validate_ok_clears_error(self, storage):
        api = Mock()
        api.validate.return_value = {"is_valid": True, "errors": []}
        store = CartStore(storage, api_client=api)
        store.add_item(line(quantity=9))

        store.validate_with_server()

        assert store.error is None

    def test_validate_network_error(self, storage):
        api = Mock()
        api.validate.side_effect = requests.ConnectionError("down")
        store = CartStore(storage, api_client=api)

        assert store.validate_with_server() is None
        assert store.error == NETWORK_ERROR
        assert store.loading is False

    def test_sync_replaces_lines(self, storage):
        api = Mock()
        api.sync.return_value = {
            "cart_id": 1,
            "items": [
                {"id": "srv-1", "product_id": "p-boiler", "name": "Chaudière murale", "sku": "CH-MUR-24",
                 "price": "1200.00", "quantity": 2, "max_stock": 5},
            ],
            "total": "2400.00",
            "item_count": 2,
        }
        store = CartStore(storage, api_client=api)
        store.add_item(line(quantity=2))

        assert store.sync_with_server() is True
        assert store.items[0].id == "srv-1"
        assert store.items[0].price == Decimal("1200.00")
        assert CartStore(storage).items[0].id == "srv-1"

    def test_sync_keeps_server_message(self, storage):
        api = Mock()
        api.sync.side_effect = http_error(400, {"success": False, "message": "Validation du panier échouée"})
        store = CartStore(storage, api_client=api)
        store.add_item(line())

        assert store.sync_with_server() is False
        assert store.error == "Validation du panier échouée"
        assert store.items[0].product_id == "p-boiler"

    def test_requires_api_client(self, store):
        with pytest.raises(RuntimeError):
            store.validate_with_server()
        with pytest.raises(RuntimeError):
            store.sync_with_server()
