import json

from app.client.comparison import ComparisonList, STORAGE_KEY
from app.client.storage import MemoryStorage


def product(product_id):
    return {"product_id": product_id, "name": f"Produit {product_id}"}


def test_toggle_adds_then_removes():
    comparison = ComparisonList(MemoryStorage())

    assert comparison.toggle(product("a")) is True
    assert comparison.contains("a")
    assert comparison.toggle(product("a")) is False
    assert not comparison.contains("a")


def test_bounded_to_four_with_fifo_eviction():
    comparison = ComparisonList(MemoryStorage())

    for pid in "abcde":
        comparison.toggle(product(pid))

    assert comparison.product_ids() == ["b", "c", "d", "e"]


def test_remove_and_clear():
    comparison = ComparisonList(MemoryStorage())
    comparison.toggle(product("a"))
    comparison.toggle(product("b"))

    comparison.remove("a")
    assert comparison.product_ids() == ["b"]

    comparison.clear()
    assert comparison.product_ids() == []


def test_persisted_and_reloaded():
    storage = MemoryStorage()
    comparison = ComparisonList(storage)
    comparison.toggle(product("a"))
    comparison.toggle(product("b"))

    assert [i["product_id"] for i in json.loads(storage.get_item(STORAGE_KEY))] == ["a", "b"]
    assert ComparisonList(storage).product_ids() == ["a", "b"]


def test_remove_keeps_bound():
    comparison = ComparisonList(MemoryStorage(), max_items=2)
    comparison.toggle(product("a"))
    comparison.remove("x")
    comparison.toggle(product("b"))
    comparison.toggle(product("c"))

    assert comparison.product_ids() == ["b", "c"]


def test_corrupted_storage_is_reset():
    storage = MemoryStorage()
    storage.set_item(STORAGE_KEY, "[broken")

    comparison = ComparisonList(storage)

    assert comparison.product_ids() == []
    assert storage.get_item(STORAGE_KEY) is None
