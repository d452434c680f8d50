from concurrent.futures import ThreadPoolExecutor

import pytest

from farm_world.catalog import ItemType
from farm_world.inventory import Inventory


def test_add_respects_total_capacity():
    inventory = Inventory(capacity=10)

    assert inventory.add(ItemType.WATER, 8)
    assert not inventory.add(ItemType.PESTICIDE_A, 3)
    assert inventory.quantity(ItemType.PESTICIDE_A) == 0
    assert inventory.total() == 8
    assert inventory.free_capacity() == 2


def test_failed_operations_change_nothing():
    inventory = Inventory(capacity=20, balance=100.0, initial_stock={ItemType.WATER: 4})

    assert not inventory.remove(ItemType.WATER, 5)
    assert not inventory.remove(ItemType.WATER, 0)
    assert not inventory.add(ItemType.WATER, -1)
    assert not inventory.spend(150.0)
    assert not inventory.credit(-1.0)

    assert inventory.quantity(ItemType.WATER) == 4
    assert inventory.balance == 100.0


def test_take_up_to_returns_what_was_available():
    inventory = Inventory(initial_stock={ItemType.WATER: 2})

    assert inventory.take_up_to(ItemType.WATER, 3) == 2
    assert inventory.take_up_to(ItemType.WATER, 3) == 0
    assert inventory.quantity(ItemType.WATER) == 0


def test_balance_is_rounded_to_cents():
    inventory = Inventory(balance=100.0)

    assert inventory.spend(40.25)
    assert inventory.credit(0.1)
    assert inventory.balance == pytest.approx(59.85)
    assert inventory.snapshot()['balance'] == inventory.balance


def test_initial_stock_must_fit():
    with pytest.raises(ValueError):
        Inventory(capacity=5, initial_stock={ItemType.WATER: 6})
    with pytest.raises(ValueError):
        Inventory(capacity=0)


def test_concurrent_removals_never_oversell():
    inventory = Inventory(initial_stock={ItemType.WATER: 50})

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: inventory.remove(ItemType.WATER, 1), range(100)))

    assert sum(results) == 50
    assert inventory.quantity(ItemType.WATER) == 0
