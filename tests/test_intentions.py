from farm_agents.planner.intentions import DIAGNOSTIC, Intention, IntentionQueue, IntentionType
from farm_world.catalog import DiseaseType, ItemType


def _drain(queue):
    popped = []
    while True:
        intention = queue.pop()
        if intention is None:
            return popped
        popped.append(intention)


def test_duplicate_key_is_suppressed():
    queue = IntentionQueue()

    assert queue.offer(Intention(IntentionType.WATER, 1, quantity=75))
    assert not queue.offer(Intention(IntentionType.WATER, 1, quantity=80))

    assert len(queue) == 1
    assert queue.duplicates == 1
    assert queue.pop().quantity == 75


def test_lower_kind_ordinal_is_served_first():
    queue = IntentionQueue()
    queue.offer(Intention(IntentionType.BUY, item=ItemType.WATER, quantity=5))
    queue.offer(Intention(IntentionType.SCAN, 1))
    queue.offer(Intention(IntentionType.HARVEST, 2))
    queue.offer(Intention(IntentionType.SELL, item=ItemType.CORN_CROP, quantity=1))
    queue.offer(Intention(IntentionType.WATER, 3, quantity=40))
    queue.offer(Intention(IntentionType.TREAT, 4, disease=DiseaseType.APHIDS))

    kinds = [intention.kind for intention in _drain(queue)]

    assert kinds == [
        IntentionType.TREAT, IntentionType.WATER, IntentionType.SCAN,
        IntentionType.HARVEST, IntentionType.SELL, IntentionType.BUY,
    ]


def test_equal_priority_keeps_arrival_order():
    queue = IntentionQueue()
    for field_id in (3, 1, 2):
        queue.offer(Intention(IntentionType.WATER, field_id, quantity=50))

    assert [intention.field_id for intention in _drain(queue)] == [3, 1, 2]


def test_pop_keeps_key_pending_until_released():
    queue = IntentionQueue()
    intention = Intention(IntentionType.SCAN, 1)
    queue.offer(intention)

    assert queue.pop() is intention
    assert queue.is_pending(intention.key)
    assert not queue.offer(Intention(IntentionType.SCAN, 1))

    assert queue.release(intention.key)
    assert not queue.release(intention.key)
    assert queue.offer(Intention(IntentionType.SCAN, 1))


def test_push_back_goes_behind_its_peers():
    queue = IntentionQueue()
    queue.offer(Intention(IntentionType.WATER, 1, quantity=50))
    queue.offer(Intention(IntentionType.WATER, 2, quantity=50))

    first = queue.pop()
    queue.push_back(first)

    order = _drain(queue)
    assert [intention.field_id for intention in order] == [2, 1]
    assert order[1].attempts == 1
    assert queue.is_pending(first.key)


def test_diagnostic_scan_has_its_own_slot():
    queue = IntentionQueue()

    assert queue.offer(Intention(IntentionType.SCAN, 1))
    assert queue.offer(Intention(IntentionType.SCAN, 1, disease=DiseaseType.APHIDS, purpose=DIAGNOSTIC))
    assert queue.pending_keys() == {
        (IntentionType.SCAN, 1), (IntentionType.SCAN, (1, DIAGNOSTIC)),
    }


def test_trading_keys_use_the_item():
    buy = Intention(IntentionType.BUY, item=ItemType.WATER, quantity=5)
    assert buy.key == (IntentionType.BUY, ItemType.WATER)
    assert str(buy) == 'BUY 5x WATER'


def test_snapshot_lists_queue_in_execution_order():
    queue = IntentionQueue()
    queue.offer(Intention(IntentionType.HARVEST, 1))
    queue.offer(Intention(IntentionType.WATER, 2, quantity=60))
    queue.offer(Intention(IntentionType.SCAN, 3))

    snapshot = queue.snapshot(limit=2)

    assert [entry['kind'] for entry in snapshot] == ['WATER', 'SCAN']
    assert len(queue) == 3
