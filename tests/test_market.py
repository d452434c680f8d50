import asyncio

from farm_agents.communication.protocol import Envelope, FarmProtocol, Performative
from farm_agents.config import BuyerSpec
from farm_world.catalog import ItemType

from farm_helpers import build_farm


def _call(model, agent, performative, payload, conversation_id='cfp-1'):
    return _converse(model, agent, (performative, payload, conversation_id))[0]


def _converse(model, agent, *messages, timeout=1.0):
    """Send (performative, payload, conversation_id) messages in turn and collect each answer"""
    async def scenario():
        answers = []
        for performative, payload, conversation_id in messages:
            await agent.execute(Envelope('Planner', agent.name, performative, payload, conversation_id))
            answers.append(await model.bus.receive('Planner', timeout=timeout))
        await model.shutdown()
        return answers
    return asyncio.run(scenario())


def test_supplier_refuses_items_it_does_not_stock():
    model = build_farm(fields=[])
    supplier = model.registry.get('Supplier-2')

    answer = _call(model, supplier, Performative.CFP, FarmProtocol.supply_cfp(ItemType.WATER, 5))

    assert answer.performative is Performative.REFUSE
    assert answer.payload == 'NOT_SUPPORTED:WATER'


def test_supplier_quotes_within_spread():
    model = build_farm(fields=[])
    supplier = model.registry.get('Supplier-2')

    answer = _call(model, supplier, Performative.CFP, FarmProtocol.supply_cfp(ItemType.FUNGICIDE_X, 2))

    assert answer.performative is Performative.PROPOSE
    verb, item, quantity, price = answer.payload.split(':')
    assert (verb, item, quantity) == ('PROPOSE', 'FUNGICIDE_X', '2')
    assert 64.0 <= float(price) <= 96.0
    assert 'cfp-1' in supplier.open_offers


def test_buyer_refuses_supplies():
    model = build_farm(fields=[])
    buyer = model.registry.get('Client-1')

    answer = _call(model, buyer, Performative.CFP, FarmProtocol.buy_cfp(ItemType.WATER, 1))

    assert answer.payload == 'NOT_SUPPORTED:WATER'


def test_buyer_with_small_budget_refuses():
    model = build_farm(fields=[], buyers=[BuyerSpec('Client-1', 50.0)])
    buyer = model.registry.get('Client-1')

    answer = _call(model, buyer, Performative.CFP, FarmProtocol.buy_cfp(ItemType.CORN_CROP, 1))

    assert answer.performative is Performative.REFUSE
    assert answer.payload == 'INSUFFICIENT_BUDGET'


def test_bid_is_capped_by_budget_share():
    model = build_farm(fields=[], buyers=[BuyerSpec('Client-1', 100.0)])
    buyer = model.registry.get('Client-1')

    assert buyer.bid_for(ItemType.CORN_CROP, 10) == 80.0


def test_buyer_pays_on_accept():
    model = build_farm(fields=[])
    buyer = model.registry.get('Client-1')

    bid, answer = _converse(
        model, buyer,
        (Performative.CFP, FarmProtocol.buy_cfp(ItemType.RICE_CROP, 2), 'cfp-1'),
        (Performative.ACCEPT_PROPOSAL, FarmProtocol.accept(ItemType.RICE_CROP, 2, 120.5), 'cfp-1'),
    )

    assert bid.performative is Performative.PROPOSE
    assert answer.performative is Performative.INFORM
    assert answer.payload == 'RECEIVED:RICE_CROP:2'
    assert buyer.budget == 379.5
    assert buyer.purchased == {ItemType.RICE_CROP: 2}
    assert buyer.open_offers == {}


def test_supplier_delivers_what_it_quoted():
    model = build_farm(fields=[])
    supplier = model.registry.get('Supplier-1')

    _, answer = _converse(
        model, supplier,
        (Performative.CFP, FarmProtocol.supply_cfp(ItemType.WATER, 5), 'cfp-1'),
        (Performative.ACCEPT_PROPOSAL, FarmProtocol.accept(ItemType.WATER, 5, 48.0), 'cfp-1'),
    )

    assert answer.payload == 'DELIVERED:WATER:5'
    assert supplier.revenue == 48.0
    assert supplier.deals == 1


def test_supplier_ignores_accept_without_matching_offer():
    model = build_farm(fields=[])
    supplier = model.registry.get('Supplier-1')

    unknown, proposal, mismatched = _converse(
        model, supplier,
        (Performative.ACCEPT_PROPOSAL, FarmProtocol.accept(ItemType.WATER, 5, 48.0), 'cfp-9'),
        (Performative.CFP, FarmProtocol.supply_cfp(ItemType.WATER, 5), 'cfp-1'),
        (Performative.ACCEPT_PROPOSAL, FarmProtocol.accept(ItemType.PESTICIDE_A, 5, 48.0), 'cfp-1'),
        timeout=0.05,
    )

    assert unknown is None
    assert proposal.performative is Performative.PROPOSE
    assert mismatched is None
    assert supplier.deals == 0
    assert supplier.revenue == 0.0
    assert 'cfp-1' in supplier.open_offers
