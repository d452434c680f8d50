import asyncio

from farm_agents.communication.protocol import Performative
from farm_agents.config import BuyerSpec
from farm_agents.planner.negotiation import Offer, SecondPriceTracker, select_lowest_offer, settle_second_price
from farm_world.catalog import ItemType

from farm_helpers import build_farm, start_loops


def test_second_price_with_tied_top_bids():
    offers = [Offer('A', 50.0), Offer('B', 80.0), Offer('C', 80.0), Offer('D', 30.0)]

    winner, payment = settle_second_price(offers)

    assert winner is offers[1]
    assert payment == 80.0


def test_winner_pays_second_highest_bid():
    winner, payment = settle_second_price([Offer('A', 40.0), Offer('B', 90.0), Offer('C', 60.0)])

    assert winner.bidder == 'B'
    assert payment == 60.0


def test_single_bid_pays_its_own_price():
    tracker = SecondPriceTracker()
    tracker.observe(Offer('A', 42.0))

    assert tracker.best.bidder == 'A'
    assert tracker.payment == 42.0
    assert settle_second_price([]) is None


def test_lowest_affordable_offer_wins():
    offers = [Offer('A', 40.0), Offer('B', 25.0), Offer('C', 60.0)]

    assert select_lowest_offer(offers, balance=100.0).bidder == 'B'
    assert select_lowest_offer(offers, balance=20.0) is None
    assert select_lowest_offer([Offer('A', 30.0), Offer('B', 30.0)], balance=100.0).bidder == 'A'
    assert select_lowest_offer([Offer('A', 30.0)], balance=30.0).bidder == 'A'


def test_procurement_round_pays_cheapest_supplier():
    model = build_farm(fields=[])
    planner = model.planner
    start_balance = model.inventory.balance

    async def scenario():
        start_loops(model, model.suppliers)
        winner = await planner.contract_net.procure(ItemType.WATER, 5)
        delivery = await model.bus.receive(planner.name, timeout=1.0)
        await model.shutdown()
        return winner, delivery

    winner, delivery = asyncio.run(scenario())

    assert winner.bidder == 'Supplier-1'
    assert 40.0 <= winner.price <= 60.0
    assert model.inventory.balance == round(start_balance - winner.price, 2)
    assert delivery.performative is Performative.INFORM
    assert delivery.payload == 'DELIVERED:WATER:5'
    assert model.registry.get('Supplier-1').revenue == winner.price
    assert planner.contract_net.get_status() == {'rounds': 1, 'deals': 1, 'no_deals': 0}


def test_auction_sells_to_highest_bidder_at_second_price():
    model = build_farm(fields=[])
    planner = model.planner
    model.inventory.add(ItemType.CORN_CROP, 1)
    start_balance = model.inventory.balance

    async def scenario():
        start_loops(model, model.buyers)
        result = await planner.contract_net.auction(ItemType.CORN_CROP, 1)
        receipt = await model.bus.receive(planner.name, timeout=1.0)
        await model.shutdown()
        return result, receipt

    (winner, payment), receipt = asyncio.run(scenario())

    assert winner.bidder in ('Client-1', 'Client-2')
    assert payment <= winner.price
    assert model.inventory.quantity(ItemType.CORN_CROP) == 0
    assert model.inventory.balance == round(start_balance + payment, 2)
    assert receipt.payload == 'RECEIVED:CORN_CROP:1'
    assert model.registry.get(winner.bidder).budget == round(500.0 - payment, 2)


def test_auction_without_bids_keeps_the_stock():
    model = build_farm(fields=[], buyers=[BuyerSpec('Client-1', 40.0)])
    planner = model.planner
    model.inventory.add(ItemType.CORN_CROP, 1)
    start_balance = model.inventory.balance

    async def scenario():
        start_loops(model, model.buyers)
        result = await planner.contract_net.auction(ItemType.CORN_CROP, 1)
        await model.shutdown()
        return result

    assert asyncio.run(scenario()) is None
    assert model.inventory.quantity(ItemType.CORN_CROP) == 1
    assert model.inventory.balance == start_balance
    assert planner.contract_net.no_deals == 1
