"""
Market counterparties - suppliers and buyers answering calls for proposals

Suppliers quote supplies they stock and deliver on acceptance. Buyers bid
for harvested crops within their budget and pay on acceptance.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from farm_world.catalog import ItemType
from .base_agent import BaseAgent
from ..communication.protocol import Command, Envelope, FarmProtocol, Performative, Verb

logger = logging.getLogger(__name__)

PRICE_SPREAD = (0.8, 1.2)
MIN_BUYER_BUDGET = 50.0
BID_BUDGET_SHARE = 0.8


class MarketAgent(BaseAgent):
    """Common bookkeeping for negotiation participants"""

    def setup(self, name: str):
        super().setup(name)
        # conversation_id -> (item, quantity, price)
        self.open_offers: Dict[str, Tuple[ItemType, int, float]] = {}
        self.deals = 0
        self.rejections = 0

        self.dispatcher.register_handler(Verb.REJECT, self._on_reject)

    def quote(self, item: ItemType, quantity: int) -> float:
        """Base price times quantity with a random spread"""
        return round(item.base_price * quantity * self.model.random.uniform(*PRICE_SPREAD), 2)

    def take_offer(self, envelope: Envelope, command: Command) -> Optional[Tuple[ItemType, int, float]]:
        """
        Close the open offer an ACCEPT refers to.

        Returns:
            The offer, or None if this agent never made it (the ACCEPT is ignored)
        """
        offer = self.open_offers.get(envelope.conversation_id)
        if offer is None or offer[:2] != (command.arg('item'), command.arg('quantity')):
            logger.warning("%s ignoring ACCEPT %s from %s: no matching offer",
                           self.name, command.raw, envelope.sender)
            return None
        return self.open_offers.pop(envelope.conversation_id)

    def _on_reject(self, envelope: Envelope, command: Command):
        self.open_offers.pop(envelope.conversation_id, None)
        self.rejections += 1
        logger.debug("%s offer rejected by %s", self.name, envelope.sender)

    def snapshot(self):
        return {
            'name': self.name,
            'role': self.role,
            'status': self.status,
            'deals': self.deals,
            'open_offers': len(self.open_offers),
        }


class SupplierAgent(MarketAgent):
    """Sells supplies (water and chemicals)"""

    role = 'supplier'

    def setup(self, name: str, items: Iterable[ItemType] = ()):
        super().setup(name)
        self.items = frozenset(items)
        self.revenue = 0.0

        self.dispatcher.register_handler(Verb.SUPPLY, self._on_call_for_proposals)
        self.dispatcher.register_handler(Verb.ACCEPT, self._on_accept)

    def supports(self, item: ItemType) -> bool:
        return item in self.items

    async def _on_call_for_proposals(self, envelope: Envelope, command: Command):
        item = command.arg('item')
        quantity = command.arg('quantity')

        if not self.supports(item):
            await self.reply(envelope, Performative.REFUSE, FarmProtocol.not_supported(item))
            return

        price = self.quote(item, quantity)
        self.open_offers[envelope.conversation_id] = (item, quantity, price)
        await self.reply(envelope, Performative.PROPOSE, FarmProtocol.propose(item, quantity, price))
        logger.info("%s proposes %dx %s for %.2f", self.name, quantity, item.name, price)

    async def _on_accept(self, envelope: Envelope, command: Command):
        if self.take_offer(envelope, command) is None:
            return

        item = command.arg('item')
        quantity = command.arg('quantity')
        self.deals += 1
        self.revenue = round(self.revenue + command.arg('price'), 2)
        await self.reply(envelope, Performative.INFORM, FarmProtocol.delivered(item, quantity))
        logger.info("%s delivered %dx %s to %s", self.name, quantity, item.name, envelope.sender)


class BuyerAgent(MarketAgent):
    """Buys harvested crops through sealed bids"""

    role = 'buyer'

    def setup(self, name: str, budget: float = 500.0):
        super().setup(name)
        self.budget = float(budget)
        self.purchased: Dict[ItemType, int] = {}

        self.dispatcher.register_handler(Verb.BUY, self._on_call_for_bids)
        self.dispatcher.register_handler(Verb.ACCEPT, self._on_accept)

    def bid_for(self, item: ItemType, quantity: int) -> Optional[float]:
        """Bid price, capped to a share of the budget (None if the budget is too low)"""
        if self.budget <= MIN_BUYER_BUDGET:
            return None
        return min(self.quote(item, quantity), round(self.budget * BID_BUDGET_SHARE, 2))

    async def _on_call_for_bids(self, envelope: Envelope, command: Command):
        item = command.arg('item')
        quantity = command.arg('quantity')

        if not item.is_crop:
            await self.reply(envelope, Performative.REFUSE, FarmProtocol.not_supported(item))
            return

        price = self.bid_for(item, quantity)
        if price is None:
            await self.reply(envelope, Performative.REFUSE, FarmProtocol.insufficient_budget())
            return

        self.open_offers[envelope.conversation_id] = (item, quantity, price)
        await self.reply(envelope, Performative.PROPOSE, FarmProtocol.bid(item, quantity, price))
        logger.info("%s bids %.2f for %dx %s", self.name, price, quantity, item.name)

    async def _on_accept(self, envelope: Envelope, command: Command):
        if self.take_offer(envelope, command) is None:
            return

        item = command.arg('item')
        quantity = command.arg('quantity')
        payment = command.arg('price')
        if payment > self.budget:
            logger.warning("%s pays %.2f with only %.2f left", self.name, payment, self.budget)
        self.budget = round(max(0.0, self.budget - payment), 2)
        self.purchased[item] = self.purchased.get(item, 0) + quantity
        self.deals += 1

        await self.reply(envelope, Performative.INFORM, FarmProtocol.received(item, quantity))
        logger.info("%s bought %dx %s for %.2f", self.name, quantity, item.name, payment)
