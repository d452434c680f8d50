"""
Contract-net negotiation

Two directions share one skeleton (call for proposals, collect replies
until the deadline, settle, accept/reject fan-out):
- Procurement: the lowest price the balance can pay wins.
- Sale: sealed bids, highest bidder wins and pays the second-highest bid.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from farm_world.catalog import ItemType
from ..communication.protocol import (
    Envelope, FarmProtocol, Performative, Verb, new_conversation_id, parse_payload,
)
from ..exceptions import MalformedMessage

logger = logging.getLogger(__name__)


@dataclass
class Offer:
    """A priced answer to a call for proposals"""
    bidder: str
    price: float
    quantity: int = 0


def select_lowest_offer(offers: Iterable[Offer], balance: float) -> Optional[Offer]:
    """
    Procurement winner.

    Only offers the balance can pay are eligible. Among equal prices the
    first one received wins.
    """
    best = None
    for offer in offers:
        if offer.price > balance:
            continue
        if best is None or offer.price < best.price:
            best = offer
    return best


class SecondPriceTracker:
    """
    Running highest and second-highest bid.

    Bids are observed in arrival order; a bid equal to the current best
    does not take the top spot but does become the second price.
    """

    def __init__(self):
        self.best: Optional[Offer] = None
        self.second_price: Optional[float] = None
        self.bids = 0

    def observe(self, offer: Offer):
        self.bids += 1
        if self.best is None:
            self.best = offer
        elif offer.price > self.best.price:
            self.second_price = self.best.price
            self.best = offer
        elif self.second_price is None or offer.price > self.second_price:
            self.second_price = offer.price

    @property
    def payment(self) -> Optional[float]:
        """Second-highest bid, or the winner's own bid when it was the only one"""
        if self.best is None:
            return None
        if self.bids >= 2 and self.second_price is not None:
            return self.second_price
        return self.best.price


def settle_second_price(offers: Iterable[Offer]) -> Optional[Tuple[Offer, float]]:
    """Winner and payment of a sealed-bid second-price auction (None without bids)"""
    tracker = SecondPriceTracker()
    for offer in offers:
        tracker.observe(offer)
    if tracker.best is None:
        return None
    return tracker.best, tracker.payment


@dataclass
class Proposal:
    """One negotiation round, discarded once settled"""
    conversation_id: str
    requester: str
    item: ItemType
    quantity: int
    deadline: float
    participants: List[str]
    offers: List[Offer] = field(default_factory=list)
    refusals: Dict[str, str] = field(default_factory=dict)

    def matches(self, envelope: Envelope) -> bool:
        return (
            envelope.conversation_id == self.conversation_id
            and envelope.performative in (Performative.PROPOSE, Performative.REFUSE)
        )

    @property
    def answered(self) -> bool:
        return len(self.offers) + len(self.refusals) >= len(self.participants)


class ContractNet:
    """
    Contract-net initiator for a planner.

    Rounds block only the task that runs them. Replies after the deadline
    are discarded when the conversation is closed.
    """

    def __init__(self, agent):
        """
        Args:
            agent: Initiating agent (provides name, bus, registry, inventory, config)
        """
        self.agent = agent

        # Statistics
        self.rounds = 0
        self.deals = 0
        self.no_deals = 0

    @property
    def inventory(self):
        return self.agent.inventory

    # ========== PROCUREMENT ==========

    async def procure(self, item: ItemType, quantity: int) -> Optional[Offer]:
        """
        Buy `quantity` of `item` from the cheapest affordable supplier.

        Returns:
            The accepted offer, or None if the round ended with no purchase
        """
        suppliers = [a.name for a in self.agent.registry.suppliers_for(item)]
        if not suppliers:
            logger.warning("No suppliers for %s", item.name)
            return None

        proposal = await self._open_round(FarmProtocol.supply_cfp(item, quantity), item, quantity, suppliers)
        await self._collect(proposal, Verb.PROPOSE)

        winner = select_lowest_offer(proposal.offers, self.inventory.balance)
        if winner is not None and not self.inventory.spend(winner.price):
            logger.warning("Balance changed during round, cannot pay %.2f", winner.price)
            winner = None

        await self._settle(proposal, winner, winner.price if winner else None)
        return winner

    # ========== SALE ==========

    async def auction(self, item: ItemType, quantity: int) -> Optional[Tuple[Offer, float]]:
        """
        Sell `quantity` of `item` to the highest bidder at the second price.

        Returns:
            (winning offer, payment), or None if nothing was sold
        """
        buyers = [a.name for a in self.agent.registry.buyers()]
        if not buyers:
            logger.warning("No buyers for %s", item.name)
            return None

        tracker = SecondPriceTracker()
        proposal = await self._open_round(FarmProtocol.buy_cfp(item, quantity), item, quantity, buyers)
        await self._collect(proposal, Verb.BID, on_offer=tracker.observe)

        winner, payment = tracker.best, tracker.payment
        if winner is not None:
            if self.inventory.remove(item, quantity):
                self.inventory.credit(payment)
            else:
                logger.warning("Stock of %s changed during auction, sale cancelled", item.name)
                winner = None

        await self._settle(proposal, winner, payment)
        return (winner, payment) if winner else None

    # ========== ROUND SKELETON ==========

    async def _open_round(self, payload: str, item: ItemType, quantity: int,
                          participants: List[str]) -> Proposal:
        loop = asyncio.get_running_loop()
        self.rounds += 1
        proposal = Proposal(
            conversation_id=new_conversation_id(payload.split(':', 1)[0].lower()),
            requester=self.agent.name,
            item=item,
            quantity=quantity,
            deadline=loop.time() + self.agent.config.seconds(self.agent.config.negotiation_deadline),
            participants=participants,
        )

        for participant in participants:
            await self.agent.send(participant, Performative.CFP, payload, proposal.conversation_id)

        logger.info("Sent CFP %s to %d participants", payload, len(participants))
        await self._market_event('cfp', proposal, participants=participants)
        return proposal

    async def _collect(self, proposal: Proposal, expected: Verb,
                       on_offer: Optional[Callable[[Offer], None]] = None):
        """Collect PROPOSE/REFUSE replies until the deadline or until everyone answered"""
        loop = asyncio.get_running_loop()

        while not proposal.answered:
            remaining = proposal.deadline - loop.time()
            if remaining <= 0:
                break
            envelope = await self.agent.bus.receive(self.agent.name, match=proposal.matches, timeout=remaining)
            if envelope is None:
                break
            if envelope.sender not in proposal.participants:
                continue

            try:
                command = parse_payload(envelope.payload)
            except MalformedMessage as e:
                logger.warning("Malformed reply from %s: %s", envelope.sender, e)
                proposal.refusals[envelope.sender] = envelope.payload
                continue

            if (envelope.performative is Performative.PROPOSE and command.verb is expected
                    and command.arg('item') is proposal.item):
                offer = Offer(envelope.sender, command.arg('price'), command.arg('quantity'))
                proposal.offers.append(offer)
                if on_offer:
                    on_offer(offer)
                logger.debug("%s offered %.2f", offer.bidder, offer.price)
            else:
                proposal.refusals[envelope.sender] = command.raw
                logger.debug("%s refused: %s", envelope.sender, command.raw)

    async def _settle(self, proposal: Proposal, winner: Optional[Offer], price: Optional[float]):
        """ACCEPT the winner, REJECT every other bidder and close the round"""
        for offer in proposal.offers:
            if offer is winner:
                payload = FarmProtocol.accept(proposal.item, proposal.quantity, price)
                await self.agent.send(offer.bidder, Performative.ACCEPT_PROPOSAL, payload, proposal.conversation_id)
            else:
                await self.agent.send(offer.bidder, Performative.REJECT_PROPOSAL, FarmProtocol.reject(),
                                      proposal.conversation_id)

        self.agent.bus.close_conversation(self.agent.name, proposal.conversation_id)

        if winner is None:
            self.no_deals += 1
            logger.info("No deal for %dx %s (%d offers)", proposal.quantity, proposal.item.name,
                        len(proposal.offers))
            await self._market_event('no_deal', proposal, offers=len(proposal.offers))
        else:
            self.deals += 1
            logger.info("Accepted %s for %dx %s at %.2f", winner.bidder, proposal.quantity,
                        proposal.item.name, price)
            await self._market_event('accepted', proposal, winner=winner.bidder, price=price,
                                     offers=len(proposal.offers))

    async def _market_event(self, stage: str, proposal: Proposal, **details):
        broadcaster = self.agent.broadcaster
        if broadcaster:
            await broadcaster.send_market_event(
                stage, proposal.item.name, proposal.quantity,
                conversation_id=proposal.conversation_id, **details
            )

    def get_status(self) -> Dict[str, int]:
        return {'rounds': self.rounds, 'deals': self.deals, 'no_deals': self.no_deals}
