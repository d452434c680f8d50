"""
SalesRule - Auctions harvested crops held in stock

Runs after a harvest or a stock change. A round that ended without a
sale does not wake it up again; unsold crops wait for the next harvest.
"""

from typing import List

from farm_world.catalog import ItemType
from .base import DeliberationRule
from ..beliefs import Event, EventType
from ..intentions import Intention, IntentionType


class SalesRule(DeliberationRule):

    def __init__(self, beliefs, config):
        super().__init__(beliefs, config)
        self.priority = 4
        self.triggers = {
            EventType.MISSION_COMPLETED,
            EventType.STOCK_CHANGED,
            EventType.NEGOTIATION_FINISHED,
        }

    def should_activate(self, event: Event) -> bool:
        if event.event_type is EventType.MISSION_COMPLETED:
            return event.data.get('mission') == 'harvest'
        if event.event_type is EventType.NEGOTIATION_FINISHED:
            return bool(event.data.get('deal'))
        return super().should_activate(event)

    def check_preconditions(self) -> bool:
        return any(self.beliefs.inventory.has(item) for item in ItemType.crops())

    def generate(self) -> List[Intention]:
        inventory = self.beliefs.inventory
        return [
            Intention(IntentionType.SELL, item=item, quantity=inventory.quantity(item))
            for item in ItemType.crops()
            if inventory.has(item)
        ]
