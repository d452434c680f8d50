"""
RestockRule - Buys supplies the farm is missing

Three reasons to buy an item:
- its stock is below the configured minimum
- a diagnosed field needs a cure that is not in stock
- a thirsty field is waiting and there is no water
"""

from typing import Dict, List

from farm_world.catalog import ItemType
from .base import DeliberationRule
from ..intentions import Intention, IntentionType


class RestockRule(DeliberationRule):

    def __init__(self, beliefs, config):
        super().__init__(beliefs, config)
        self.priority = 6
        self.always_run = True
        self.minimum_stock: Dict[ItemType, int] = {
            ItemType[name]: quantity for name, quantity in config.minimum_stock.items()
        }

    def generate(self) -> List[Intention]:
        inventory = self.beliefs.inventory
        quantity = self.purchase_quantity()
        if quantity <= 0:
            return []

        wanted: List[ItemType] = []

        for item, minimum in self.minimum_stock.items():
            if inventory.quantity(item) < minimum:
                wanted.append(item)

        for belief in self.beliefs.get_all_fields():
            if belief.diagnosed_disease is not None and not inventory.has(belief.diagnosed_disease.cure):
                wanted.append(belief.diagnosed_disease.cure)
            if belief.needs_water and not inventory.has(ItemType.WATER):
                wanted.append(ItemType.WATER)

        seen = set()
        candidates = []
        for item in wanted:
            if item in seen:
                continue
            seen.add(item)
            candidates.append(Intention(IntentionType.BUY, item=item, quantity=quantity))
        return candidates

    def purchase_quantity(self) -> int:
        """Restock quantity, limited by the free storage"""
        return min(self.config.restock_quantity, self.beliefs.inventory.free_capacity())
