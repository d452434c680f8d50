"""
FieldCareRule - Keeps every known field healthy, watered, scanned and harvested

Triggers:
- FIELD_REQUEST: a field asked for help
- DIAGNOSIS_RECEIVED: a disease was confirmed
- STOCK_CHANGED: a missing cure or water may have arrived

It also runs every cycle so intentions dropped for lack of resources come
back as soon as they are feasible.
"""

from typing import List

from .base import DeliberationRule
from ..beliefs import EventType, FieldBelief
from ..intentions import DIAGNOSTIC, Intention, IntentionType


class FieldCareRule(DeliberationRule):

    def __init__(self, beliefs, config):
        super().__init__(beliefs, config)
        self.priority = 9
        self.always_run = True
        self.triggers = {
            EventType.FIELD_REQUEST,
            EventType.DIAGNOSIS_RECEIVED,
            EventType.STOCK_CHANGED,
        }

    def check_preconditions(self) -> bool:
        return bool(self.beliefs.get_all_fields())

    def generate(self) -> List[Intention]:
        candidates = []
        for belief in self.beliefs.get_all_fields():
            candidates.extend(self.needs_of(belief))
        return candidates

    @staticmethod
    def needs_of(belief: FieldBelief) -> List[Intention]:
        """Intentions that answer the outstanding needs of one field"""
        needs = []

        if belief.diagnosed_disease is not None:
            needs.append(Intention(IntentionType.TREAT, belief.field_id, disease=belief.diagnosed_disease))

        if belief.needs_water:
            needs.append(Intention(IntentionType.WATER, belief.field_id, quantity=belief.water_amount))

        if belief.needs_diagnosis and belief.diagnosed_disease is None and belief.reported_disease is not None:
            needs.append(Intention(
                IntentionType.SCAN, belief.field_id,
                disease=belief.reported_disease,
                purpose=DIAGNOSTIC,
                data={'moisture': belief.moisture or 0, 'health': belief.health or 0},
            ))

        if belief.needs_scan:
            needs.append(Intention(IntentionType.SCAN, belief.field_id))

        if belief.needs_harvest:
            needs.append(Intention(IntentionType.HARVEST, belief.field_id))

        return needs
