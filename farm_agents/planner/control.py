"""
Deliberator - Turns beliefs into intentions

Decides which deliberation rules run in a cycle, collects their candidate
intentions and admits the survivors into the intention queue.
"""

import logging
from typing import Dict, List

from farm_world.catalog import ItemType
from .beliefs import BeliefBase, EventType
from .intentions import Intention, IntentionQueue, IntentionType

logger = logging.getLogger(__name__)


class Deliberator:
    """
    Deliberation control.

    Responsibilities:
    - Pick rules woken up by recent events (plus always-run rules)
    - Run them in priority order
    - Drop candidates already pending or infeasible with current resources
    - Offer the rest to the intention queue
    """

    def __init__(self, beliefs: BeliefBase, intentions: IntentionQueue, config):
        """
        Initialize the Deliberator.

        Args:
            beliefs: The planner's BeliefBase
            intentions: Queue receiving admitted intentions
            config: Farm configuration
        """
        self.beliefs = beliefs
        self.intentions = intentions
        self.config = config
        self.rules = []
        self.rules_by_trigger: Dict[EventType, list] = {}

        self.max_rules_per_cycle = 10
        self._last_seq = 0

        # Statistics
        self.cycles = 0
        self.admitted = 0
        self.rejected_infeasible = 0

    def setup(self):
        """Instantiate the default rules"""
        from .rules import FieldCareRule, RestockRule, SalesRule

        self.rules = [
            FieldCareRule(self.beliefs, self.config),
            RestockRule(self.beliefs, self.config),
            SalesRule(self.beliefs, self.config),
        ]
        self._build_trigger_map()

    def _build_trigger_map(self):
        self.rules_by_trigger = {event_type: [] for event_type in EventType}
        for rule in self.rules:
            for event_type in rule.triggers:
                self.rules_by_trigger[event_type].append(rule)

    def deliberate(self) -> List[Intention]:
        """
        Run one deliberation cycle.

        Returns:
            Intentions admitted into the queue this cycle
        """
        self.cycles += 1
        events = self.beliefs.events_since(self._last_seq)
        self._last_seq = self.beliefs.last_seq

        active = set()
        for event in events:
            for rule in self.rules_by_trigger.get(event.event_type, ()):
                if rule.should_activate(event):
                    active.add(rule)
        for rule in self.rules:
            if rule.always_run:
                active.add(rule)

        candidates: List[Intention] = []
        for rule in sorted(active, key=lambda r: r.priority, reverse=True)[:self.max_rules_per_cycle]:
            if not rule.check_preconditions():
                continue
            try:
                candidates.extend(rule.generate())
            except Exception:
                logger.exception("Error executing %s", rule.__class__.__name__)

        return self.admit(candidates)

    def admit(self, candidates: List[Intention]) -> List[Intention]:
        """Filter candidates by pending key and feasibility, then enqueue"""
        admitted = []
        for candidate in candidates:
            if self.intentions.is_pending(candidate.key):
                continue
            if not self.is_feasible(candidate):
                self.rejected_infeasible += 1
                logger.debug("Deferring infeasible intention %s", candidate)
                continue
            if self.intentions.offer(candidate):
                admitted.append(candidate)
                self.admitted += 1
                logger.info("Added intention: %s", candidate)
        return admitted

    def consider(self, intention: Intention) -> bool:
        """Admit a single candidate (used for inbound field requests)"""
        return bool(self.admit([intention]))

    def is_feasible(self, intention: Intention) -> bool:
        """Whether current resources allow the intention at all"""
        inventory = self.beliefs.inventory

        if intention.kind is IntentionType.WATER:
            return inventory.has(ItemType.WATER)
        if intention.kind is IntentionType.TREAT:
            return intention.disease is not None and inventory.has(intention.disease.cure)
        if intention.kind is IntentionType.HARVEST:
            return inventory.free_capacity() >= 1
        if intention.kind is IntentionType.SELL:
            return intention.item is not None and inventory.has(intention.item, max(1, intention.quantity))
        if intention.kind is IntentionType.BUY:
            return intention.quantity > 0 and inventory.free_capacity() >= 1 and inventory.balance > 0
        return True

    def get_status(self) -> Dict:
        return {
            'cycles': self.cycles,
            'admitted': self.admitted,
            'rejected_infeasible': self.rejected_infeasible,
            'rules': [
                {
                    'name': rule.__class__.__name__,
                    'priority': rule.priority,
                    'always_run': rule.always_run,
                    'triggers': sorted(t.value for t in rule.triggers),
                }
                for rule in self.rules
            ],
        }
