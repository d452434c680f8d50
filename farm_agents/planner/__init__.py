"""
BDI planner of the farm

- BeliefBase: what the planner believes about fields, workers and stock
- IntentionQueue: stable priority queue with pending-set de-duplication
- Deliberator: runs deliberation rules and admits feasible intentions
- ContractNet: procurement and sale negotiation rounds
- PlannerAgent: the agent that drives all of the above
"""

from .beliefs import BeliefBase
from .intentions import Intention, IntentionQueue, IntentionType
from .control import Deliberator
from .negotiation import ContractNet, Offer, SecondPriceTracker, select_lowest_offer, settle_second_price
from .planner_agent import PlannerAgent

__all__ = [
    'BeliefBase', 'Intention', 'IntentionQueue', 'IntentionType', 'Deliberator', 'ContractNet',
    'Offer', 'SecondPriceTracker', 'select_lowest_offer', 'settle_second_price', 'PlannerAgent',
]
