"""
Base deliberation rule

Every rule declares:
- triggers: which belief events wake it up
- check_preconditions: whether it has anything to say right now
- generate: the candidate intentions it proposes
"""

from abc import ABC, abstractmethod
from typing import List, Set

from ..beliefs import BeliefBase, Event, EventType
from ..intentions import Intention


class DeliberationRule(ABC):
    """
    Abstract base class for deliberation rules.

    A rule only proposes candidates. Filtering against the pending set and
    against current resources happens in the Deliberator.
    """

    def __init__(self, beliefs: BeliefBase, config):
        """
        Initialize the rule.

        Args:
            beliefs: The planner's BeliefBase
            config: Farm configuration
        """
        self.beliefs = beliefs
        self.config = config

        self.priority = 5  # Higher runs first (0-10)
        self.always_run = False
        self.triggers: Set[EventType] = set()

    def check_preconditions(self) -> bool:
        return True

    @abstractmethod
    def generate(self) -> List[Intention]:
        """Candidate intentions from the current beliefs"""

    def should_activate(self, event: Event) -> bool:
        return event.event_type in self.triggers

    def __repr__(self):
        return f"<{self.__class__.__name__} priority={self.priority}>"
