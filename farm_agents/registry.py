"""
Agent Registry

Explicit name -> agent lookup owned by the farm model. Anything that needs
to find a live agent (the planner choosing workers or counterparties, a
dashboard action) receives the registry instead of relying on globals.
"""

import threading
from typing import Dict, List

from farm_world.catalog import ItemType
from .exceptions import UnknownEndpoint


class AgentRegistry:
    """Registry of live agents by name and role"""

    def __init__(self):
        self._lock = threading.RLock()
        self._agents: Dict[str, object] = {}

    def register(self, agent) -> None:
        """
        Register an agent under its name.

        Raises:
            ValueError: if the name is already taken by another agent
        """
        with self._lock:
            existing = self._agents.get(agent.name)
            if existing is not None and existing is not agent:
                raise ValueError(f"agent name already registered: {agent.name}")
            self._agents[agent.name] = agent

    def get(self, name: str):
        with self._lock:
            agent = self._agents.get(name)
        if agent is None:
            raise UnknownEndpoint(name)
        return agent

    def names(self) -> List[str]:
        with self._lock:
            return list(self._agents)

    def by_role(self, role: str) -> List[object]:
        """Agents of a role, in registration order"""
        with self._lock:
            return [a for a in self._agents.values() if getattr(a, 'role', None) == role]

    def suppliers_for(self, item: ItemType) -> List[object]:
        """Suppliers that advertise an item"""
        return [a for a in self.by_role('supplier') if item in getattr(a, 'items', ())]

    def buyers(self) -> List[object]:
        return self.by_role('buyer')

    def clear(self) -> None:
        with self._lock:
            self._agents.clear()
