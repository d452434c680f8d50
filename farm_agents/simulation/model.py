"""
FarmModel - AgentPy model hosting the whole farm

This is the main simulation model that coordinates:
- Agent creation (planner, fields, workers, suppliers, buyers, weather)
- Shared collaborators (bus, registry, inventory, mobility, broadcaster)
- Concurrent execution of every agent loop
- Status reporting
"""

import asyncio
import logging
import random
from typing import Any, Dict, List

import agentpy as ap

from farm_world.catalog import CropType, ItemType
from farm_world.inventory import Inventory
from ..agents_core import BuyerAgent, FieldAgent, SupplierAgent, WeatherAgent
from ..agents_core.mobility import LocalMobility
from ..agents_core.worker_agent import WORKER_CLASSES, WORKER_NAME_PREFIX
from ..communication import MessageBus, StateBroadcaster
from ..config import FarmConfig, WORKER_ROLES
from ..planner import PlannerAgent
from ..registry import AgentRegistry

logger = logging.getLogger(__name__)


class FarmModel(ap.Model):
    """
    Multi-agent farm model.

    Parameters (``self.p``):
        config: FarmConfig or plain dict (defaults to the demo farm)
        seed: Seed of the shared random source (defaults to ``config.seed``)
        farm_id: Identifier used for the dashboard group
        send_updates: Whether dashboard events are published
        bus: Optional MessageBus (for example over a networked channel layer)
    """

    def setup(self):
        """Initialize the model"""
        config = self.p.get('config') or FarmConfig()
        if isinstance(config, dict):
            config = FarmConfig.from_dict(config)
        self.config = config

        seed = self.p.get('seed', config.seed)
        self.random = random.Random(seed)
        self.farm_id = str(self.p.get('farm_id', 'default'))

        # Shared collaborators
        self.bus = self.p.get('bus') or MessageBus()
        self.registry = AgentRegistry()
        self.inventory = Inventory(
            capacity=config.inventory_capacity,
            balance=config.initial_balance,
            initial_stock={ItemType[name]: qty for name, qty in config.initial_stock.items()},
        )
        self.mobility = LocalMobility(config.seconds(config.travel_time))

        send_updates = self.p.get('send_updates', True)
        self.broadcaster = StateBroadcaster(self.farm_id, self.bus.channel_layer) if send_updates else None

        # Create agents
        self.planner = PlannerAgent(self)
        self.fields = ap.AgentList(self, [])
        self.agents = ap.AgentList(self, [self.planner])

        for spec in config.fields:
            self.register_field(spec.field_id, CropType[spec.crop])

        workers = []
        for role in WORKER_ROLES:
            cls = WORKER_CLASSES[role]
            for index in range(1, config.workers.get(role, 0) + 1):
                workers.append(cls(self, name=f'{WORKER_NAME_PREFIX[role]}-{index}'))
        self.workers = ap.AgentList(self, workers)

        self.suppliers = ap.AgentList(self, [
            SupplierAgent(self, name=spec.name, items=[ItemType[item] for item in spec.items])
            for spec in config.suppliers
        ])
        self.buyers = ap.AgentList(self, [
            BuyerAgent(self, name=spec.name, budget=spec.budget) for spec in config.buyers
        ])

        self.weather = WeatherAgent(self) if config.weather_enabled else None
        if self.weather is not None:
            self.agents.append(self.weather)

        for agent in list(self.workers) + list(self.suppliers) + list(self.buyers):
            self.agents.append(agent)
        self.planner.sync_workers()

        # Runtime state
        self.running = False
        self.elapsed = 0.0
        self._loops: List[asyncio.Task] = []

    def register_field(self, field_id: int, crop: CropType, **initial) -> FieldAgent:
        """
        Add a field to the farm (also while the simulation runs).

        Args:
            field_id: Field identifier (unique)
            crop: Crop planted on the field
            **initial: Initial FieldState values (moisture, health, ...)
        """
        field_agent = FieldAgent(self, field_id=field_id, crop=crop, planner=self.planner.name, **initial)
        self.fields.append(field_agent)
        self.agents.append(field_agent)
        self.planner.beliefs.register_field(field_id, crop)

        if getattr(self, 'running', False):
            self._loops.append(asyncio.get_running_loop().create_task(field_agent.run(), name=field_agent.name))
        logger.info("Registered %s (%s)", field_agent.name, crop.name)
        return field_agent

    # ========== EXECUTION ==========

    async def simulate(self, duration: float) -> Dict[str, Any]:
        """
        Run every agent loop for `duration` time units.

        Returns:
            Final status (see get_status)
        """
        loop = asyncio.get_running_loop()
        await self.bus.start()

        if self.broadcaster:
            await self.broadcaster.send_simulation_started(self.registry.names())

        self.running = True
        self._loops = [loop.create_task(agent.run(), name=agent.name) for agent in self.agents]
        logger.info("Farm %s running with %d agents for %s time units", self.farm_id, len(self.agents), duration)

        started = loop.time()
        try:
            await asyncio.sleep(self.config.seconds(duration))
        finally:
            self.elapsed = loop.time() - started
            await self.shutdown()

        status = self.get_status()
        if self.broadcaster:
            await self.broadcaster.send_simulation_completed(status)
        return status

    async def shutdown(self):
        """Stop every agent loop, their detached tasks and the bus pumps"""
        self.running = False
        for agent in self.agents:
            await agent.shutdown()

        loops, self._loops = self._loops, []
        for task in loops:
            task.cancel()
        results = await asyncio.gather(*loops, return_exceptions=True)
        for task, result in zip(loops, results):
            if isinstance(result, Exception):
                logger.error("Agent loop %s failed", task.get_name(), exc_info=result)

        await self.bus.stop()

    def end(self):
        """Called when the simulation ends: release endpoints and registry"""
        for agent in self.agents:
            self.bus.unregister(agent.name)
        self.registry.clear()

    # ========== STATUS ==========

    def get_status(self) -> Dict[str, Any]:
        """Get current simulation status"""
        return {
            'farm_id': self.farm_id,
            'elapsed_seconds': round(self.elapsed, 3),
            'agents': {
                'total': len(self.agents),
                'fields': len(self.fields),
                'workers': len(self.workers),
                'suppliers': len(self.suppliers),
                'buyers': len(self.buyers),
            },
            'fields': [f.snapshot() for f in self.fields],
            'workers': [w.snapshot() for w in self.workers],
            'inventory': self.inventory.snapshot(),
            'planner': self.planner.snapshot(),
            'messages': {'sent': self.bus.sent, 'dropped': self.bus.dropped},
            'trips': self.mobility.trips,
            'weather': self.weather.snapshot() if self.weather is not None else None,
        }
