"""
State Broadcaster for farm dashboards

Publishes farm state to any dashboard listening on the farm's channel-layer
group. The sink is one-way: nothing published here is ever read back.
"""

import logging
from typing import Dict, Any, List, Optional

from asgiref.sync import async_to_sync

from .events import DashboardProtocol

logger = logging.getLogger(__name__)


class StateBroadcaster:
    """
    Broadcasts farm state to dashboards.

    Every event is wrapped as ``{'type': 'farm_update', 'data': event}`` so a
    websocket consumer can route it with a ``farm_update`` handler.
    """

    def __init__(self, farm_id: str, channel_layer=None):
        """
        Initialize broadcaster.

        Args:
            farm_id: Farm identifier, used to name the group
            channel_layer: Channel layer to publish on (None disables publishing)
        """
        self.farm_id = str(farm_id)
        self.channel_layer = channel_layer
        self.group_name = f'farm_{self.farm_id}'
        self.events_sent = 0

    async def send_field_update(self, field_state: Dict[str, Any]):
        await self._send_to_group(DashboardProtocol.field_update(field_state))

    async def send_worker_update(self, worker_state: Dict[str, Any]):
        await self._send_to_group(DashboardProtocol.worker_update(worker_state))

    async def send_inventory_update(self, snapshot: Dict[str, Any]):
        await self._send_to_group(DashboardProtocol.inventory_update(snapshot))

    async def send_bdi_summary(self, beliefs: Dict, desires: List[str], intentions: List[Dict]):
        """
        Send the planner's belief/desire/intention snapshot.

        Args:
            beliefs: Field beliefs, balance, inventory and worker counts
            desires: Standing goals of the planner
            intentions: Top pending intentions in execution order
        """
        await self._send_to_group(DashboardProtocol.bdi_summary(beliefs, desires, intentions))

    async def send_market_event(self, stage: str, item: str, quantity: int, **details):
        await self._send_to_group(DashboardProtocol.market_event(stage, item, quantity, **details))

    async def send_weather_update(self, weather: str, moisture_bonus: int, evaporation: float, remaining: int):
        await self._send_to_group(DashboardProtocol.weather_update(weather, moisture_bonus, evaporation, remaining))

    async def send_log(self, source: str, text: str):
        await self._send_to_group(DashboardProtocol.log(source, text))

    async def send_simulation_started(self, agents: List[str]):
        await self._send_to_group(DashboardProtocol.simulation_started(self.farm_id, agents))

    async def send_simulation_completed(self, status: Dict):
        await self._send_to_group(DashboardProtocol.simulation_completed(self.farm_id, status), kind='farm_status')

    async def send_error(self, error: str, **details):
        await self._send_to_group(DashboardProtocol.error(error, **details), kind='farm_error')

    def send_error_sync(self, error: str, **details):
        """Send an error from synchronous code (no running event loop)"""
        if not self.channel_layer:
            return
        async_to_sync(self.send_error)(error, **details)

    async def _send_to_group(self, message: Dict[str, Any], kind: Optional[str] = None):
        """
        Send message to the farm group.

        Args:
            message: Event dictionary
            kind: Channel message type (defaults to farm_update)
        """
        if not self.channel_layer:
            return

        await self.channel_layer.group_send(
            self.group_name,
            {
                'type': kind or 'farm_update',
                'data': message,
            }
        )
        self.events_sent += 1
        logger.debug("Published %s to %s", message.get('type'), self.group_name)
