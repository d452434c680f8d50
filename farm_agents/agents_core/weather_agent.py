"""
WeatherAgent - Farm-wide weather driving rain and evaporation

Each weather tick counts down the current spell. When it runs out a new
weather is drawn from the shared random source and every field is told its
new evaporation rate; while it rains, fields also receive a moisture bonus
every tick.
"""

import logging

from farm_world.catalog import WeatherType
from .base_agent import BaseAgent
from ..communication.protocol import FarmProtocol, Performative

logger = logging.getLogger(__name__)

WEATHER_NAME = 'Weather'
MIN_SPELL = 3
SPELL_SPREAD = 5


class WeatherAgent(BaseAgent):
    """Weather agent. It only talks to fields and never waits for answers."""

    role = 'weather'

    def setup(self, name: str = WEATHER_NAME):
        super().setup(name)
        self.weather = WeatherType.SUNNY
        self.remaining = 0
        self.changes = 0

        self.add_timer('weather', self.config.weather_period, self.tick)

    async def tick(self):
        self.remaining -= 1
        if self.remaining <= 0:
            await self.change_weather()

        if self.weather.moisture_bonus > 0:
            await self._tell_fields(FarmProtocol.weather_moisture(self.weather.moisture_bonus))

    async def change_weather(self):
        """Draw the next weather and its duration, then broadcast the new evaporation rate"""
        rng = self.model.random
        self.weather = WeatherType.from_roll(rng.random())
        self.remaining = MIN_SPELL + int(rng.random() * SPELL_SPREAD)
        self.changes += 1
        logger.info("Weather changed to %s for %d ticks", self.weather.name, self.remaining)

        await self._tell_fields(FarmProtocol.weather_evaporation(self.weather.evaporation))
        await self.report()

    async def _tell_fields(self, payload: str):
        for field_agent in self.registry.by_role('field'):
            await self.send(field_agent.name, Performative.INFORM, payload)

    async def report(self):
        if self.broadcaster:
            await self.broadcaster.send_weather_update(
                self.weather.name, self.weather.moisture_bonus, self.weather.evaporation, self.remaining,
            )

    def snapshot(self):
        return {
            'name': self.name,
            'role': self.role,
            'weather': self.weather.name,
            'remaining': self.remaining,
            'changes': self.changes,
        }
