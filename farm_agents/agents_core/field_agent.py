"""
FieldAgent - A crop field that ticks and asks the planner for help

Every tick the field runs the simulator, sends the requests that became
true (scan, water, diagnose, harvest) and publishes its state. Completion
messages from workers clear the matching request flag. Weather messages
add rain moisture or change evaporation between ticks.
"""

import logging
from typing import Optional

from farm_world.catalog import CropType
from farm_world.field import FieldSimulator, FieldState
from .base_agent import BaseAgent
from ..communication.protocol import Envelope, Command, FarmProtocol, Performative, Verb, encode

logger = logging.getLogger(__name__)

PLANNER_NAME = 'Planner'


class FieldAgent(BaseAgent):
    """
    Field agent.

    Owns its FieldState: nobody else mutates it. Workers only send
    completion messages and the field applies them.
    """

    role = 'field'

    def setup(self, field_id: int, crop: CropType, planner: str = PLANNER_NAME, **initial):
        super().setup(f'Field-{field_id}')

        self.field_state = FieldState(field_id, crop, **initial)
        self.planner_name = planner
        self.simulator = FieldSimulator(self.model.random, self.config.disease_probability)

        # Statistics
        self.ticks = 0
        self.requests_sent = 0

        self.dispatcher.register_handler(Verb.SCANNED, self._on_scanned)
        self.dispatcher.register_handler(Verb.WATERED, self._on_watered)
        self.dispatcher.register_handler(Verb.TREATED, self._on_treated)
        self.dispatcher.register_handler(Verb.HARVESTED, self._on_harvested)
        self.dispatcher.register_handler(Verb.WEATHER_MOISTURE, self._on_weather_moisture)
        self.dispatcher.register_handler(Verb.WEATHER_EVAP, self._on_weather_evaporation)
        self.dispatcher.register_handler(Verb.GET_STATE, self._on_get_state)

        self.add_timer('tick', self.config.field_tick_period, self.tick)

    @property
    def field_id(self) -> int:
        return self.field_state.field_id

    async def tick(self):
        """One simulator tick: mutate state, send new requests, publish state"""
        self.ticks += 1
        requests = self.simulator.tick(self.field_state)

        for verb, args in requests:
            payload = encode(Verb(verb), *args)
            await self.send(self.planner_name, Performative.REQUEST, payload)
            self.requests_sent += 1
            logger.info("%s requested %s", self.name, payload)

        await self.report()

    async def report(self):
        if self.broadcaster:
            await self.broadcaster.send_field_update(self.field_state.to_dict())

    def snapshot(self):
        return self.field_state.to_dict()

    # ========== COMPLETIONS ==========

    def _on_scanned(self, envelope: Envelope, command: Command):
        self.field_state.apply_scan()
        logger.debug("%s scanned by %s", self.name, envelope.sender)

    def _on_watered(self, envelope: Envelope, command: Command):
        amount = command.arg('amount')
        self.field_state.apply_water(amount)
        logger.info("%s watered +%d by %s (moisture %d)",
                    self.name, amount, envelope.sender, self.field_state.moisture)

    def _on_treated(self, envelope: Envelope, command: Command):
        self.field_state.apply_treatment()
        logger.info("%s treated by %s (health %d)", self.name, envelope.sender, self.field_state.health)

    def _on_harvested(self, envelope: Envelope, command: Command):
        new_crop = self._replant_crop()
        self.field_state.apply_harvest(new_crop)
        logger.info("%s harvested by %s, replanted with %s",
                    self.name, envelope.sender, self.field_state.crop_type.name)

    # ========== WEATHER ==========

    def _on_weather_moisture(self, envelope: Envelope, command: Command):
        self.field_state.apply_weather_moisture(command.arg('bonus'))
        logger.debug("%s rain +%d (moisture %d)", self.name, command.arg('bonus'), self.field_state.moisture)

    def _on_weather_evaporation(self, envelope: Envelope, command: Command):
        self.field_state.set_evaporation(command.arg('rate'))
        logger.debug("%s evaporation set to %.1f", self.name, self.field_state.evaporation)

    async def _on_get_state(self, envelope: Envelope, command: Command):
        await self.reply(envelope, Performative.INFORM, FarmProtocol.state(self.field_state.to_dict()))

    def _replant_crop(self) -> Optional[CropType]:
        """Crop for the next season (None keeps the current one)"""
        if not self.config.rotate_crops:
            return None
        return self.model.random.choice(list(CropType))
