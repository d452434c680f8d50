"""
WorkerAgent - Mobile units executing one mission at a time

Lifecycle:
    IDLE -> DISPATCHED -> TRAVELING_OUTBOUND -> EXECUTING -> TRAVELING_RETURN -> IDLE
with CHARGING entered from IDLE whenever the battery is below the low
threshold. A worker is only available for new missions while IDLE.

Each role (scanner, sprayer, harvester, irrigator) handles its own mission
verbs and defines its battery costs.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from farm_world.catalog import ItemType
from .base_agent import BaseAgent
from .diagnosis import DiagnosisModel
from .mobility import BASE_LOCATION, field_location
from ..communication.protocol import Command, Envelope, FarmProtocol, Performative, Verb

logger = logging.getLogger(__name__)

FULL_BATTERY = 100
MOISTURE_PER_WATER_UNIT = 30
HARVEST_YIELD = 1


class WorkerState(Enum):
    """Lifecycle states of a worker"""
    IDLE = "idle"
    DISPATCHED = "dispatched"
    TRAVELING_OUTBOUND = "traveling_outbound"
    EXECUTING = "executing"
    TRAVELING_RETURN = "traveling_return"
    CHARGING = "charging"


@dataclass
class Mission:
    """A mission accepted by a worker"""
    verb: Verb
    field_id: int
    requester: str
    conversation_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    carried_item: Optional[ItemType] = None
    carried_quantity: int = 0
    result: Optional[str] = None
    outcome: str = 'done'


class WorkerAgent(BaseAgent):
    """
    Base class for mobile workers.

    The mission itself runs as a detached task so the worker keeps
    answering (and refusing) requests while it travels.
    """

    role = 'worker'
    move_cost = 5
    action_cost = 5
    mission_verbs: Tuple[Verb, ...] = ()

    def setup(self, name: str, battery: int = FULL_BATTERY):
        super().setup(name)

        self.battery = max(0, min(FULL_BATTERY, battery))
        self.worker_state = WorkerState.IDLE
        self.location = BASE_LOCATION
        self.mobility = self.model.mobility
        self.inventory = self.model.inventory
        self.current_mission: Optional[Mission] = None

        # Statistics
        self.missions_completed = 0
        self.missions_refused = 0
        self.charges = 0

        for verb in self.mission_verbs:
            self.dispatcher.register_handler(verb, self._on_mission_request)

        self.add_timer('battery', 1.0, self.check_battery)

    @property
    def required_battery(self) -> int:
        """Battery needed for a whole mission: move + act + move"""
        return self.move_cost + self.action_cost + self.move_cost

    @property
    def is_available(self) -> bool:
        return self.worker_state is WorkerState.IDLE and self.battery >= self.config.low_battery

    def snapshot(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'role': self.role,
            'status': self.worker_state.value,
            'battery': self.battery,
            'location': self.location,
            'carrying': self.current_mission.carried_item.name
            if self.current_mission and self.current_mission.carried_item else None,
            'missions_completed': self.missions_completed,
        }

    # ========== ACCEPTANCE ==========

    def refusal_reason(self) -> Optional[str]:
        """Refusal payload for a new mission, or None if it can be accepted"""
        if self.worker_state is WorkerState.CHARGING:
            return FarmProtocol.low_battery()
        if self.worker_state is not WorkerState.IDLE:
            return FarmProtocol.busy()
        if self.battery < self.config.low_battery or self.battery < self.required_battery:
            return FarmProtocol.low_battery()
        return None

    async def _on_mission_request(self, envelope: Envelope, command: Command):
        refusal = self.refusal_reason()
        if refusal is None:
            mission, refusal = self.prepare_mission(envelope, command)

        if refusal is not None:
            self.missions_refused += 1
            logger.info("%s refused %s: %s", self.name, command.raw, refusal)
            await self.reply(envelope, Performative.REFUSE, refusal)
            return

        await self._transition(WorkerState.DISPATCHED)
        self.current_mission = mission
        await self.reply(envelope, Performative.AGREE, FarmProtocol.agreed(mission.field_id))
        logger.info("%s accepted %s (battery %d)", self.name, command.raw, self.battery)
        self.spawn(self._run_mission(mission), name=f'{self.name}-mission')

    def prepare_mission(self, envelope: Envelope, command: Command) -> Tuple[Optional[Mission], Optional[str]]:
        """
        Build the mission for an accepted request.

        Roles carrying supplies load them from the inventory here.

        Returns:
            (mission, None) or (None, refusal payload)
        """
        mission = Mission(
            verb=command.verb,
            field_id=command.arg('field_id'),
            requester=envelope.sender,
            conversation_id=envelope.conversation_id,
        )
        return mission, None

    # ========== MISSION ==========

    async def _run_mission(self, mission: Mission):
        self._drain(self.move_cost)
        await self._transition(WorkerState.TRAVELING_OUTBOUND)
        await self.mobility.move_to(self.name, field_location(mission.field_id), self._on_arrival)

        self._drain(self.action_cost)
        await self._transition(WorkerState.EXECUTING)
        if self.config.action_time > 0:
            await asyncio.sleep(self.config.seconds(self.config.action_time))
        await self.perform(mission)

        self._drain(self.move_cost)
        await self._transition(WorkerState.TRAVELING_RETURN)
        await self.mobility.move_to(self.name, BASE_LOCATION, self._on_arrival)

        self.current_mission = None
        self.missions_completed += 1
        await self._transition(WorkerState.IDLE)

        if mission.result is not None:
            await self.send(mission.requester, Performative.INFORM, mission.result, mission.conversation_id)
        logger.info("%s completed %s on Field-%d: %s (battery %d)",
                    self.name, mission.verb.value, mission.field_id, mission.outcome, self.battery)

        if self.battery < self.config.low_battery:
            self._start_charging()

    async def perform(self, mission: Mission):
        """Apply the mission effect at the field and set `mission.result`"""
        raise NotImplementedError

    async def notify_field(self, mission: Mission, payload: str):
        await self.send(f'Field-{mission.field_id}', Performative.INFORM, payload)

    def _on_arrival(self, destination: str):
        self.location = destination

    def _drain(self, cost: int):
        self.battery = max(0, self.battery - cost)

    # ========== BATTERY ==========

    async def check_battery(self):
        """Periodic check: an idle worker with low battery starts charging"""
        if self.worker_state is WorkerState.IDLE and self.battery < self.config.low_battery:
            self._start_charging()

    def _start_charging(self):
        if self.worker_state is not WorkerState.IDLE:
            return
        self.worker_state = WorkerState.CHARGING
        self.status = WorkerState.CHARGING.value
        self.spawn(self._charge(), name=f'{self.name}-charge')

    async def _charge(self):
        logger.info("%s charging (battery %d)", self.name, self.battery)
        await self.report()
        if self.config.charge_time > 0:
            await asyncio.sleep(self.config.seconds(self.config.charge_time))
        self.battery = FULL_BATTERY
        self.charges += 1
        await self._transition(WorkerState.IDLE)

    async def _transition(self, state: WorkerState):
        self.worker_state = state
        self.status = state.value
        await self.report()


class ScannerAgent(WorkerAgent):
    """Drone that refreshes scans and diagnoses diseases"""

    role = 'scanner'
    move_cost = 10
    action_cost = 10
    mission_verbs = (Verb.SCAN_FIELD, Verb.DIAGNOSE_FIELD)

    def setup(self, name: str, battery: int = FULL_BATTERY):
        super().setup(name, battery)
        self.classifier = DiagnosisModel()
        self.diagnoses = 0

    def prepare_mission(self, envelope, command):
        mission, refusal = super().prepare_mission(envelope, command)
        if command.verb is Verb.DIAGNOSE_FIELD:
            mission.data.update(
                disease=command.arg('disease'),
                moisture=command.arg('moisture'),
                health=command.arg('health'),
            )
        return mission, refusal

    async def perform(self, mission: Mission):
        await self.notify_field(mission, FarmProtocol.scanned())

        if mission.verb is Verb.DIAGNOSE_FIELD:
            diagnosis = self.classifier.diagnose(
                mission.data['disease'], mission.data['moisture'], mission.data['health']
            )
            self.diagnoses += 1
            mission.data['diagnosis'] = diagnosis.to_dict()
            mission.result = FarmProtocol.diagnosis_result(mission.field_id, diagnosis.disease, diagnosis.confidence)
            logger.info("%s diagnosed Field-%d: %s", self.name, mission.field_id, diagnosis.to_dict())
        else:
            mission.result = FarmProtocol.scan_complete(mission.field_id)


class SprayerAgent(WorkerAgent):
    """Carries one dose of a chemical and treats a diseased field"""

    role = 'sprayer'
    move_cost = 5
    action_cost = 5
    mission_verbs = (Verb.SPRAY_FIELD,)

    def prepare_mission(self, envelope, command):
        chemical = command.arg('item')
        if not self.inventory.remove(chemical, 1):
            return None, FarmProtocol.out_of_stock(chemical)

        mission, _ = super().prepare_mission(envelope, command)
        mission.carried_item = chemical
        mission.carried_quantity = 1
        return mission, None

    async def perform(self, mission: Mission):
        await self.notify_field(mission, FarmProtocol.treated())
        mission.data['sprayed'] = mission.carried_item.name
        mission.carried_item = None
        mission.carried_quantity = 0
        mission.result = FarmProtocol.spray_complete(mission.field_id)


class HarvesterAgent(WorkerAgent):
    """Harvests a ripe field into the inventory"""

    role = 'harvester'
    move_cost = 5
    action_cost = 10
    mission_verbs = (Verb.HARVEST_FIELD,)

    def setup(self, name: str, battery: int = FULL_BATTERY):
        super().setup(name, battery)
        self.crops_discarded = 0

    def prepare_mission(self, envelope, command):
        mission, refusal = super().prepare_mission(envelope, command)
        mission.data['crop'] = command.arg('crop')
        return mission, refusal

    def snapshot(self):
        snapshot = super().snapshot()
        snapshot['crops_discarded'] = self.crops_discarded
        return snapshot

    async def perform(self, mission: Mission):
        crop = mission.data['crop']
        if self.inventory.add(crop.crop_item, HARVEST_YIELD):
            mission.outcome = 'stored'
            if self.broadcaster:
                await self.broadcaster.send_inventory_update(self.inventory.snapshot())
        else:
            # The field is harvested either way; only the crop is lost
            mission.outcome = 'discarded (storage full)'
            self.crops_discarded += 1
            logger.warning("%s: storage full, %s from Field-%d discarded",
                           self.name, crop.crop_item.name, mission.field_id)
            if self.broadcaster:
                await self.broadcaster.send_log(
                    self.name, f"Storage full: {crop.crop_item.name} from Field-{mission.field_id} discarded"
                )

        await self.notify_field(mission, FarmProtocol.harvested())
        mission.result = FarmProtocol.harvest_complete(mission.field_id, crop)


class IrrigatorAgent(WorkerAgent):
    """Loads water units from the inventory and irrigates a field"""

    role = 'irrigator'
    move_cost = 5
    action_cost = 15
    mission_verbs = (Verb.WATER_FIELD,)

    def prepare_mission(self, envelope, command):
        units = self.inventory.take_up_to(ItemType.WATER, command.arg('quantity'))
        if units <= 0:
            return None, FarmProtocol.out_of_stock(ItemType.WATER)

        mission, _ = super().prepare_mission(envelope, command)
        mission.carried_item = ItemType.WATER
        mission.carried_quantity = units
        return mission, None

    async def perform(self, mission: Mission):
        amount = mission.carried_quantity * MOISTURE_PER_WATER_UNIT
        await self.notify_field(mission, FarmProtocol.watered(amount))
        mission.carried_item = None
        mission.carried_quantity = 0
        mission.result = FarmProtocol.water_complete(mission.field_id, amount)


WORKER_CLASSES = {
    'scanner': ScannerAgent,
    'sprayer': SprayerAgent,
    'harvester': HarvesterAgent,
    'irrigator': IrrigatorAgent,
}

WORKER_NAME_PREFIX = {
    'scanner': 'Drone',
    'sprayer': 'Sprayer',
    'harvester': 'Harvester',
    'irrigator': 'Irrigator',
}
