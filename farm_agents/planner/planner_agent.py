"""
PlannerAgent - BDI coordinator of the farm

Beliefs: field beliefs, inventory (shared ledger), worker availability
Desires: standing goals (healthy, watered fields; harvest; profit)
Intentions: stable priority queue of work with pending-set de-duplication

Three schedules run inside the planner:
- deliberation: rules turn beliefs into intentions
- executor: at most one intention at a time is dispatched
- summary: BDI snapshot broadcast to the dashboard
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from farm_world.catalog import ItemType
from ..agents_core.base_agent import BaseAgent
from ..agents_core.field_agent import PLANNER_NAME
from ..communication.protocol import (
    Command, Envelope, FarmProtocol, Performative, REPLY_PERFORMATIVES, Verb, new_conversation_id,
    parse_payload,
)
from ..config import WORKER_ROLES
from ..exceptions import MalformedMessage
from .beliefs import BeliefBase, EventType
from .control import Deliberator
from .intentions import DIAGNOSTIC, Intention, IntentionQueue, IntentionType
from .negotiation import ContractNet

logger = logging.getLogger(__name__)

DESIRES = [
    'Keep every field free of disease',
    'Keep every field watered',
    'Keep scans fresh',
    'Harvest ripe crops',
    'Maximize profit',
]

WATER_UNIT_MOISTURE = 30
MAX_WATER_UNITS = 3

ROLE_FOR_INTENTION = {
    IntentionType.TREAT: 'sprayer',
    IntentionType.WATER: 'irrigator',
    IntentionType.SCAN: 'scanner',
    IntentionType.HARVEST: 'harvester',
}


def water_units(amount_needed: int) -> int:
    """Water units for a request: one unit restores 30 moisture, 1 to 3 units"""
    return max(1, min(MAX_WATER_UNITS, math.ceil(amount_needed / WATER_UNIT_MOISTURE)))


@dataclass
class UnansweredMission:
    """A mission request whose AGREE/REFUSE missed the deadline"""
    worker: str
    intention: Intention
    expires_at: float


class PlannerAgent(BaseAgent):
    """
    Central BDI planner.

    Revises beliefs in its main loop from field requests and completion
    reports. Dispatch and negotiation run as detached tasks, so replies they
    wait for (AGREE, REFUSE, PROPOSE) are left out of the main loop. The
    exception is a mission answer that arrives after its wait gave up: the
    main loop takes it so the dispatch is settled exactly once.
    """

    role = 'planner'

    def setup(self, name: str = PLANNER_NAME):
        super().setup(name)
        self.inventory = self.model.inventory

        self.beliefs = BeliefBase(self.inventory)
        self.intentions = IntentionQueue()
        self.deliberator = Deliberator(self.beliefs, self.intentions, self.config)
        self.deliberator.setup()
        self.contract_net = ContractNet(self)

        self._executor_task = None
        # conversation_id -> mission request still waiting for its answer
        self._unanswered: Dict[str, UnansweredMission] = {}

        # Statistics
        self.dispatched = 0
        self.requeued = 0
        self.converted = 0
        self.late_answers = 0

        handlers = {
            Verb.SCAN: self._on_scan_request,
            Verb.WATER: self._on_water_request,
            Verb.DIAGNOSE: self._on_diagnose_request,
            Verb.HARVEST: self._on_harvest_request,
            Verb.SCAN_COMPLETE: self._on_scan_complete,
            Verb.WATER_COMPLETE: self._on_water_complete,
            Verb.DIAGNOSIS_RESULT: self._on_diagnosis_result,
            Verb.SPRAY_COMPLETE: self._on_spray_complete,
            Verb.HARVEST_COMPLETE: self._on_harvest_complete,
            Verb.DELIVERED: self._on_delivered,
            Verb.RECEIVED: self._on_received,
            Verb.STATE: self._on_field_state,
        }
        for verb, handler in handlers.items():
            self.dispatcher.register_handler(verb, handler)
        for verb in (Verb.AGREED, Verb.BUSY, Verb.LOW_BATTERY, Verb.OUT_OF_STOCK):
            self.dispatcher.register_handler(verb, self._on_late_answer)

        self.add_timer('deliberation', self.config.deliberation_period, self.deliberate)
        self.add_timer('executor', self.config.executor_period, self.run_executor)
        self.add_timer('summary', self.config.summary_period, self.report)

    def accepts(self, envelope: Envelope) -> bool:
        if envelope.performative in REPLY_PERFORMATIVES:
            return envelope.conversation_id in self._unanswered
        return True

    async def on_start(self):
        self.sync_workers()
        for belief in self.beliefs.get_all_fields():
            await self.send(f'Field-{belief.field_id}', Performative.REQUEST, FarmProtocol.get_state(),
                            new_conversation_id('state'))

    def sync_workers(self):
        """Add every registered worker to the worker pools"""
        for role in WORKER_ROLES:
            for agent in self.registry.by_role(role):
                self.beliefs.register_worker(agent.name, role)

    # ========== BELIEF REVISION: FIELD REQUESTS ==========

    def _on_scan_request(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.note_scan_request(field_id)
        self.deliberator.consider(Intention(IntentionType.SCAN, field_id))

    def _on_water_request(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        amount = command.arg('amount')
        self.beliefs.note_water_request(field_id, amount)
        self.deliberator.consider(Intention(IntentionType.WATER, field_id, quantity=amount))

    def _on_diagnose_request(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        disease = command.arg('disease')
        moisture = command.arg('moisture')
        health = command.arg('health')
        self.beliefs.note_diagnosis_request(field_id, disease, moisture, health)
        self.deliberator.consider(Intention(
            IntentionType.SCAN, field_id, disease=disease, purpose=DIAGNOSTIC,
            data={'moisture': moisture, 'health': health},
        ))

    def _on_harvest_request(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.note_harvest_request(field_id)
        self.deliberator.consider(Intention(IntentionType.HARVEST, field_id))

    def _on_field_state(self, envelope: Envelope, command: Command):
        self.beliefs.note_field_state(command.args[0])

    # ========== BELIEF REVISION: COMPLETIONS ==========

    def _on_scan_complete(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.scan_completed(field_id)
        self._mission_done(envelope.sender, (IntentionType.SCAN, field_id))
        logger.info("%s completed scan of Field-%d", envelope.sender, field_id)

    def _on_water_complete(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.water_completed(field_id, command.arg('amount'))
        self._mission_done(envelope.sender, (IntentionType.WATER, field_id))
        logger.info("%s watered Field-%d (+%d)", envelope.sender, field_id, command.arg('amount'))

    def _on_diagnosis_result(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        disease = command.arg('disease')
        confidence = command.arg('confidence')
        self.beliefs.record_diagnosis(field_id, disease, confidence)
        self._mission_done(envelope.sender, (IntentionType.SCAN, (field_id, DIAGNOSTIC)))
        logger.info("Diagnosis for Field-%d: %s (%d%%)",
                    field_id, disease.name if disease else 'NONE', confidence)

        if disease is not None:
            self.deliberator.consider(Intention(IntentionType.TREAT, field_id, disease=disease))

    def _on_spray_complete(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.treatment_completed(field_id)
        self._mission_done(envelope.sender, (IntentionType.TREAT, field_id))
        logger.info("Treatment complete for Field-%d", field_id)

    async def _on_harvest_complete(self, envelope: Envelope, command: Command):
        field_id = command.arg('field_id')
        self.beliefs.harvest_completed(field_id, command.arg('crop'))
        self._mission_done(envelope.sender, (IntentionType.HARVEST, field_id))
        logger.info("%s harvested %s from Field-%d", envelope.sender, command.arg('crop').name, field_id)

        # The field may have been replanted with another crop
        await self.send(f'Field-{field_id}', Performative.REQUEST, FarmProtocol.get_state(),
                        new_conversation_id('state'))

    async def _on_delivered(self, envelope: Envelope, command: Command):
        item = command.arg('item')
        quantity = command.arg('quantity')
        if not self.inventory.add(item, quantity):
            logger.warning("No room for %dx %s delivered by %s", quantity, item.name, envelope.sender)
        else:
            logger.info("Received %dx %s from %s", quantity, item.name, envelope.sender)
        self.intentions.release((IntentionType.BUY, item))
        self.beliefs.emit_event(EventType.STOCK_CHANGED, {'item': item.name}, source=envelope.sender)
        await self._broadcast_inventory()

    async def _on_received(self, envelope: Envelope, command: Command):
        item = command.arg('item')
        logger.info("%s confirmed receipt of %dx %s", envelope.sender, command.arg('quantity'), item.name)
        self.intentions.release((IntentionType.SELL, item))
        self.beliefs.emit_event(EventType.STOCK_CHANGED, {'item': item.name}, source=envelope.sender)
        await self._broadcast_inventory()

    def _mission_done(self, worker: str, key: Tuple[IntentionType, Any]):
        self.intentions.release(key)
        self.beliefs.mark_available(worker)

    # ========== DELIBERATION ==========

    async def deliberate(self):
        """Generate, filter and enqueue intentions from current beliefs"""
        return self.deliberator.deliberate()

    # ========== EXECUTOR ==========

    async def run_executor(self):
        """Executor schedule: start one dispatch unless the previous one is still running"""
        self.expire_unanswered()
        if self._executor_task is not None and not self._executor_task.done():
            logger.debug("Executor busy, waiting for next period")
            return
        self._executor_task = self.spawn(self.execute_next(), name=f'{self.name}-executor')

    async def execute_next(self) -> Optional[Intention]:
        """Pop and execute the most urgent intention"""
        intention = self.intentions.pop()
        if intention is None:
            return None

        logger.info("Executing intention: %s", intention)
        if intention.kind is IntentionType.BUY:
            self.spawn(self._purchase(intention), name=f'{self.name}-buy-{intention.item.name}')
        elif intention.kind is IntentionType.SELL:
            self.spawn(self._sell(intention), name=f'{self.name}-sell-{intention.item.name}')
        else:
            await self._dispatch(intention)
        return intention

    def mission_payload(self, intention: Intention) -> Optional[str]:
        """Request payload for the worker, or None if the mission cannot be built"""
        if intention.kind is IntentionType.TREAT:
            return FarmProtocol.spray_field(intention.field_id, intention.disease.cure)

        if intention.kind is IntentionType.WATER:
            return FarmProtocol.water_field(intention.field_id, water_units(intention.quantity))

        if intention.kind is IntentionType.SCAN:
            if intention.is_diagnostic:
                return FarmProtocol.diagnose_field(
                    intention.field_id, intention.disease,
                    intention.data.get('moisture', 0), intention.data.get('health', 0),
                )
            return FarmProtocol.scan_field(intention.field_id)

        if intention.kind is IntentionType.HARVEST:
            belief = self.beliefs.get_field(intention.field_id)
            if belief is None or belief.crop is None:
                return None
            return FarmProtocol.harvest_field(intention.field_id, belief.crop)

        return None

    async def _dispatch(self, intention: Intention):
        if intention.kind is IntentionType.HARVEST and self.inventory.is_full():
            logger.warning("Cannot harvest Field-%d: storage full", intention.field_id)
            self.intentions.release(intention.key)
            return

        payload = self.mission_payload(intention)
        if payload is None:
            logger.warning("Cannot build mission for %s, dropping it", intention)
            self.intentions.release(intention.key)
            return

        role = ROLE_FOR_INTENTION[intention.kind]
        for worker in self.beliefs.available_workers(role):
            conversation_id = new_conversation_id('mission')
            reply = await self._request_mission(worker, payload, conversation_id)
            if reply is None:
                self._hold_unanswered(worker, conversation_id, intention)
                return

            outcome = self._read_answer(worker, reply, intention)
            if outcome is None:
                continue
            if outcome.verb is Verb.AGREED:
                self._confirm_dispatch(worker, intention)
                return
            if outcome.verb is Verb.OUT_OF_STOCK:
                self._convert_to_purchase(intention, outcome.arg('item'))
                return

        self._requeue(intention)
        logger.info("No %s available for %s, re-queued", role, intention)

    async def _request_mission(self, worker: str, payload: str, conversation_id: str) -> Optional[Envelope]:
        """
        Ask one worker to take a mission.

        Returns:
            The AGREE or REFUSE envelope, or None if the deadline passed first
            (the conversation then stays open for a late answer)
        """
        await self.send(worker, Performative.REQUEST, payload, conversation_id)

        def _answer(envelope: Envelope) -> bool:
            return (envelope.conversation_id == conversation_id
                    and envelope.performative in (Performative.AGREE, Performative.REFUSE))

        timeout = self.config.seconds(self.config.negotiation_deadline)
        reply = await self.bus.receive(self.name, match=_answer, timeout=timeout)
        if reply is not None:
            self.bus.close_conversation(self.name, conversation_id)
        return reply

    def _read_answer(self, worker: str, reply: Envelope, intention: Intention) -> Optional[Command]:
        """Decode a worker's answer (None if unreadable) and record refusals"""
        try:
            command = parse_payload(reply.payload)
        except MalformedMessage as e:
            logger.warning("Malformed answer from %s: %s", worker, e)
            return None

        if reply.performative is Performative.REFUSE:
            self.beliefs.emit_event(EventType.MISSION_REFUSED, {
                'worker': worker, 'reason': command.raw, 'intention': str(intention),
            }, source=worker)
            logger.info("%s refused %s: %s", worker, intention, command.raw)
        return command

    def _confirm_dispatch(self, worker: str, intention: Intention):
        self.beliefs.mark_busy(worker, intention.field_id)
        self.dispatched += 1
        logger.info("Dispatched %s to Field-%d", worker, intention.field_id)

    def _requeue(self, intention: Intention):
        self.intentions.push_back(intention)
        self.requeued += 1

    # ========== LATE ANSWERS ==========

    def _hold_unanswered(self, worker: str, conversation_id: str, intention: Intention):
        """
        The worker may still take the mission: keep it out of the pool and
        keep the intention off the queue until it answers or the answer expires.
        """
        expires_at = asyncio.get_running_loop().time() + self.config.seconds(self.config.answer_expiry)
        self._unanswered[conversation_id] = UnansweredMission(worker, intention, expires_at)
        self.beliefs.mark_unconfirmed(worker, intention.field_id)
        logger.warning("%s did not answer %s in time, waiting for a late answer", worker, intention)

    def _on_late_answer(self, envelope: Envelope, command: Command):
        pending = self._unanswered.pop(envelope.conversation_id, None)
        if pending is None:
            logger.debug("Ignoring %s from %s outside a mission request", command.raw, envelope.sender)
            return
        self.bus.close_conversation(self.name, envelope.conversation_id)
        self.late_answers += 1

        self._read_answer(pending.worker, envelope, pending.intention)
        if command.verb is Verb.AGREED:
            self._confirm_dispatch(pending.worker, pending.intention)
            return

        self.beliefs.mark_available(pending.worker)
        if command.verb is Verb.OUT_OF_STOCK:
            self._convert_to_purchase(pending.intention, command.arg('item'))
        else:
            self._requeue(pending.intention)

    def expire_unanswered(self):
        """Give up on mission requests whose answer never came: free the worker, re-queue the work"""
        now = asyncio.get_running_loop().time()
        for conversation_id, pending in list(self._unanswered.items()):
            if pending.expires_at > now:
                continue
            del self._unanswered[conversation_id]
            self.bus.close_conversation(self.name, conversation_id)
            self.beliefs.mark_available(pending.worker)
            self._requeue(pending.intention)
            logger.warning("%s never answered %s, re-queued", pending.worker, pending.intention)

    def _convert_to_purchase(self, intention: Intention, item: ItemType):
        """Missing supplies: release the intention and intend to buy the item instead"""
        self.intentions.release(intention.key)
        self.converted += 1
        quantity = min(self.config.restock_quantity, self.inventory.free_capacity())
        purchase = Intention(IntentionType.BUY, item=item, quantity=quantity)
        logger.info("No %s in stock for %s, ordering", item.name, intention)
        self.deliberator.consider(purchase)

    # ========== NEGOTIATION ==========

    async def _purchase(self, intention: Intention):
        winner = await self.contract_net.procure(intention.item, intention.quantity)
        if winner is None:
            self.intentions.release(intention.key)
        else:
            await self._broadcast_inventory()
        self.beliefs.emit_event(EventType.NEGOTIATION_FINISHED, {
            'kind': 'buy', 'item': intention.item.name, 'deal': winner is not None,
        })

    async def _sell(self, intention: Intention):
        result = await self.contract_net.auction(intention.item, intention.quantity)
        if result is None:
            self.intentions.release(intention.key)
        else:
            await self._broadcast_inventory()
        self.beliefs.emit_event(EventType.NEGOTIATION_FINISHED, {
            'kind': 'sell', 'item': intention.item.name, 'deal': result is not None,
        })

    # ========== REPORTING ==========

    async def report(self):
        """Broadcast beliefs, desires and the top pending intentions"""
        if self.broadcaster:
            await self.broadcaster.send_bdi_summary(
                self.beliefs.snapshot(), DESIRES, self.intentions.snapshot(self.config.summary_top_n)
            )

    async def _broadcast_inventory(self):
        if self.broadcaster:
            await self.broadcaster.send_inventory_update(self.inventory.snapshot())

    def snapshot(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'role': self.role,
            'status': self.status,
            'queued': len(self.intentions),
            'dispatched': self.dispatched,
            'requeued': self.requeued,
            'late_answers': self.late_answers,
            'awaiting_answer': len(self._unanswered),
            'negotiation': self.contract_net.get_status(),
            'beliefs': self.beliefs.get_statistics(),
        }
