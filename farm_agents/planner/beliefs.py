"""
BeliefBase - What the planner currently believes about the farm

The BeliefBase stores everything the deliberation rules and the executor
need: field beliefs revised from field requests and completion reports,
the worker pools per role and a bounded history of events. The inventory
itself is the shared ledger and is read directly, never copied.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from enum import Enum
from datetime import datetime
import itertools
import threading

from farm_world.catalog import CropType, DiseaseType
from farm_world.inventory import Inventory


class EventType(Enum):
    """Types of events the planner records"""
    FIELD_REGISTERED = "field_registered"
    FIELD_REQUEST = "field_request"
    FIELD_STATE = "field_state"
    DIAGNOSIS_RECEIVED = "diagnosis_received"
    MISSION_DISPATCHED = "mission_dispatched"
    MISSION_COMPLETED = "mission_completed"
    MISSION_REFUSED = "mission_refused"
    STOCK_CHANGED = "stock_changed"
    NEGOTIATION_FINISHED = "negotiation_finished"


@dataclass
class Event:
    """Something that happened, as seen by the planner"""
    event_type: EventType
    timestamp: datetime
    data: Dict[str, Any]
    source: Optional[str] = None
    seq: int = 0


@dataclass
class FieldBelief:
    """Planner's view of one field"""
    field_id: int
    crop: Optional[CropType] = None
    moisture: Optional[int] = None
    health: Optional[int] = None

    # Disease reported by the field and disease confirmed by a diagnosis
    reported_disease: Optional[DiseaseType] = None
    diagnosed_disease: Optional[DiseaseType] = None
    diagnosis_confidence: int = 0

    # Outstanding needs
    needs_scan: bool = False
    needs_water: bool = False
    water_amount: int = 0
    needs_diagnosis: bool = False
    needs_harvest: bool = False

    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field_id': self.field_id,
            'crop': self.crop.name if self.crop else None,
            'moisture': self.moisture,
            'health': self.health,
            'disease': self.reported_disease.name if self.reported_disease else None,
            'diagnosed': self.diagnosed_disease.name if self.diagnosed_disease else None,
            'confidence': self.diagnosis_confidence,
            'needs_scan': self.needs_scan,
            'needs_water': self.needs_water,
            'needs_diagnosis': self.needs_diagnosis,
            'needs_harvest': self.needs_harvest,
        }


@dataclass
class WorkerBelief:
    """Planner's view of one worker"""
    name: str
    role: str
    available: bool = True
    awaiting_answer: bool = False
    missions: int = 0
    last_field: Optional[int] = None


class BeliefBase:
    """
    Planner belief store.

    This class stores:
    - Field beliefs
    - Worker pools (available / busy per role)
    - Events history

    The planner revises it from its single loop; the lock keeps reads
    from other threads (dashboard status) consistent.
    """

    def __init__(self, inventory: Inventory, max_events: int = 1000):
        """
        Initialize the BeliefBase.

        Args:
            inventory: Shared inventory ledger
            max_events: Number of events kept in history
        """
        self.inventory = inventory
        self._lock = threading.RLock()

        self._fields: Dict[int, FieldBelief] = {}
        self._workers: Dict[str, WorkerBelief] = {}

        self._events: List[Event] = []
        self._max_events = max_events
        self._seq = itertools.count(1)
        self.last_seq = 0

    # ========== FIELD BELIEFS ==========

    def register_field(self, field_id: int, crop: Optional[CropType] = None) -> FieldBelief:
        """Create (or update the crop of) a field belief"""
        with self._lock:
            belief = self._fields.get(field_id)
            if belief is None:
                belief = FieldBelief(field_id, crop, updated_at=datetime.now())
                self._fields[field_id] = belief
                self._emit_event(EventType.FIELD_REGISTERED, {'field_id': field_id})
            elif crop is not None:
                belief.crop = crop
            return belief

    def get_field(self, field_id: int) -> Optional[FieldBelief]:
        with self._lock:
            return self._fields.get(field_id)

    def get_all_fields(self) -> List[FieldBelief]:
        with self._lock:
            return [self._fields[fid] for fid in sorted(self._fields)]

    def note_scan_request(self, field_id: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_scan = True
            self._touch(belief, 'scan')

    def note_water_request(self, field_id: int, amount: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_water = True
            belief.water_amount = amount
            belief.moisture = max(0, 100 - amount)
            self._touch(belief, 'water')

    def note_diagnosis_request(self, field_id: int, disease: DiseaseType, moisture: int, health: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_diagnosis = True
            belief.reported_disease = disease
            belief.moisture = moisture
            belief.health = health
            self._touch(belief, 'diagnose')

    def note_harvest_request(self, field_id: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_harvest = True
            self._touch(belief, 'harvest')

    def note_field_state(self, document: Dict[str, Any]):
        """Refresh a field belief from a STATE document"""
        with self._lock:
            field_id = int(document['field_id'])
            belief = self.register_field(field_id)
            if document.get('crop_type') in CropType.__members__:
                belief.crop = CropType[document['crop_type']]
            belief.moisture = document.get('moisture', belief.moisture)
            belief.health = document.get('health', belief.health)
            belief.updated_at = datetime.now()
            self._emit_event(EventType.FIELD_STATE, {'field_id': field_id})

    def _touch(self, belief: FieldBelief, need: str):
        belief.updated_at = datetime.now()
        self._emit_event(EventType.FIELD_REQUEST, {'field_id': belief.field_id, 'need': need})

    # ========== COMPLETIONS ==========

    def scan_completed(self, field_id: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_scan = False
            self._emit_event(EventType.MISSION_COMPLETED, {'field_id': field_id, 'mission': 'scan'})

    def water_completed(self, field_id: int, amount: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_water = False
            belief.water_amount = 0
            if belief.moisture is not None:
                belief.moisture = min(100, belief.moisture + amount)
            self._emit_event(EventType.MISSION_COMPLETED, {'field_id': field_id, 'mission': 'water'})

    def record_diagnosis(self, field_id: int, disease: Optional[DiseaseType], confidence: int):
        """Store a diagnosis; a healthy result clears the reported disease"""
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_diagnosis = False
            belief.diagnosed_disease = disease
            belief.diagnosis_confidence = confidence
            if disease is None:
                belief.reported_disease = None
            self._emit_event(EventType.DIAGNOSIS_RECEIVED, {
                'field_id': field_id,
                'disease': disease.name if disease else None,
                'confidence': confidence,
            })

    def treatment_completed(self, field_id: int):
        with self._lock:
            belief = self.register_field(field_id)
            belief.reported_disease = None
            belief.diagnosed_disease = None
            belief.diagnosis_confidence = 0
            self._emit_event(EventType.MISSION_COMPLETED, {'field_id': field_id, 'mission': 'treat'})

    def harvest_completed(self, field_id: int, crop: CropType):
        with self._lock:
            belief = self.register_field(field_id)
            belief.needs_harvest = False
            self._emit_event(EventType.MISSION_COMPLETED, {
                'field_id': field_id, 'mission': 'harvest', 'crop': crop.name,
            })

    # ========== WORKER POOLS ==========

    def register_worker(self, name: str, role: str):
        with self._lock:
            if name not in self._workers:
                self._workers[name] = WorkerBelief(name, role)

    def available_workers(self, role: str) -> List[str]:
        """Names of workers of a role believed to be free, in registration order"""
        with self._lock:
            return [w.name for w in self._workers.values() if w.role == role and w.available]

    def mark_busy(self, name: str, field_id: Optional[int] = None):
        with self._lock:
            worker = self._workers.get(name)
            if worker is None:
                return
            worker.available = False
            worker.awaiting_answer = False
            worker.missions += 1
            worker.last_field = field_id
            self._emit_event(EventType.MISSION_DISPATCHED, {'worker': name, 'field_id': field_id})

    def mark_available(self, name: str):
        with self._lock:
            worker = self._workers.get(name)
            if worker is not None:
                worker.available = True
                worker.awaiting_answer = False

    def mark_unconfirmed(self, name: str, field_id: Optional[int] = None):
        """Asked for a mission but has not answered yet: not available either way"""
        with self._lock:
            worker = self._workers.get(name)
            if worker is not None:
                worker.available = False
                worker.awaiting_answer = True
                worker.last_field = field_id

    def worker_counts(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            counts: Dict[str, Dict[str, int]] = {}
            for worker in self._workers.values():
                entry = counts.setdefault(worker.role, {'available': 0, 'busy': 0, 'awaiting_answer': 0})
                entry['available' if worker.available else 'busy'] += 1
                if worker.awaiting_answer:
                    entry['awaiting_answer'] += 1
            return counts

    # ========== EVENT MANAGEMENT ==========

    def _emit_event(self, event_type: EventType, data: Dict[str, Any], source: Optional[str] = None):
        """Emit an event (internal use)"""
        event = Event(
            event_type=event_type,
            timestamp=datetime.now(),
            data=data,
            source=source,
            seq=next(self._seq),
        )
        self.last_seq = event.seq

        self._events.append(event)
        if len(self._events) > self._max_events:
            self._events.pop(0)
    def emit_event(self, event_type: EventType, data: Dict[str, Any], source: Optional[str] = None):
        """Emit a custom event (public API)"""
        with self._lock:
            self._emit_event(event_type, data, source)

    def get_recent_events(self, event_type: Optional[EventType] = None, limit: int = 100) -> List[Event]:
        with self._lock:
            events = self._events
            if event_type:
                events = [e for e in events if e.event_type == event_type]
            return events[-limit:]

    def events_since(self, seq: int) -> List[Event]:
        """Events recorded after sequence number `seq`"""
        with self._lock:
            return [e for e in self._events if e.seq > seq]

    # ========== STATISTICS ==========

    def snapshot(self) -> Dict[str, Any]:
        """Beliefs as shown on the dashboard"""
        with self._lock:
            return {
                'fields': [b.to_dict() for b in self.get_all_fields()],
                'balance': self.inventory.balance,
                'inventory': self.inventory.snapshot()['items'],
                'workers': self.worker_counts(),
            }

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            fields = list(self._fields.values())
            return {
                'fields': len(fields),
                'fields_needing_water': sum(1 for b in fields if b.needs_water),
                'fields_needing_scan': sum(1 for b in fields if b.needs_scan),
                'fields_diseased': sum(1 for b in fields if b.diagnosed_disease or b.reported_disease),
                'fields_ready': sum(1 for b in fields if b.needs_harvest),
                'workers': len(self._workers),
                'missions_dispatched': sum(w.missions for w in self._workers.values()),
                'events': len(self._events),
            }
