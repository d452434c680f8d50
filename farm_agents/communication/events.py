"""
Dashboard events

Structured, one-way events published for any dashboard or GUI listening
on the farm's channel-layer group.
"""

from enum import Enum
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, field
from datetime import datetime


class EventKind(Enum):
    """Types of dashboard events"""
    SIMULATION_STARTED = "simulation_started"
    SIMULATION_COMPLETED = "simulation_completed"
    SIMULATION_ERROR = "simulation_error"

    FIELD_UPDATE = "field_update"
    WORKER_UPDATE = "worker_update"
    INVENTORY_UPDATE = "inventory_update"
    BDI_SUMMARY = "bdi_summary"
    MARKET_EVENT = "market_event"
    WEATHER_UPDATE = "weather_update"
    LOG = "log"


@dataclass
class DashboardEvent:
    """Base dashboard event"""
    type: str
    timestamp: str
    version: str = field(default="1.0", init=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)


@dataclass
class FieldUpdateEvent(DashboardEvent):
    """Field state after a tick or a completion"""
    field: Dict[str, Any]

    def __init__(self, field_state: Dict[str, Any]):
        super().__init__(type=EventKind.FIELD_UPDATE.value, timestamp=datetime.now().isoformat())
        self.field = field_state


@dataclass
class WorkerUpdateEvent(DashboardEvent):
    """Worker lifecycle transition"""
    worker: Dict[str, Any]

    def __init__(self, worker_state: Dict[str, Any]):
        super().__init__(type=EventKind.WORKER_UPDATE.value, timestamp=datetime.now().isoformat())
        self.worker = worker_state


@dataclass
class BdiSummaryEvent(DashboardEvent):
    """Snapshot of the planner's beliefs, desires and top intentions"""
    beliefs: Dict[str, Any]
    desires: List[str]
    intentions: List[Dict[str, Any]]

    def __init__(self, beliefs: Dict, desires: List[str], intentions: List[Dict]):
        super().__init__(type=EventKind.BDI_SUMMARY.value, timestamp=datetime.now().isoformat())
        self.beliefs = beliefs
        self.desires = desires
        self.intentions = intentions


@dataclass
class MarketEvent(DashboardEvent):
    """Negotiation milestone (call, proposal, award, no deal)"""
    stage: str
    item: str
    quantity: int
    details: Dict[str, Any]

    def __init__(self, stage: str, item: str, quantity: int, **details):
        super().__init__(type=EventKind.MARKET_EVENT.value, timestamp=datetime.now().isoformat())
        self.stage = stage
        self.item = item
        self.quantity = quantity
        self.details = details


@dataclass
class SimulationCompletedEvent(DashboardEvent):
    """Simulation finished"""
    farm_id: str
    status: Dict[str, Any]

    def __init__(self, farm_id: str, status: Dict):
        super().__init__(type=EventKind.SIMULATION_COMPLETED.value, timestamp=datetime.now().isoformat())
        self.farm_id = farm_id
        self.status = status


@dataclass
class ErrorEvent(DashboardEvent):
    """Error event"""
    error: str
    details: Optional[Dict[str, Any]] = None

    def __init__(self, error: str, **details):
        super().__init__(type=EventKind.SIMULATION_ERROR.value, timestamp=datetime.now().isoformat())
        self.error = error
        self.details = details or None


class DashboardProtocol:
    """Builds dashboard event dictionaries"""

    VERSION = "1.0"

    @staticmethod
    def field_update(field_state: Dict[str, Any]) -> Dict[str, Any]:
        return FieldUpdateEvent(field_state).to_dict()

    @staticmethod
    def worker_update(worker_state: Dict[str, Any]) -> Dict[str, Any]:
        return WorkerUpdateEvent(worker_state).to_dict()

    @staticmethod
    def inventory_update(snapshot: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'type': EventKind.INVENTORY_UPDATE.value,
            'inventory': snapshot,
            'timestamp': datetime.now().isoformat(),
            'version': DashboardProtocol.VERSION,
        }

    @staticmethod
    def bdi_summary(beliefs: Dict, desires: List[str], intentions: List[Dict]) -> Dict[str, Any]:
        return BdiSummaryEvent(beliefs, desires, intentions).to_dict()

    @staticmethod
    def market_event(stage: str, item: str, quantity: int, **details) -> Dict[str, Any]:
        return MarketEvent(stage, item, quantity, **details).to_dict()

    @staticmethod
    def weather_update(weather: str, moisture_bonus: int, evaporation: float, remaining: int) -> Dict[str, Any]:
        return {
            'type': EventKind.WEATHER_UPDATE.value,
            'weather': weather,
            'moisture_bonus': moisture_bonus,
            'evaporation': evaporation,
            'remaining': remaining,
            'timestamp': datetime.now().isoformat(),
            'version': DashboardProtocol.VERSION,
        }

    @staticmethod
    def log(source: str, text: str) -> Dict[str, Any]:
        return {
            'type': EventKind.LOG.value,
            'source': source,
            'text': text,
            'timestamp': datetime.now().isoformat(),
            'version': DashboardProtocol.VERSION,
        }

    @staticmethod
    def simulation_started(farm_id: str, agents: List[str]) -> Dict[str, Any]:
        return {
            'type': EventKind.SIMULATION_STARTED.value,
            'farm_id': farm_id,
            'agents': agents,
            'timestamp': datetime.now().isoformat(),
            'version': DashboardProtocol.VERSION,
        }

    @staticmethod
    def simulation_completed(farm_id: str, status: Dict) -> Dict[str, Any]:
        return SimulationCompletedEvent(farm_id, status).to_dict()

    @staticmethod
    def error(error: str, **details) -> Dict[str, Any]:
        return ErrorEvent(error, **details).to_dict()
