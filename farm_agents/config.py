"""
Farm configuration

All durations are expressed in time units; `time_unit` converts them to
seconds so the same farm can run in real time or much faster in tests.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import yaml

from farm_world.catalog import CropType, ItemType
from .exceptions import ConfigError

WORKER_ROLES = ('scanner', 'sprayer', 'harvester', 'irrigator')


@dataclass
class FieldSpec:
    field_id: int
    crop: str = 'CORN'


@dataclass
class SupplierSpec:
    name: str
    items: List[str] = field(default_factory=list)


@dataclass
class BuyerSpec:
    name: str
    budget: float = 500.0


@dataclass
class FarmConfig:
    """Parameters of a farm simulation"""
    time_unit: float = 1.0

    # Periods
    field_tick_period: float = 1.0
    deliberation_period: float = 1.0
    executor_period: float = 2.0
    summary_period: float = 3.0

    # Negotiation / missions
    negotiation_deadline: float = 2.0
    answer_expiry: float = 10.0
    travel_time: float = 1.5
    action_time: float = 1.0
    charge_time: float = 5.0
    low_battery: int = 20

    # Field dynamics
    disease_probability: float = 0.05
    rotate_crops: bool = False

    # Weather
    weather_enabled: bool = False
    weather_period: float = 4.0

    # Inventory
    inventory_capacity: int = 100
    initial_balance: float = 1000.0
    initial_stock: Dict[str, int] = field(default_factory=lambda: {
        'WATER': 20, 'PESTICIDE_A': 5, 'FUNGICIDE_X': 3, 'ANTIBIOTIC_Z': 3,
    })
    minimum_stock: Dict[str, int] = field(default_factory=lambda: {'WATER': 3})
    restock_quantity: int = 5

    # Population
    fields: List[FieldSpec] = field(default_factory=lambda: [
        FieldSpec(1, 'CORN'), FieldSpec(2, 'WHEAT'), FieldSpec(3, 'RICE'),
    ])
    workers: Dict[str, int] = field(default_factory=lambda: {
        'scanner': 2, 'sprayer': 1, 'harvester': 1, 'irrigator': 1,
    })
    suppliers: List[SupplierSpec] = field(default_factory=lambda: [
        SupplierSpec('Supplier-1', ['WATER', 'PESTICIDE_A']),
        SupplierSpec('Supplier-2', ['FUNGICIDE_X', 'ANTIBIOTIC_Z']),
    ])
    buyers: List[BuyerSpec] = field(default_factory=lambda: [
        BuyerSpec('Client-1', 500.0), BuyerSpec('Client-2', 500.0),
    ])

    # Dashboard
    summary_top_n: int = 5
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def seconds(self, units: float) -> float:
        """Convert time units to seconds"""
        return units * self.time_unit

    def validate(self):
        """
        Check the configuration.

        Raises:
            ConfigError: on any invalid value
        """
        if self.time_unit <= 0:
            raise ConfigError("time_unit must be positive")

        for name in ('field_tick_period', 'deliberation_period', 'executor_period',
                     'summary_period', 'negotiation_deadline', 'answer_expiry', 'weather_period'):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")

        for name in ('travel_time', 'action_time', 'charge_time'):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")

        if not 0 <= self.disease_probability <= 1:
            raise ConfigError("disease_probability must be within [0, 1]")
        if self.inventory_capacity <= 0:
            raise ConfigError("inventory_capacity must be positive")
        if self.initial_balance < 0:
            raise ConfigError("initial_balance must not be negative")

        for item in list(self.initial_stock) + list(self.minimum_stock):
            if item not in ItemType.__members__:
                raise ConfigError(f"unknown item {item!r}")
        if sum(self.initial_stock.values()) > self.inventory_capacity:
            raise ConfigError("initial stock exceeds inventory capacity")

        seen = set()
        for spec in self.fields:
            if spec.crop not in CropType.__members__:
                raise ConfigError(f"unknown crop {spec.crop!r} for field {spec.field_id}")
            if spec.field_id in seen:
                raise ConfigError(f"duplicate field id {spec.field_id}")
            seen.add(spec.field_id)

        for role, count in self.workers.items():
            if role not in WORKER_ROLES:
                raise ConfigError(f"unknown worker role {role!r}")
            if count < 0:
                raise ConfigError(f"negative worker count for {role}")

        for supplier in self.suppliers:
            for item in supplier.items:
                if item not in ItemType.__members__:
                    raise ConfigError(f"unknown item {item!r} for {supplier.name}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FarmConfig':
        """Build a configuration from plain data (for example parsed YAML)"""
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

        try:
            if 'fields' in data:
                data['fields'] = [
                    f if isinstance(f, FieldSpec) else FieldSpec(**f) for f in data['fields']
                ]
            if 'suppliers' in data:
                data['suppliers'] = [
                    s if isinstance(s, SupplierSpec) else SupplierSpec(**s) for s in data['suppliers']
                ]
            if 'buyers' in data:
                data['buyers'] = [
                    b if isinstance(b, BuyerSpec) else BuyerSpec(**b) for b in data['buyers']
                ]
        except TypeError as e:
            raise ConfigError(f"invalid entry: {e}") from None

        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str) -> FarmConfig:
    """
    Load a farm configuration from a YAML file.

    Raises:
        ConfigError: if the file is not a mapping or has invalid values
    """
    with open(path, 'r', encoding='utf-8') as fh:
        data = yaml.safe_load(fh) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    return FarmConfig.from_dict(data.get('farm', data))
