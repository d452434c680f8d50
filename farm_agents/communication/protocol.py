"""
Farm Wire Protocol

Colon-delimited textual messages (one verb followed by its arguments)
carried as the payload of a message envelope. Verb strings are the
compatibility surface with any paired component and must stay bit-exact.
"""

import json
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from farm_world.catalog import CropType, DiseaseType, ItemType
from ..exceptions import MalformedMessage


class Performative(Enum):
    """Communicative act of an envelope"""
    REQUEST = "request"
    INFORM = "inform"
    AGREE = "agree"
    REFUSE = "refuse"
    CFP = "cfp"
    PROPOSE = "propose"
    ACCEPT_PROPOSAL = "accept_proposal"
    REJECT_PROPOSAL = "reject_proposal"


# Replies that belong to a conversation opened by the receiver
REPLY_PERFORMATIVES = frozenset({Performative.AGREE, Performative.REFUSE, Performative.PROPOSE})


class Verb(Enum):
    """Verbs understood by farm components"""
    # Field -> Planner
    SCAN = "SCAN"
    WATER = "WATER"
    DIAGNOSE = "DIAGNOSE"
    HARVEST = "HARVEST"

    # Planner -> Worker
    SCAN_FIELD = "SCAN_FIELD"
    DIAGNOSE_FIELD = "DIAGNOSE_FIELD"
    SPRAY_FIELD = "SPRAY_FIELD"
    HARVEST_FIELD = "HARVEST_FIELD"
    WATER_FIELD = "WATER_FIELD"

    # Worker -> Field
    SCANNED = "SCANNED"
    WATERED = "WATERED"
    TREATED = "TREATED"
    HARVESTED = "HARVESTED"

    # Weather -> Field
    WEATHER_MOISTURE = "WEATHER_MOISTURE"
    WEATHER_EVAP = "WEATHER_EVAP"

    # Worker -> Planner
    AGREED = "AGREED"
    SCAN_COMPLETE = "SCAN_COMPLETE"
    DIAGNOSIS_RESULT = "DIAGNOSIS_RESULT"
    SPRAY_COMPLETE = "SPRAY_COMPLETE"
    HARVEST_COMPLETE = "HARVEST_COMPLETE"
    WATER_COMPLETE = "WATER_COMPLETE"

    # Negotiation
    SUPPLY = "SUPPLY"
    BUY = "BUY"
    PROPOSE = "PROPOSE"
    BID = "BID"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    DELIVERED = "DELIVERED"
    RECEIVED = "RECEIVED"

    # Refusals
    LOW_BATTERY = "LOW_BATTERY"
    INSUFFICIENT_BUDGET = "INSUFFICIENT_BUDGET"
    NOT_SUPPORTED = "NOT_SUPPORTED"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    BUSY = "BUSY"

    # State query
    GET_STATE = "GET_STATE"
    STATE = "STATE"


def format_price(value: float) -> str:
    """Currency is always written with two decimals"""
    return f"{value:.2f}"


# ========== ARGUMENT CODECS ==========

@dataclass(frozen=True)
class ArgSpec:
    """How a single positional argument is decoded and encoded"""
    name: str
    parse: Callable[[str], Any]
    format: Callable[[Any], str] = str


def _parse_quantity(text: str) -> int:
    value = int(text)
    if value < 0:
        raise ValueError(f"negative quantity {value}")
    return value


def _parse_price(text: str) -> float:
    value = float(text)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"invalid price {text!r}")
    return round(value, 2)


def _parse_rate(text: str) -> float:
    value = float(text)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"invalid rate {text!r}")
    return value


def _parse_disease_or_none(text: str) -> Optional[DiseaseType]:
    if text == "NONE":
        return None
    return DiseaseType[text]


def _format_disease_or_none(value: Optional[DiseaseType]) -> str:
    return value.name if value is not None else "NONE"


def _enum_arg(name: str, enum_cls) -> ArgSpec:
    return ArgSpec(name, lambda text: enum_cls[text], lambda value: value.name)


FIELD_ID = ArgSpec('field_id', _parse_quantity)
QUANTITY = ArgSpec('quantity', _parse_quantity)
AMOUNT = ArgSpec('amount', _parse_quantity)
PRICE = ArgSpec('price', _parse_price, format_price)
ITEM = _enum_arg('item', ItemType)
CROP = _enum_arg('crop', CropType)
DISEASE = _enum_arg('disease', DiseaseType)
MOISTURE = ArgSpec('moisture', _parse_quantity)
HEALTH = ArgSpec('health', _parse_quantity)
CONFIDENCE = ArgSpec('confidence', _parse_quantity)
BONUS = ArgSpec('bonus', _parse_quantity)
RATE = ArgSpec('rate', _parse_rate, lambda value: str(float(value)))

ARGUMENT_SCHEMAS: Dict[Verb, Tuple[ArgSpec, ...]] = {
    Verb.SCAN: (FIELD_ID,),
    Verb.WATER: (FIELD_ID, AMOUNT),
    Verb.DIAGNOSE: (FIELD_ID, DISEASE, MOISTURE, HEALTH),
    Verb.HARVEST: (FIELD_ID,),

    Verb.SCAN_FIELD: (FIELD_ID,),
    Verb.DIAGNOSE_FIELD: (FIELD_ID, DISEASE, MOISTURE, HEALTH),
    Verb.SPRAY_FIELD: (FIELD_ID, ITEM),
    Verb.HARVEST_FIELD: (FIELD_ID, CROP),
    Verb.WATER_FIELD: (FIELD_ID, QUANTITY),

    Verb.SCANNED: (),
    Verb.WATERED: (AMOUNT,),
    Verb.TREATED: (),
    Verb.HARVESTED: (),

    Verb.WEATHER_MOISTURE: (BONUS,),
    Verb.WEATHER_EVAP: (RATE,),

    Verb.AGREED: (FIELD_ID,),
    Verb.SCAN_COMPLETE: (FIELD_ID,),
    Verb.DIAGNOSIS_RESULT: (FIELD_ID, ArgSpec('disease', _parse_disease_or_none, _format_disease_or_none),
                            CONFIDENCE),
    Verb.SPRAY_COMPLETE: (FIELD_ID,),
    Verb.HARVEST_COMPLETE: (FIELD_ID, CROP),
    Verb.WATER_COMPLETE: (FIELD_ID, AMOUNT),

    Verb.SUPPLY: (ITEM, QUANTITY),
    Verb.BUY: (ITEM, QUANTITY),
    Verb.PROPOSE: (ITEM, QUANTITY, PRICE),
    Verb.BID: (ITEM, QUANTITY, PRICE),
    Verb.ACCEPT: (ITEM, QUANTITY, PRICE),
    Verb.REJECT: (),
    Verb.DELIVERED: (ITEM, QUANTITY),
    Verb.RECEIVED: (ITEM, QUANTITY),

    Verb.LOW_BATTERY: (),
    Verb.INSUFFICIENT_BUDGET: (),
    Verb.NOT_SUPPORTED: (ITEM,),
    Verb.OUT_OF_STOCK: (ITEM,),
    Verb.BUSY: (),

    Verb.GET_STATE: (),
}


@dataclass
class Command:
    """A decoded payload"""
    verb: Verb
    args: Tuple[Any, ...]
    raw: str

    def arg(self, name: str) -> Any:
        """Get an argument by its schema name"""
        for spec, value in zip(ARGUMENT_SCHEMAS.get(self.verb, ()), self.args):
            if spec.name == name:
                return value
        raise KeyError(name)


def encode(verb: Verb, *args) -> str:
    """
    Encode a verb and its arguments into a payload string.

    Raises:
        ValueError: if the number of arguments does not match the verb
    """
    if verb is Verb.STATE:
        if len(args) != 1:
            raise ValueError("STATE takes exactly one argument")
        return f"{verb.value}:{json.dumps(args[0], sort_keys=True)}"

    schema = ARGUMENT_SCHEMAS[verb]
    if len(args) != len(schema):
        raise ValueError(f"{verb.value} expects {len(schema)} arguments, got {len(args)}")

    parts = [verb.value] + [spec.format(value) for spec, value in zip(schema, args)]
    return ":".join(parts)


def parse_payload(payload: str) -> Command:
    """
    Decode a payload string.

    Raises:
        MalformedMessage: unknown verb, wrong arity or invalid argument
    """
    if not isinstance(payload, str) or not payload:
        raise MalformedMessage("empty payload", payload)

    head, _, rest = payload.partition(":")
    try:
        verb = Verb(head)
    except ValueError:
        raise MalformedMessage(f"unknown verb {head!r}", payload) from None

    if verb is Verb.STATE:
        try:
            return Command(verb, (json.loads(rest),), payload)
        except ValueError as e:
            raise MalformedMessage(f"invalid STATE document: {e}", payload) from None

    schema = ARGUMENT_SCHEMAS[verb]
    parts = rest.split(":") if rest else []
    if len(parts) != len(schema):
        raise MalformedMessage(
            f"{verb.value} expects {len(schema)} arguments, got {len(parts)}", payload
        )

    args = []
    for spec, text in zip(schema, parts):
        try:
            args.append(spec.parse(text))
        except (KeyError, ValueError) as e:
            raise MalformedMessage(f"invalid {spec.name} {text!r} in {verb.value}: {e}", payload) from None

    return Command(verb, tuple(args), payload)


# ========== ENVELOPE ==========

@dataclass
class Envelope:
    """Message envelope: routing data around an opaque payload"""
    sender: str
    receiver: str
    performative: Performative
    payload: str
    conversation_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Channel-layer friendly representation"""
        return {
            'type': 'farm.message',
            'sender': self.sender,
            'receiver': self.receiver,
            'performative': self.performative.value,
            'payload': self.payload,
            'conversation_id': self.conversation_id,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Envelope':
        """
        Rebuild an envelope received from the channel layer.

        Raises:
            MalformedMessage: missing fields or unknown performative
        """
        try:
            return cls(
                sender=str(data['sender']),
                receiver=str(data['receiver']),
                performative=Performative(data['performative']),
                payload=str(data['payload']),
                conversation_id=data.get('conversation_id'),
                timestamp=data.get('timestamp') or datetime.now().isoformat(),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedMessage(f"invalid envelope: {e}", data) from None

    def reply(self, performative: Performative, payload: str) -> 'Envelope':
        """Create a reply in the same conversation"""
        return Envelope(
            sender=self.receiver,
            receiver=self.sender,
            performative=performative,
            payload=payload,
            conversation_id=self.conversation_id,
        )

    @property
    def verb(self) -> Optional[str]:
        return self.payload.split(":", 1)[0] if self.payload else None


def new_conversation_id(prefix: str = "conv") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class FarmProtocol:
    """
    Farm Protocol

    Provides methods to build payloads for every conversation in the farm.
    """

    # Field -> Planner
    @staticmethod
    def scan_request(field_id: int) -> str:
        return encode(Verb.SCAN, field_id)

    @staticmethod
    def water_request(field_id: int, amount_needed: int) -> str:
        return encode(Verb.WATER, field_id, amount_needed)

    @staticmethod
    def diagnose_request(field_id: int, disease: DiseaseType, moisture: int, health: int) -> str:
        return encode(Verb.DIAGNOSE, field_id, disease, moisture, health)

    @staticmethod
    def harvest_request(field_id: int) -> str:
        return encode(Verb.HARVEST, field_id)

    # Planner -> Worker
    @staticmethod
    def scan_field(field_id: int) -> str:
        return encode(Verb.SCAN_FIELD, field_id)

    @staticmethod
    def diagnose_field(field_id: int, disease: DiseaseType, moisture: int, health: int) -> str:
        return encode(Verb.DIAGNOSE_FIELD, field_id, disease, moisture, health)

    @staticmethod
    def spray_field(field_id: int, chemical: ItemType) -> str:
        return encode(Verb.SPRAY_FIELD, field_id, chemical)

    @staticmethod
    def harvest_field(field_id: int, crop: CropType) -> str:
        return encode(Verb.HARVEST_FIELD, field_id, crop)

    @staticmethod
    def water_field(field_id: int, units: int) -> str:
        return encode(Verb.WATER_FIELD, field_id, units)

    # Worker -> Field
    @staticmethod
    def scanned() -> str:
        return encode(Verb.SCANNED)

    @staticmethod
    def watered(amount: int) -> str:
        return encode(Verb.WATERED, amount)

    @staticmethod
    def treated() -> str:
        return encode(Verb.TREATED)

    @staticmethod
    def harvested() -> str:
        return encode(Verb.HARVESTED)

    # Weather -> Field
    @staticmethod
    def weather_moisture(bonus: int) -> str:
        return encode(Verb.WEATHER_MOISTURE, bonus)

    @staticmethod
    def weather_evaporation(rate: float) -> str:
        return encode(Verb.WEATHER_EVAP, rate)

    # Worker -> Planner
    @staticmethod
    def agreed(field_id: int) -> str:
        return encode(Verb.AGREED, field_id)

    @staticmethod
    def scan_complete(field_id: int) -> str:
        return encode(Verb.SCAN_COMPLETE, field_id)

    @staticmethod
    def diagnosis_result(field_id: int, disease: Optional[DiseaseType], confidence: int) -> str:
        return encode(Verb.DIAGNOSIS_RESULT, field_id, disease, confidence)

    @staticmethod
    def spray_complete(field_id: int) -> str:
        return encode(Verb.SPRAY_COMPLETE, field_id)

    @staticmethod
    def harvest_complete(field_id: int, crop: CropType) -> str:
        return encode(Verb.HARVEST_COMPLETE, field_id, crop)

    @staticmethod
    def water_complete(field_id: int, amount: int) -> str:
        return encode(Verb.WATER_COMPLETE, field_id, amount)

    # Negotiation
    @staticmethod
    def supply_cfp(item: ItemType, quantity: int) -> str:
        return encode(Verb.SUPPLY, item, quantity)

    @staticmethod
    def buy_cfp(crop_item: ItemType, quantity: int) -> str:
        return encode(Verb.BUY, crop_item, quantity)

    @staticmethod
    def propose(item: ItemType, quantity: int, price: float) -> str:
        return encode(Verb.PROPOSE, item, quantity, price)

    @staticmethod
    def bid(crop_item: ItemType, quantity: int, price: float) -> str:
        return encode(Verb.BID, crop_item, quantity, price)

    @staticmethod
    def accept(item: ItemType, quantity: int, price: float) -> str:
        return encode(Verb.ACCEPT, item, quantity, price)

    @staticmethod
    def reject() -> str:
        return encode(Verb.REJECT)

    @staticmethod
    def delivered(item: ItemType, quantity: int) -> str:
        return encode(Verb.DELIVERED, item, quantity)

    @staticmethod
    def received(item: ItemType, quantity: int) -> str:
        return encode(Verb.RECEIVED, item, quantity)

    # Refusals
    @staticmethod
    def low_battery() -> str:
        return encode(Verb.LOW_BATTERY)

    @staticmethod
    def insufficient_budget() -> str:
        return encode(Verb.INSUFFICIENT_BUDGET)

    @staticmethod
    def not_supported(item: ItemType) -> str:
        return encode(Verb.NOT_SUPPORTED, item)

    @staticmethod
    def out_of_stock(item: ItemType) -> str:
        return encode(Verb.OUT_OF_STOCK, item)

    @staticmethod
    def busy() -> str:
        return encode(Verb.BUSY)

    # State query
    @staticmethod
    def get_state() -> str:
        return encode(Verb.GET_STATE)

    @staticmethod
    def state(document: Dict[str, Any]) -> str:
        return encode(Verb.STATE, document)
