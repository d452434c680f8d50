import pytest

from farm_agents.communication.protocol import (
    Envelope, FarmProtocol, Performative, Verb, encode, parse_payload,
)
from farm_agents.exceptions import MalformedMessage
from farm_world.catalog import CropType, DiseaseType, ItemType


def test_payloads_are_bit_exact():
    assert FarmProtocol.water_request(1, 75) == 'WATER:1:75'
    assert FarmProtocol.diagnose_request(2, DiseaseType.APHIDS, 40, 60) == 'DIAGNOSE:2:APHIDS:40:60'
    assert FarmProtocol.spray_field(2, ItemType.PESTICIDE_A) == 'SPRAY_FIELD:2:PESTICIDE_A'
    assert FarmProtocol.harvest_field(3, CropType.RICE) == 'HARVEST_FIELD:3:RICE'
    assert FarmProtocol.diagnosis_result(2, None, 95) == 'DIAGNOSIS_RESULT:2:NONE:95'
    assert FarmProtocol.propose(ItemType.WATER, 5, 48.5) == 'PROPOSE:WATER:5:48.50'
    assert FarmProtocol.accept(ItemType.CORN_CROP, 1, 45) == 'ACCEPT:CORN_CROP:1:45.00'
    assert FarmProtocol.out_of_stock(ItemType.FUNGICIDE_X) == 'OUT_OF_STOCK:FUNGICIDE_X'
    assert FarmProtocol.scanned() == 'SCANNED'
    assert FarmProtocol.low_battery() == 'LOW_BATTERY'
    assert FarmProtocol.weather_moisture(10) == 'WEATHER_MOISTURE:10'
    assert FarmProtocol.weather_evaporation(1.5) == 'WEATHER_EVAP:1.5'
    assert FarmProtocol.weather_evaporation(1) == 'WEATHER_EVAP:1.0'


def test_parse_decodes_typed_arguments():
    command = parse_payload('DIAGNOSE:1:APHIDS:40:60')
    assert command.verb is Verb.DIAGNOSE
    assert command.arg('disease') is DiseaseType.APHIDS
    assert command.arg('moisture') == 40
    assert command.arg('health') == 60

    bid = parse_payload('BID:CORN_CROP:1:45.678')
    assert bid.arg('item') is ItemType.CORN_CROP
    assert bid.arg('price') == 45.68

    healthy = parse_payload('DIAGNOSIS_RESULT:2:NONE:95')
    assert healthy.arg('disease') is None

    assert parse_payload('WEATHER_EVAP:0.2').arg('rate') == 0.2
    assert parse_payload('WEATHER_MOISTURE:5').arg('bonus') == 5

    with pytest.raises(KeyError):
        bid.arg('field_id')


def test_state_document_round_trip():
    document = {'field_id': 1, 'crop_type': 'CORN', 'moisture': 50}
    payload = FarmProtocol.state(document)

    assert payload.startswith('STATE:')
    assert parse_payload(payload).args[0] == document


@pytest.mark.parametrize('payload', [
    '',
    'FLY:1',
    'WATER:1',
    'WATER:x:10',
    'WATER:1:-5',
    'SPRAY_FIELD:1:SOAP',
    'PROPOSE:WATER:5:-1',
    'PROPOSE:WATER:5:nan',
    'SCANNED:1',
    'WEATHER_EVAP:-0.5',
    'WEATHER_EVAP:inf',
    'WEATHER_MOISTURE:-5',
    'STATE:{bad',
])
def test_malformed_payloads_are_rejected(payload):
    with pytest.raises(MalformedMessage):
        parse_payload(payload)


def test_encode_checks_arity():
    with pytest.raises(ValueError):
        encode(Verb.WATER, 1)


def test_envelope_round_trip_and_reply():
    envelope = Envelope('Planner', 'Irrigator-1', Performative.REQUEST, 'WATER_FIELD:1:3', 'mission-1')

    restored = Envelope.from_dict(envelope.to_dict())
    assert restored == envelope

    reply = restored.reply(Performative.AGREE, FarmProtocol.agreed(1))
    assert (reply.sender, reply.receiver) == ('Irrigator-1', 'Planner')
    assert reply.conversation_id == 'mission-1'
    assert reply.verb == 'AGREED'


def test_invalid_envelope_raises():
    with pytest.raises(MalformedMessage):
        Envelope.from_dict({'sender': 'Planner'})
    with pytest.raises(MalformedMessage):
        Envelope.from_dict({'sender': 'a', 'receiver': 'b', 'performative': 'shout', 'payload': 'SCAN:1'})
