import asyncio

from farm_agents.config import FarmConfig
from farm_agents.planner.intentions import IntentionType
from farm_agents.simulation import build_model, run_simulation
from farm_world.catalog import CropType, ItemType

DASHBOARD = 'dashboard.test'


async def _drain(layer, channel):
    messages = []
    while True:
        try:
            messages.append(await asyncio.wait_for(layer.receive(channel), 0.05))
        except asyncio.TimeoutError:
            return messages


def test_thirsty_field_is_watered_once():
    config = FarmConfig(
        time_unit=0.02,
        disease_probability=0.0,
        fields=[],
        workers={'irrigator': 1},
    )
    model = build_model(config, farm_id='test', send_updates=True, seed=11)
    field = model.register_field(1, CropType.CORN, moisture=27)
    irrigator = model.registry.get('Irrigator-1')

    async def scenario():
        layer = model.bus.channel_layer
        await layer.group_add(model.broadcaster.group_name, DASHBOARD)
        status = await model.simulate(25)
        return status, await _drain(layer, DASHBOARD)

    status, messages = asyncio.run(scenario())

    assert field.requests_sent == 1
    assert field.field_state.moisture > 30
    assert not field.field_state.water_requested
    assert irrigator.missions_completed == 1
    assert irrigator.battery == 75
    assert model.inventory.quantity(ItemType.WATER) == 17
    assert not model.planner.intentions.is_pending((IntentionType.WATER, 1))
    assert status['planner']['dispatched'] == 1
    assert status['trips'] == 2
    assert status['agents']['fields'] == 1

    kinds = {message['data']['type'] for message in messages}
    assert {'simulation_started', 'field_update', 'worker_update', 'bdi_summary',
            'simulation_completed'} <= kinds


def test_run_simulation_from_sync_code():
    config = FarmConfig(time_unit=0.01, disease_probability=0.0)

    status = run_simulation(config, duration=10, send_updates=False, seed=3)

    assert status['agents'] == {'total': 13, 'fields': 3, 'workers': 5, 'suppliers': 2, 'buyers': 2}
    assert status['messages']['dropped'] == 0
    assert len(status['fields']) == 3
