import asyncio

from farm_agents.agents_core import WorkerState
from farm_agents.communication.protocol import FarmProtocol, Performative
from farm_agents.config import FarmConfig, FieldSpec
from farm_agents.simulation import build_model
from farm_world.catalog import CropType, DiseaseType, ItemType

from farm_helpers import build_farm, request, wait_until


def _ask(model, worker, payload, conversation_id='mission-1'):
    """Hand a mission request to a worker and return its answer to the planner"""
    async def scenario():
        await worker.execute(request('Planner', worker.name, payload, conversation_id))
        answer = await model.bus.receive('Planner', timeout=1.0)
        await model.shutdown()
        return answer
    return asyncio.run(scenario())


def test_low_battery_scanner_refuses_and_stays_idle():
    model = build_farm(fields=[FieldSpec(1, 'CORN')])
    drone = model.registry.get('Drone-1')
    drone.battery = 15

    answer = _ask(model, drone, FarmProtocol.scan_field(1))

    assert answer.performative is Performative.REFUSE
    assert answer.payload == 'LOW_BATTERY'
    assert answer.conversation_id == 'mission-1'
    assert drone.worker_state is WorkerState.IDLE
    assert drone.missions_refused == 1


def test_battery_below_mission_cost_is_refused():
    model = build_farm(fields=[FieldSpec(1, 'CORN')])
    drone = model.registry.get('Drone-1')
    drone.battery = 25

    assert drone.required_battery == 30
    assert _ask(model, drone, FarmProtocol.scan_field(1)).payload == 'LOW_BATTERY'


def test_required_battery_per_role():
    model = build_farm(fields=[])
    required = {worker.role: worker.required_battery for worker in model.workers}

    assert required == {'scanner': 30, 'sprayer': 15, 'harvester': 20, 'irrigator': 25}


def test_sprayer_without_chemical_reports_out_of_stock():
    model = build_farm(fields=[FieldSpec(1, 'CORN')], initial_stock={'WATER': 20})
    sprayer = model.registry.get('Sprayer-1')

    answer = _ask(model, sprayer, FarmProtocol.spray_field(1, ItemType.PESTICIDE_A))

    assert answer.performative is Performative.REFUSE
    assert answer.payload == 'OUT_OF_STOCK:PESTICIDE_A'
    assert sprayer.worker_state is WorkerState.IDLE


def test_irrigator_mission_waters_field_and_reports():
    model = build_farm(fields=[FieldSpec(1, 'CORN')])
    irrigator = model.registry.get('Irrigator-1')

    async def scenario():
        await irrigator.execute(request('Planner', irrigator.name, FarmProtocol.water_field(1, 3), 'mission-7'))
        agree = await model.bus.receive('Planner', timeout=1.0)
        water_after_loading = model.inventory.quantity(ItemType.WATER)
        finished = await wait_until(lambda: irrigator.missions_completed == 1)
        report = await model.bus.receive('Planner', timeout=1.0)
        watered = await model.bus.receive('Field-1', timeout=1.0)
        await model.shutdown()
        return agree, water_after_loading, finished, report, watered

    agree, water_after_loading, finished, report, watered = asyncio.run(scenario())

    assert agree.performative is Performative.AGREE
    assert agree.payload == 'AGREED:1'
    assert water_after_loading == 17
    assert finished
    assert report.payload == 'WATER_COMPLETE:1:90'
    assert report.conversation_id == 'mission-7'
    assert watered.payload == 'WATERED:90'
    assert irrigator.battery == 75
    assert irrigator.location == 'Base'
    assert irrigator.worker_state is WorkerState.IDLE


def test_irrigator_carries_only_available_water():
    model = build_farm(fields=[FieldSpec(1, 'CORN')], initial_stock={'WATER': 1})
    irrigator = model.registry.get('Irrigator-1')

    async def scenario():
        await irrigator.execute(request('Planner', irrigator.name, FarmProtocol.water_field(1, 3)))
        await wait_until(lambda: irrigator.missions_completed == 1)
        await model.bus.receive('Planner', timeout=1.0)
        report = await model.bus.receive('Planner', timeout=1.0)
        await model.shutdown()
        return report

    assert asyncio.run(scenario()).payload == 'WATER_COMPLETE:1:30'
    assert model.inventory.quantity(ItemType.WATER) == 0


def test_busy_worker_refuses_second_mission():
    model = build_farm(fields=[FieldSpec(1, 'CORN'), FieldSpec(2, 'WHEAT')], travel_time=50.0)
    harvester = model.registry.get('Harvester-1')

    async def scenario():
        await harvester.execute(request('Planner', harvester.name, FarmProtocol.harvest_field(1, CropType.CORN), 'm-1'))
        await harvester.execute(request('Planner', harvester.name, FarmProtocol.harvest_field(2, CropType.WHEAT), 'm-2'))
        first = await model.bus.receive('Planner', timeout=1.0)
        second = await model.bus.receive('Planner', timeout=1.0)
        state = harvester.worker_state
        await model.shutdown()
        return first, second, state

    first, second, state = asyncio.run(scenario())

    assert first.performative is Performative.AGREE
    assert second.performative is Performative.REFUSE
    assert second.payload == 'BUSY'
    assert second.conversation_id == 'm-2'
    assert state is not WorkerState.IDLE


def test_scanner_diagnosis_mission():
    model = build_farm(fields=[FieldSpec(1, 'CORN')])
    drone = model.registry.get('Drone-1')
    payload = FarmProtocol.diagnose_field(1, DiseaseType.APHIDS, 40, 60)

    async def scenario():
        await drone.execute(request('Planner', drone.name, payload))
        await wait_until(lambda: drone.missions_completed == 1)
        await model.bus.receive('Planner', timeout=1.0)
        result = await model.bus.receive('Planner', timeout=1.0)
        scanned = await model.bus.receive('Field-1', timeout=1.0)
        await model.shutdown()
        return result, scanned

    result, scanned = asyncio.run(scenario())

    assert result.payload == 'DIAGNOSIS_RESULT:1:APHIDS:90'
    assert scanned.payload == 'SCANNED'
    assert drone.battery == 70
    assert drone.diagnoses == 1


def test_harvester_stores_crop():
    model = build_farm(fields=[FieldSpec(1, 'CORN')])
    harvester = model.registry.get('Harvester-1')

    async def scenario():
        await harvester.execute(request('Planner', harvester.name, FarmProtocol.harvest_field(1, CropType.CORN)))
        await wait_until(lambda: harvester.missions_completed == 1)
        await model.bus.receive('Planner', timeout=1.0)
        result = await model.bus.receive('Planner', timeout=1.0)
        await model.shutdown()
        return result

    assert asyncio.run(scenario()).payload == 'HARVEST_COMPLETE:1:CORN'
    assert model.inventory.quantity(ItemType.CORN_CROP) == 1


def test_idle_worker_with_low_battery_charges():
    model = build_farm(fields=[])
    drone = model.registry.get('Drone-1')
    drone.battery = 10

    async def scenario():
        await drone.check_battery()
        charging = drone.worker_state
        refusal = drone.refusal_reason()
        recharged = await wait_until(lambda: drone.worker_state is WorkerState.IDLE)
        await model.shutdown()
        return charging, refusal, recharged

    charging, refusal, recharged = asyncio.run(scenario())

    assert charging is WorkerState.CHARGING
    assert refusal == 'LOW_BATTERY'
    assert recharged
    assert drone.battery == 100
    assert drone.charges == 1


def test_harvester_reports_crop_lost_to_full_storage():
    config = FarmConfig(time_unit=0.01, disease_probability=0.0, fields=[FieldSpec(1, 'CORN')],
                        inventory_capacity=31)
    model = build_model(config, farm_id='harvest', seed=7)
    harvester = model.registry.get('Harvester-1')
    layer = model.bus.channel_layer

    async def scenario():
        await layer.group_add(model.broadcaster.group_name, 'dashboard.harvest')
        await harvester.execute(request('Planner', harvester.name, FarmProtocol.harvest_field(1, CropType.CORN)))
        await wait_until(lambda: harvester.missions_completed == 1)
        await model.bus.receive('Planner', timeout=1.0)
        result = await model.bus.receive('Planner', timeout=1.0)
        harvested = await model.bus.receive('Field-1', timeout=1.0)
        events = []
        while True:
            try:
                events.append((await asyncio.wait_for(layer.receive('dashboard.harvest'), 0.05))['data'])
            except asyncio.TimeoutError:
                break
        await model.shutdown()
        return result, harvested, events

    result, harvested, events = asyncio.run(scenario())

    assert result.payload == 'HARVEST_COMPLETE:1:CORN'
    assert harvested.payload == 'HARVESTED'
    assert model.inventory.quantity(ItemType.CORN_CROP) == 0
    assert harvester.crops_discarded == 1
    assert harvester.snapshot()['crops_discarded'] == 1
    assert any(e['type'] == 'log' and 'CORN_CROP' in e['text'] for e in events)
