import asyncio

from farm_agents.config import FieldSpec
from farm_world.catalog import WeatherType

from farm_helpers import build_farm


class _Rolls:
    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def _weather_farm(*rolls):
    model = build_farm(fields=[FieldSpec(1, 'CORN')], weather_enabled=True)
    model.random = _Rolls(*rolls)
    return model


def test_weather_roll_is_weighted_towards_dry_spells():
    assert WeatherType.from_roll(0.0) is WeatherType.SUNNY
    assert WeatherType.from_roll(0.35) is WeatherType.CLOUDY
    assert WeatherType.from_roll(0.7) is WeatherType.RAINY
    assert WeatherType.from_roll(0.85) is WeatherType.STORM
    assert WeatherType.from_roll(0.999) is WeatherType.STORM


def test_storm_sets_evaporation_and_waters_fields():
    model = _weather_farm(0.9, 0.0)
    field = model.registry.get('Field-1')

    async def scenario():
        await model.weather.tick()
        received = []
        for _ in range(2):
            envelope = await model.bus.receive('Field-1', timeout=1.0)
            received.append(envelope.payload)
            await field.execute(envelope)
        await model.shutdown()
        return received

    received = asyncio.run(scenario())

    assert received == ['WEATHER_EVAP:0.2', 'WEATHER_MOISTURE:10']
    assert model.weather.weather is WeatherType.STORM
    assert model.weather.remaining == 3
    assert field.field_state.evaporation == 0.2
    assert field.field_state.moisture == 90


def test_dry_weather_only_changes_evaporation_once_per_spell():
    model = _weather_farm(0.1, 0.99)

    async def scenario():
        await model.weather.tick()
        first = await model.bus.receive('Field-1', timeout=1.0)
        await model.weather.tick()
        second = await model.bus.receive('Field-1', timeout=0.05)
        await model.shutdown()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.payload == 'WEATHER_EVAP:1.5'
    assert second is None
    assert model.weather.weather is WeatherType.SUNNY
    assert model.weather.remaining == 6
    assert model.weather.changes == 1


def test_weather_agent_is_optional():
    assert build_farm(fields=[]).weather is None

    model = build_farm(fields=[], weather_enabled=True)

    assert model.registry.by_role('weather') == [model.weather]
    assert model.get_status()['weather'] == {
        'name': 'Weather', 'role': 'weather', 'weather': 'SUNNY', 'remaining': 0, 'changes': 0,
    }
