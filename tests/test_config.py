import pytest

from farm_agents.config import FarmConfig, FieldSpec, load_config
from farm_agents.exceptions import ConfigError


def test_default_farm_is_valid():
    config = FarmConfig()

    assert [spec.crop for spec in config.fields] == ['CORN', 'WHEAT', 'RICE']
    assert config.workers == {'scanner': 2, 'sprayer': 1, 'harvester': 1, 'irrigator': 1}
    assert config.seconds(2.0) == 2.0


def test_time_unit_scales_durations():
    assert FarmConfig(time_unit=0.1).seconds(1.5) == pytest.approx(0.15)


def test_from_dict_builds_nested_specs():
    config = FarmConfig.from_dict({
        'fields': [{'field_id': 7, 'crop': 'RICE'}],
        'buyers': [{'name': 'Market', 'budget': 900}],
    })

    assert config.fields == [FieldSpec(7, 'RICE')]
    assert config.buyers[0].budget == 900


@pytest.mark.parametrize('data', [
    {'colour': 'green'},
    {'time_unit': 0},
    {'weather_period': 0},
    {'disease_probability': 1.5},
    {'fields': [{'field_id': 1, 'crop': 'BANANA'}]},
    {'fields': [{'field_id': 1}, {'field_id': 1}]},
    {'fields': [{'id': 1}]},
    {'workers': {'pilot': 1}},
    {'initial_stock': {'WATER': 200}},
    {'minimum_stock': {'GOLD': 1}},
    {'suppliers': [{'name': 'S', 'items': ['GOLD']}]},
])
def test_invalid_configuration_is_rejected(data):
    with pytest.raises(ConfigError):
        FarmConfig.from_dict(data)


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / 'farm.yaml'
    path.write_text(
        "farm:\n"
        "  time_unit: 0.5\n"
        "  fields:\n"
        "    - field_id: 1\n"
        "      crop: WHEAT\n"
        "  workers:\n"
        "    irrigator: 2\n",
        encoding='utf-8',
    )

    config = load_config(str(path))

    assert config.time_unit == 0.5
    assert config.fields == [FieldSpec(1, 'WHEAT')]
    assert config.workers == {'irrigator': 2}


def test_load_config_requires_a_mapping(tmp_path):
    path = tmp_path / 'farm.yaml'
    path.write_text("- just\n- a list\n", encoding='utf-8')

    with pytest.raises(ConfigError):
        load_config(str(path))
