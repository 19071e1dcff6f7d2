import json

import pytest

from henrisim.config import (
    PRESETS,
    HeatPumpConfig,
    ModuleConfigs,
    SimulationConfiguration,
    validate_value,
)
from henrisim.errors import ConfigurationError, ValidationError


def test_defaults_are_valid():
    assert SimulationConfiguration().validate() == []


@pytest.mark.parametrize("category,field,value,ok", [
    ("building", "floor_area", 50, True),
    ("building", "floor_area", 500, True),
    ("building", "floor_area", 49, False),
    ("erv", "efficiency", 0.96, False),
    ("battery", "capacity", 5, True),
    ("unknown", "anything", 1e9, True),
])
def test_validate_value(category, field, value, ok):
    assert validate_value(category, field, value) is ok


def test_update_rejects_out_of_range_value():
    config = SimulationConfiguration()
    with pytest.raises(ValidationError) as excinfo:
        config.update("building", floor_area=1000)
    assert "Valid range: 50 - 500 m²" in str(excinfo.value)
    assert excinfo.value.field == "floor_area"
    assert config.building.floor_area == 150


def test_update_is_all_or_nothing():
    config = SimulationConfiguration()
    with pytest.raises(ValidationError):
        config.update("building", floor_area=200, wall_r=99)
    assert config.building.floor_area == 150


def test_update_unknown_field_and_category():
    config = SimulationConfiguration()
    with pytest.raises(ConfigurationError):
        config.update("building", colour="red")
    with pytest.raises(ConfigurationError):
        config.update("garden", size=10)


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        SimulationConfiguration().update("erv", flow_rate=10)


def test_validate_reports_every_problem():
    config = SimulationConfiguration()
    config.building.floor_area = 10
    config.hvac.erv.fan_power = 500
    fields = {(e.category, e.field) for e in config.validate()}
    assert fields == {("building", "floor_area"), ("erv", "fan_power")}


def test_target_outside_heat_pump_range():
    config = SimulationConfiguration()
    config.hvac.heat_pump.target_temperature = 25
    errors = config.validate()
    assert len(errors) == 1
    assert errors[0].field == "target_temperature"


def test_initial_charge_above_capacity():
    config = SimulationConfiguration()
    config.update("battery", capacity=8)
    errors = config.validate()
    assert [e.field for e in errors] == ["initial_charge"]


@pytest.mark.parametrize("name", sorted(PRESETS))
def test_presets_valid(name):
    config = SimulationConfiguration()
    config.load_preset(name)
    assert config.validate() == []


def test_premium_preset_values():
    config = SimulationConfiguration()
    config.load_preset("premium-ph")
    assert config.building.wall_r == 8.0
    assert config.hvac.heat_pump.capacity == 2.5
    assert config.hvac.erv.efficiency == 0.85


def test_unknown_preset():
    with pytest.raises(ConfigurationError):
        SimulationConfiguration().load_preset("igloo")


def test_reset_to_defaults():
    config = SimulationConfiguration()
    config.load_preset("retrofit")
    config.reset_to_defaults()
    assert config.to_dict() == SimulationConfiguration().to_dict()


def test_derived_values():
    config = SimulationConfiguration()
    assert config.volume == pytest.approx(375.0)
    assert config.window_to_floor_ratio == pytest.approx(13.333, rel=1e-3)
    assert config.total_internal_gains == pytest.approx(4 * 70 + 150 * 8)
    assert config.total_thermal_bridges == pytest.approx(20.0)


def test_module_configs_are_copies():
    config = SimulationConfiguration()
    configs = config.module_configs()
    configs.heat_pump.efficiency = 5.0
    assert config.hvac.heat_pump.efficiency == 3.5


def test_module_configs_lookup_and_persistence():
    configs = ModuleConfigs()
    assert configs.for_module("heatPump") is configs.heat_pump
    assert configs.for_module("toaster") is None

    data = configs.to_dict()
    assert set(data) == {"heatPump", "erv", "solar", "battery"}

    configs.update_from_dict({"erv": {"flow_rate": 150.0, "colour": "red"}, "toaster": {"x": 1}})
    assert configs.erv.flow_rate == 150.0

    copy = configs.copy()
    copy.erv.flow_rate = 90.0
    assert configs.erv.flow_rate == 150.0


def test_from_json_with_comments(tmp_path):
    path = tmp_path / "house.json"
    path.write_text("""{
        "description": "Test house",
        // bigger floor plan
        "building": {"floor_area": 220},
        "heat_pump": {"capacity": 6.0}
    }""")
    config = SimulationConfiguration.from_json(str(path))
    assert config.building.floor_area == 220
    assert config.hvac.heat_pump.capacity == 6.0


def test_from_json_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{ building: ")
    with pytest.raises(ConfigurationError):
        SimulationConfiguration.from_json(str(path))


def test_from_json_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        SimulationConfiguration.from_json(str(tmp_path / "missing.json"))


def test_to_dict_round_trip():
    config = SimulationConfiguration()
    config.load_preset("minimal-ph")
    data = json.loads(json.dumps(config.to_dict()))
    assert SimulationConfiguration.from_dict(data).to_dict() == config.to_dict()


@pytest.mark.parametrize("target,expected", [(15.0, 18.0), (21.0, 21.0), (30.0, 26.0)])
def test_effective_target_clamped(target, expected):
    config = HeatPumpConfig(target_temperature=target, target_temp_min=18.0, target_temp_max=26.0)
    assert config.effective_target() == expected
