import asyncio
import json

import pytest

from henrisim.climate import legacy_climate
from henrisim.decision_engine import EMERGENCY, HIGH_SOLAR, LOW_BATTERY, NORMAL
from henrisim.errors import ConfigurationError, ValidationError
from henrisim.simulation import SimulationEngine
from henrisim.state import state_summary


# --- Tick pipeline ---

def test_tick_runs_all_default_modules(engine):
    result = engine.set_time(12)
    assert [r.name for r in result.module_results] == ["heatPump", "erv", "solar", "battery"]
    assert result.failed_modules == []
    assert result.energy_balance is not None
    assert 0 <= result.comfort_score <= 100


def test_energy_counters_reset_every_tick(engine):
    engine.set_time(12)
    engine.step()
    # One hour of fan energy, not two
    assert engine.state.energy.erv_kwh == pytest.approx(0.15)


def test_battery_carried_across_ticks(engine):
    engine.set_time(12)
    charged = engine.state.energy.battery_kwh
    engine.step()
    assert engine.state.energy.battery_kwh >= charged


def test_net_settled_without_battery(engine):
    engine.modules["battery"].enabled = False
    engine.set_time(12)
    energy = engine.state.energy
    assert energy.net_kwh == pytest.approx(energy.consumed_kwh - energy.solar_kwh)


def test_history_holds_independent_snapshots(engine):
    engine.set_time(3)
    snapshot = engine.history[-1]
    assert snapshot is not engine.state
    before = snapshot.indoor.temperature
    engine.state.indoor.temperature = 99.0
    assert snapshot.indoor.temperature == before


def test_history_bounded(engine):
    engine.set_time(0)
    for _ in range(30):
        engine.step()
    assert len(engine.history) == 24


def test_step_rolls_over_midnight(engine):
    engine.set_time(23)
    engine.step()
    assert engine.state.time == 0
    assert engine.day == 1


@pytest.mark.parametrize("hour,expected", [(30, 23), (-5, 0), (7, 7)])
def test_set_time_clamps(engine, hour, expected):
    engine.set_time(hour)
    assert engine.state.time == expected


def test_legacy_climate_used_without_city(engine):
    engine.set_time(12)
    assert engine.state.outdoor.temperature == legacy_climate(12)["temperature"]


def test_reset_is_deterministic(engine):
    def run():
        engine.set_time(0)
        for _ in range(5):
            engine.step()
        return state_summary(engine.state), engine.current_mode

    first = run()
    engine.reset_simulation()
    second = run()
    assert first == second
    assert engine.day == 0


def test_reset_matches_fresh_engine(engine):
    def trajectory(eng):
        eng.set_city("chicago")
        eng.set_time(0)
        rows = [state_summary(eng.state)]
        for _ in range(30):
            eng.step()
            rows.append((state_summary(eng.state), eng.current_mode))
        return rows

    trajectory(engine)
    engine.trigger_scenario("low_battery")
    engine.reset_simulation()
    replayed = trajectory(engine)

    fresh = SimulationEngine(configuration=engine.configuration)
    fresh.register_default_modules()
    assert replayed == trajectory(fresh)
    assert [d.action for d in engine.decision_engine.recent_decisions] == \
        [d.action for d in fresh.decision_engine.recent_decisions]


# --- Module registry ---

def test_failing_module_is_isolated(engine):
    def broken(state, dt, config):
        state.indoor.temperature = 99.0
        raise RuntimeError("sensor offline")

    engine.register_function("broken", broken)
    result = engine.set_time(12)

    assert result.failed_modules == ["broken"]
    failed = [r for r in result.module_results if not r.ok][0]
    assert "sensor offline" in failed.error
    # Partial writes are rolled back
    assert engine.state.indoor.temperature != 99.0
    assert all(r.ok for r in result.module_results if r.name != "broken")


def test_module_without_simulate_drops_registry(engine):
    class Hollow:
        name = "hollow"
        enabled = True
        simulate = None

    engine.register_module(Hollow())
    result = engine.set_time(12)

    assert engine.modules == {}
    assert result.registry_error is not None
    assert result.module_results == []
    assert 0 <= result.comfort_score <= 100

    engine.register_default_modules()
    assert engine.registry_error is None
    assert len(engine.set_time(12).module_results) == 4


def test_duplicate_registration_replaces(engine):
    calls = []
    engine.register_function("solar", lambda s, dt, c: calls.append(c))
    assert list(engine.modules) == ["heatPump", "erv", "solar", "battery"]
    engine.set_time(12)
    assert len(calls) == 1


def test_toggle_module(engine):
    engine.set_time(12)
    assert engine.toggle_module("erv") is False
    assert not engine.is_enabled("erv")
    assert engine.state.energy.erv_kwh == 0.0
    assert engine.toggle_module("erv") is True


def test_toggle_reruns_same_hour_only(engine):
    engine.set_time(2)
    temperature = engine.state.indoor.temperature
    summary = state_summary(engine.state)
    history_len = len(engine.history)

    engine.toggle_module("solar")
    engine.toggle_module("solar")

    assert engine.state.time == 2
    assert engine.state.indoor.temperature == pytest.approx(temperature)
    assert state_summary(engine.state) == summary
    assert len(engine.history) == history_len


def test_toggle_heat_pump_off_removes_its_output(engine):
    engine.set_time(2)
    engine.toggle_module("heatPump")
    assert engine.state.energy.heat_pump_kwh == 0.0
    assert engine.last_result.hour == 2
    assert "heatPump" not in [r.name for r in engine.last_result.module_results]


def test_toggle_keeps_forced_emergency(engine):
    engine.set_time(2)
    engine.force_mode(EMERGENCY)
    engine.toggle_module("solar")
    assert engine.current_mode == EMERGENCY
    assert engine.state.safety.sprinklers_active


def test_toggle_before_first_tick_runs_a_tick(engine):
    result = engine.toggle_module("solar")
    assert result is False
    assert len(engine.history) == 1


def test_toggle_unknown_module(engine):
    with pytest.raises(ConfigurationError):
        engine.toggle_module("dishwasher")


# --- Playback ---

def test_playback_advances_and_pauses(engine):
    engine.set_time(0)
    engine.playback_speed = 100.0

    async def play():
        engine.start_playback()
        assert engine.is_playing
        await asyncio.sleep(0.2)
        engine.pause_playback()
        hour = engine.state.time
        await asyncio.sleep(0.05)
        return hour

    hour = asyncio.run(play())
    assert not engine.is_playing
    assert engine.state.time == hour
    assert len(engine.history) > 1


def test_playback_error_stops_loop(engine):
    def explode():
        raise RuntimeError("boom")

    engine.playback_speed = 100.0
    engine.step = explode

    async def play():
        engine.start_playback()
        await asyncio.sleep(0.1)

    asyncio.run(play())
    assert not engine.is_playing
    assert isinstance(engine.playback_error, RuntimeError)


def test_playback_needs_running_loop(engine):
    with pytest.raises(RuntimeError):
        engine.start_playback()


# --- Location ---

def test_set_city(engine):
    engine.set_city("london")
    assert engine.state.location.city_name == "London"
    assert engine.state.seasonal_date_id == "summer-solstice"
    assert engine.state.day_length is not None


def test_set_unknown_city_raises(engine):
    with pytest.raises(ConfigurationError):
        engine.set_city("atlantis")


def test_set_seasonal_date(engine):
    engine.set_city("denver")
    engine.set_seasonal_date("winter-solstice")
    assert engine.state.season == "winter"
    assert engine.state.date == "2024-12-21"


def test_invalid_location_falls_back_to_legacy(engine):
    engine.state.location.city_id = "atlantis"
    engine.state.seasonal_date_id = "summer-solstice"
    engine.state.time = 15
    engine.refresh_climate()
    assert engine.state.outdoor.temperature == legacy_climate(15)["temperature"]


# --- Scenarios ---

def test_heat_wave_persists_until_cleared(engine):
    engine.set_time(10)
    assert engine.trigger_scenario("heat_wave") == HIGH_SOLAR
    engine.step()
    assert engine.state.outdoor.temperature == 38.0

    engine.clear_scenario()
    assert engine.state.outdoor.temperature == legacy_climate(engine.state.time)["temperature"]
    assert engine.active_scenario is None


def test_low_battery_scenario_camel_case(engine):
    engine.set_time(0)
    assert engine.trigger_scenario("lowBattery") == LOW_BATTERY
    assert engine.decision_engine.battery_percent(engine.state) < 20


def test_smoke_scenario(engine):
    engine.set_time(0)
    assert engine.trigger_scenario("smoke_alarm") == EMERGENCY
    assert engine.state.safety.sprinklers_active

    engine.clear_scenario()
    assert not engine.state.safety.smoke_event
    assert not engine.state.safety.sprinklers_active
    assert engine.current_mode != EMERGENCY


def test_unknown_scenario(engine):
    with pytest.raises(ConfigurationError):
        engine.trigger_scenario("meteor")


def test_clear_without_scenario_is_noop(engine):
    assert engine.clear_scenario() is None


def test_force_mode_and_clear_override(engine):
    engine.set_time(12)
    engine.force_mode(NORMAL)
    engine.step()
    assert engine.current_mode == NORMAL
    engine.clear_override()
    engine.set_time(12)
    assert engine.current_mode == HIGH_SOLAR


def test_forced_emergency_survives_ticks(engine):
    engine.set_time(2)
    engine.force_mode(EMERGENCY)
    for _ in range(3):
        engine.step()
        assert engine.current_mode == EMERGENCY
        assert engine.state.safety.sprinklers_active
        assert engine.module_configs.erv.flow_rate == 400.0

    engine.clear_override()
    engine.step()
    assert engine.current_mode != EMERGENCY
    assert not engine.state.safety.sprinklers_active
    assert engine.module_configs.erv.flow_rate == 200.0


def test_restored_target_outside_window_is_clamped_for_comfort(engine):
    engine.restore_state({"module_configs": {"heatPump": {"target_temperature": 40.0}}})
    engine.set_time(2)
    hp = engine.module_configs.heat_pump
    assert hp.effective_target() == hp.target_temp_max
    assert engine.decision_engine.temperature_error(engine.state) == pytest.approx(
        abs(engine.state.indoor.temperature - hp.target_temp_max))


# --- Configuration sync ---

def test_sync_config_changes(engine):
    engine.configuration.update("building", floor_area=200)
    engine.configuration.update("battery", capacity=8, initial_charge=5)
    engine.state.energy.battery_kwh = 10.0
    engine.sync_config_changes()

    assert engine.state.envelope.floor_area == 200
    assert engine.module_configs.battery.capacity == 8
    assert engine.state.energy.battery_kwh == 8.0


def test_sync_rejects_invalid_configuration(engine):
    engine.configuration.building.floor_area = 10
    with pytest.raises(ValidationError):
        engine.sync_config_changes()
    assert engine.state.envelope.floor_area == 150


def test_module_configs_shared_with_decision_engine(engine):
    engine.configuration.update("heat_pump", efficiency=4.0)
    engine.sync_config_changes()
    assert engine.decision_engine.configs is engine.module_configs
    assert engine.decision_engine.baseline.heat_pump.efficiency == 4.0


# --- Persistence ---

def test_export_and_restore_state(engine):
    engine.set_time(0)
    engine.trigger_scenario("low_battery")
    data = engine.export_state()
    json.dumps(data)

    other = SimulationEngine()
    other.register_default_modules()
    other.restore_state(data)
    assert other.state.to_dict() == engine.state.to_dict()
    assert other.current_mode == LOW_BATTERY
    assert other.module_configs.to_dict() == engine.module_configs.to_dict()


def test_restore_partial_state(engine):
    engine.restore_state({"house_state": {"indoor": {"temperature": 23.5}, "bogus": 1}})
    assert engine.state.indoor.temperature == 23.5
    assert engine.state.indoor.humidity == 0.4


def test_restore_none_is_noop(engine):
    before = engine.state.to_dict()
    engine.restore_state(None)
    assert engine.state.to_dict() == before


# --- Derived values ---

def test_derived_properties(engine):
    engine.set_time(2)
    assert engine.is_comfortable == (engine.state.comfort_score >= 80)
    assert engine.total_energy_used == engine.state.energy.consumed_kwh
    assert engine.net_energy_flow == engine.state.energy.net_kwh
    assert engine.comfort_trend == engine.state.comfort_score - engine.history[-1].comfort_score


# --- Whole-engine properties ---

def test_energy_counters_zero_before_first_module():
    seen = []
    eng = SimulationEngine()
    eng.register_function("probe", lambda s, dt, c: seen.append(
        (s.energy.heat_pump_kwh, s.energy.erv_kwh, s.energy.solar_kwh)))
    eng.register_default_modules()
    eng.set_time(12)
    for _ in range(5):
        eng.step()
    assert seen == [(0.0, 0.0, 0.0)] * 6


def test_low_battery_does_not_flap(engine):
    capacity = engine.module_configs.battery.capacity
    engine.state.outdoor.solar_radiation = 0.0
    engine.state.outdoor.air_quality_index = 50.0
    modes = []
    for percent in [18, 25, 18, 25, 18, 25]:
        engine.state.energy.battery_kwh = capacity * percent / 100
        engine.decision_engine.analyze(engine.state)
        modes.append(engine.current_mode)
    assert modes == [LOW_BATTERY] * 6


def test_solar_and_battery_export(engine):
    engine.modules["heatPump"].enabled = False
    engine.modules["erv"].enabled = False
    before = engine.state.energy.battery_kwh

    engine.advance_with_conditions(12, {"solar_radiation": 900.0})
    energy = engine.state.energy
    assert energy.solar_kwh > 0
    assert energy.battery_kwh > before
    assert energy.net_kwh <= 0


def test_smoke_event_same_tick(engine):
    engine.set_time(2)
    result = engine.trigger_smoke_event()
    assert result.mode == EMERGENCY
    assert engine.state.safety.sprinklers_active
    assert engine.module_configs.erv.flow_rate == 400.0

    engine.clear_smoke_event()
    assert engine.module_configs.erv.flow_rate == 200.0


def test_erv_air_quality_never_exceeds_cap(engine):
    engine.set_time(0)
    for _ in range(72):
        engine.step()
        assert engine.state.indoor.air_quality <= 0.95


def test_battery_soc_within_capacity_every_tick(engine):
    capacity = engine.module_configs.battery.capacity
    engine.set_time(0)
    for _ in range(72):
        engine.step()
        assert 0.0 <= engine.state.energy.battery_kwh <= capacity
