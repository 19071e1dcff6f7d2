"""Simulation orchestrator.

One tick is one simulated hour:
  1. snapshot the state into history
  2. reset hour-local energy counters
  3. passive physics
  4. Henri analysis (may change module configuration)
  5. enabled modules, in registration order, each isolated
  6. net settlement + detailed energy balance
  7. comfort score
"""
from __future__ import annotations

import asyncio
import logging
import time
import traceback
from collections import deque
from dataclasses import dataclass, field, fields, replace

from .battery import BatteryModule
from .climate import ClimateGenerator, get_season, legacy_climate
from .comfort import calculate_comfort_score
from .config import ModuleConfigs, SimulationConfiguration
from .constants import DEFAULT_PLAYBACK_SPEED, HISTORY_LENGTH
from .decision_engine import HenriDecisionEngine
from .energy_balance import EnergyBalance, EnergyBalanceCalculator
from .erv import ERVModule
from .errors import ClimateError, ConfigurationError, ModuleIntegrityError
from .heat_pump import HeatPumpModule
from .modules import FunctionModule, ModuleResult
from .physics import apply_passive_physics
from .scenarios import apply_outdoor_overrides, apply_scenario, get_scenario
from .solar import SolarModule
from .state import HouseState, Location, OutdoorConditions, clamp, state_summary

_LOGGER = logging.getLogger(__name__)

DEFAULT_SEASONAL_DATE = "summer-solstice"
COMFORTABLE_SCORE = 80


@dataclass
class TickResult:
    hour: int
    mode: str
    comfort_score: int
    module_results: list = field(default_factory=list)
    energy_balance: EnergyBalance | None = None
    registry_error: str | None = None
    duration_ms: float = 0.0

    @property
    def failed_modules(self) -> list:
        return [r.name for r in self.module_results if not r.ok]


class SimulationEngine:
    def __init__(self, configuration: SimulationConfiguration | None = None,
                 climate: ClimateGenerator | None = None,
                 playback_speed: float = DEFAULT_PLAYBACK_SPEED,
                 timestep_hours: float = 1.0):
        self.configuration = configuration or SimulationConfiguration()
        self.climate = climate or ClimateGenerator()
        self.catalog = self.climate.catalog
        self.playback_speed = playback_speed
        self.timestep_hours = timestep_hours

        # Insertion order is execution order
        self.modules = {}
        self.module_configs = self.configuration.module_configs()
        self.decision_engine = HenriDecisionEngine(self.module_configs)
        self.energy_calculator = self._build_energy_calculator()

        self.state = self._default_state()
        self.history = deque(maxlen=HISTORY_LENGTH)
        self.day = 0
        self.active_scenario = None
        self.last_result: TickResult | None = None
        self.registry_error: str | None = None
        self._pre_module_state: HouseState | None = None
        self._tick_context = (timestep_hours, None)

        self.is_playing = False
        self.playback_error: Exception | None = None
        self._playback_task = None

    def _default_state(self) -> HouseState:
        state = HouseState(envelope=self.configuration.envelope())
        battery = self.configuration.hvac.battery
        state.energy.battery_kwh = clamp(battery.initial_charge, 0.0, battery.capacity)
        return state

    def _build_energy_calculator(self) -> EnergyBalanceCalculator:
        return EnergyBalanceCalculator(replace(self.configuration.zones), replace(self.configuration.bridges))

    # --- Module registry ---

    def register_module(self, module):
        """Add a module; a module with the same name is replaced in place."""
        if module.name in self.modules:
            _LOGGER.warning("Module '%s' already registered, replacing it", module.name)
        self.modules[module.name] = module
        return module

    def register_function(self, name, fn, enabled=True):
        return self.register_module(FunctionModule(name, fn, enabled))

    def register_default_modules(self):
        for module in (HeatPumpModule(), ERVModule(), SolarModule(), BatteryModule()):
            self.register_module(module)
        self.registry_error = None

    def is_enabled(self, name) -> bool:
        module = self.modules.get(name)
        return bool(module is not None and module.enabled)

    def toggle_module(self, name) -> bool:
        """Flip a module on/off and re-run the current hour's modules."""
        module = self.modules.get(name)
        if module is None:
            raise ConfigurationError(f"Unknown module '{name}'. Registered: {', '.join(self.modules)}")
        module.enabled = not module.enabled
        _LOGGER.info("Module %s %s", name, "enabled" if module.enabled else "disabled")
        self.rerun_modules()
        return module.enabled

    def verify_modules(self):
        broken = [name for name, m in self.modules.items()
                  if not callable(getattr(m, "simulate", None))]
        if broken:
            raise ModuleIntegrityError(
                f"Module(s) without a callable simulate: {', '.join(broken)}. "
                "All modules were dropped; register them again."
            )

    # --- Climate ---

    def refresh_climate(self):
        """Overwrite outdoor conditions for the current hour."""
        state = self.state
        city_id = state.location.city_id
        if city_id and state.seasonal_date_id:
            try:
                data = self.climate.generate(city_id, state.seasonal_date_id, state.time, day=self.day)
            except ClimateError as e:
                _LOGGER.warning("Enhanced climate unavailable (%s), falling back to legacy model", e)
                self._apply_legacy_climate()
            else:
                state.outdoor = OutdoorConditions(
                    temperature=data.temperature,
                    humidity=data.humidity,
                    solar_radiation=data.solar_radiation,
                    air_quality_index=data.air_quality_index,
                    wind_speed=data.wind_speed,
                )
                state.season = data.season
                state.date = data.seasonal_date
                state.day_length = data.day_length
                state.solar_elevation = data.solar_elevation
        else:
            self._apply_legacy_climate()

        if self.active_scenario is not None:
            apply_outdoor_overrides(state, self.active_scenario)

    def _apply_legacy_climate(self):
        self.state.outdoor = OutdoorConditions(**legacy_climate(self.state.time))
        self.state.day_length = None
        self.state.solar_elevation = None

    def set_city(self, city_id):
        city = self.catalog.require_city(city_id)
        self.state.location = Location(lat=city.lat, lon=city.lon, city_id=city.id, city_name=city.name)
        if not self.state.seasonal_date_id:
            self.state.seasonal_date_id = DEFAULT_SEASONAL_DATE
        _LOGGER.info("City set to %s (%.2f, %.2f)", city.name, city.lat, city.lon)
        self.refresh_climate()
        return self.run_tick()

    def set_seasonal_date(self, seasonal_date_id):
        seasonal_date = self.catalog.require_seasonal_date(seasonal_date_id)
        self.state.seasonal_date_id = seasonal_date.id
        self.state.date = seasonal_date.date
        self.state.season = get_season(seasonal_date.day_of_year)
        _LOGGER.info("Seasonal date set to %s (%s)", seasonal_date.name, seasonal_date.date)
        self.refresh_climate()
        return self.run_tick()

    # --- Tick ---

    def run_tick(self, timestep_hours=None) -> TickResult:
        dt = timestep_hours or self.timestep_hours
        state = self.state
        start = time.perf_counter()

        self.history.append(state.clone())
        state.energy.reset_hourly()

        registry_error = None
        try:
            self.verify_modules()
        except ModuleIntegrityError as e:
            self.modules.clear()
            registry_error = str(e)
            self.registry_error = registry_error
            _LOGGER.error("%s", e)

        apply_passive_physics(
            state, dt,
            heat_pump_enabled=self.is_enabled("heatPump"),
            erv_enabled=self.is_enabled("erv"),
            solar_config=self.module_configs.solar,
        )

        mode = self.decision_engine.analyze(state, erv_enabled=self.is_enabled("erv"))

        # Kept so a module toggle can redo steps 5-7 for this same hour
        self._pre_module_state = state.clone()
        self._tick_context = (dt, registry_error)
        return self._finish_tick(dt, mode, registry_error, start)

    def rerun_modules(self) -> TickResult:
        """Re-run the current hour's modules, energy balance and comfort score.

        The state is rewound to just after this hour's Henri analysis, so
        passive physics is not applied twice and no history is recorded.
        Before any tick has run this is a normal tick.
        """
        if self._pre_module_state is None:
            return self.run_tick()
        start = time.perf_counter()
        self.state.restore(self._pre_module_state)
        dt, registry_error = self._tick_context
        return self._finish_tick(dt, self.decision_engine.current_mode, registry_error, start)

    def _finish_tick(self, dt, mode, registry_error, start) -> TickResult:
        state = self.state
        results = [self._run_module(m, dt) for m in list(self.modules.values()) if m.enabled]

        if not any(r.name == "battery" and r.ok for r in results):
            state.energy.net_kwh = state.energy.consumed_kwh - state.energy.solar_kwh

        balance = self.energy_calculator.calculate(state, dt)
        state.comfort_score = calculate_comfort_score(state, self.module_configs.heat_pump.effective_target())

        result = TickResult(
            hour=state.time,
            mode=mode,
            comfort_score=state.comfort_score,
            module_results=results,
            energy_balance=balance,
            registry_error=registry_error,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        self.last_result = result
        _LOGGER.debug("Cycle %02d:00 (%s) in %.2f ms: %s",
                      state.time, mode, result.duration_ms, state_summary(state))
        return result

    def _run_module(self, module, dt) -> ModuleResult:
        snapshot = self.state.clone()
        start = time.perf_counter()
        try:
            module.simulate(self.state, dt, self.module_configs.for_module(module.name))
        except Exception as e:
            self.state.restore(snapshot)
            _LOGGER.error("Error in module %s: %s", module.name, e)
            _LOGGER.debug(traceback.format_exc())
            return ModuleResult(module.name, ok=False,
                                duration_ms=(time.perf_counter() - start) * 1000, error=str(e))

        duration_ms = (time.perf_counter() - start) * 1000
        before, after = snapshot.energy, self.state.energy
        energy_delta = sum(getattr(after, f.name) - getattr(before, f.name)
                           for f in fields(after) if f.name != "net_kwh")
        indoor_delta = self.state.indoor.temperature - snapshot.indoor.temperature
        _LOGGER.debug("Module %s: dT %+.3f °C, dE %+.3f kWh, %.2f ms",
                      module.name, indoor_delta, energy_delta, duration_ms)
        return ModuleResult(module.name, ok=True, duration_ms=duration_ms,
                            indoor_delta=indoor_delta, energy_delta=energy_delta)

    def set_time(self, hour) -> TickResult:
        """Jump to `hour` (clamped to 0-23), refresh climate and run one tick."""
        self.state.time = int(clamp(int(hour), 0, 23))
        self.refresh_climate()
        return self.run_tick()

    def step(self) -> TickResult:
        """Advance one hour, rolling over to the next day at midnight."""
        next_hour = (self.state.time + 1) % 24
        if next_hour == 0:
            self.day += 1
        return self.set_time(next_hour)

    def advance_with_conditions(self, hour, outdoor) -> TickResult:
        """Run a tick at `hour` with externally supplied outdoor conditions."""
        self.state.time = int(hour) % 24
        if isinstance(outdoor, OutdoorConditions):
            self.state.outdoor = OutdoorConditions(**vars(outdoor))
        else:
            for key, value in outdoor.items():
                setattr(self.state.outdoor, key, value)
        return self.run_tick()

    # --- Playback ---

    def start_playback(self):
        """Advance one hour every 1/playback_speed seconds. Needs a running event loop."""
        if self.is_playing:
            return
        loop = asyncio.get_running_loop()
        self.is_playing = True
        self.playback_error = None
        self._playback_task = loop.create_task(self._playback_loop())

    async def _playback_loop(self):
        try:
            while self.is_playing:
                await asyncio.sleep(1.0 / self.playback_speed)
                if not self.is_playing:
                    break
                self.step()
        except Exception as e:
            _LOGGER.error("Playback stopped by error: %s", e)
            _LOGGER.error(traceback.format_exc())
            self.playback_error = e
            self.is_playing = False
            self._playback_task = None

    def pause_playback(self):
        self.is_playing = False
        task, self._playback_task = self._playback_task, None
        if task is not None and not task.done():
            task.cancel()

    def reset_simulation(self):
        """Stop playback and rebuild the default state from the current configuration."""
        self.pause_playback()
        self._load_module_configs(self.configuration.module_configs())
        self.decision_engine.reset()
        self.energy_calculator = self._build_energy_calculator()
        self.state = self._default_state()
        self.history.clear()
        self.day = 0
        self.active_scenario = None
        self.last_result = None
        self.playback_error = None
        self._pre_module_state = None
        _LOGGER.info("Simulation reset")

    def _load_module_configs(self, configs: ModuleConfigs):
        # The decision engine holds a reference to self.module_configs
        self.module_configs.heat_pump = configs.heat_pump
        self.module_configs.erv = configs.erv
        self.module_configs.solar = configs.solar
        self.module_configs.battery = configs.battery
        self.decision_engine.set_baseline(configs)

    def sync_config_changes(self):
        """Re-read the configuration after the caller changed it."""
        errors = self.configuration.validate()
        if errors:
            raise errors[0]

        self.state.envelope = self.configuration.envelope()
        self._load_module_configs(self.configuration.module_configs())
        self.decision_engine.resync()
        self.energy_calculator = self._build_energy_calculator()

        capacity = self.module_configs.battery.capacity
        self.state.energy.battery_kwh = clamp(self.state.energy.battery_kwh, 0.0, capacity)
        if self._pre_module_state is not None:
            self._pre_module_state.envelope = replace(self.state.envelope)
            self._pre_module_state.energy.battery_kwh = clamp(
                self._pre_module_state.energy.battery_kwh, 0.0, capacity)
        _LOGGER.info("Configuration synced: %.0f m² floor, %.1f kW heat pump, %.0f kWh battery",
                     self.state.envelope.floor_area, self.module_configs.heat_pump.capacity, capacity)

    # --- Scenarios & safety ---

    def trigger_scenario(self, name) -> str:
        """Inject a named stress scenario and re-evaluate Henri immediately."""
        scenario = get_scenario(name)
        _LOGGER.info("Triggering test scenario: %s", scenario.title)
        self.active_scenario = scenario
        self.decision_engine.add_decision(f"TEST: {scenario.title} scenario triggered",
                                          scenario.description)
        if scenario.smoke:
            self.trigger_smoke_event()
        else:
            apply_scenario(self.state, scenario, self.module_configs.battery.capacity)
            if self._pre_module_state is not None:
                apply_scenario(self._pre_module_state, scenario, self.module_configs.battery.capacity)
            self.decision_engine.analyze(self.state, erv_enabled=self.is_enabled("erv"))
        return self.decision_engine.current_mode

    def clear_scenario(self):
        if self.active_scenario is None:
            return None
        _LOGGER.info("Clearing test scenario: %s", self.active_scenario.title)
        if self.active_scenario.smoke:
            self.state.safety.smoke_event = False
            self.state.safety.sprinklers_active = False
        self.active_scenario = None
        self.decision_engine.add_decision("Test scenario cleared", "Returning to normal conditions")
        self.refresh_climate()
        return self.run_tick()

    def trigger_smoke_event(self) -> TickResult:
        self.state.safety.smoke_event = True
        _LOGGER.warning("Smoke event triggered")
        return self.run_tick()

    def clear_smoke_event(self) -> TickResult:
        self.state.safety.smoke_event = False
        self.state.safety.sprinklers_active = False
        _LOGGER.info("Smoke event cleared")
        return self.run_tick()

    def force_mode(self, mode):
        self.decision_engine.force_mode(mode, self.state, erv_enabled=self.is_enabled("erv"))
        if self._pre_module_state is not None:
            self._pre_module_state.safety = replace(self.state.safety)

    def clear_override(self):
        self.decision_engine.clear_override()

    # --- Persistence hooks ---

    def export_state(self) -> dict:
        return {
            "house_state": self.state.to_dict(),
            "module_configs": self.module_configs.to_dict(),
            "decision_engine": self.decision_engine.to_dict(),
        }

    def restore_state(self, data: dict | None):
        """Restore persisted values; missing sections and keys keep current values."""
        if not data:
            return
        self.state = HouseState.from_dict(data.get("house_state"), base=self.state)
        self.module_configs.update_from_dict(data.get("module_configs"))
        self.decision_engine.restore(data.get("decision_engine"))
        self._pre_module_state = None

    # --- Derived values ---

    @property
    def current_mode(self) -> str:
        return self.decision_engine.current_mode

    @property
    def is_comfortable(self) -> bool:
        return self.state.comfort_score >= COMFORTABLE_SCORE

    @property
    def total_energy_used(self) -> float:
        return self.state.energy.consumed_kwh

    @property
    def net_energy_flow(self) -> float:
        return self.state.energy.net_kwh

    @property
    def comfort_trend(self) -> int:
        if not self.history:
            return 0
        return self.state.comfort_score - self.history[-1].comfort_score
