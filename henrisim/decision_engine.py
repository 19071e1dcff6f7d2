"""Henri: the adaptive decision engine.

A priority-ordered mode state machine evaluated once per tick, before the
device modules run, so configuration changes take effect in the same tick.

Priority (highest first): emergency, high-solar, low-battery,
air-quality-protection, comfort-priority, normal.

A mode is held until its own exit condition is met (hysteresis), unless a
strictly higher-priority mode triggers. Leaving a mode restores the knobs it
changed to the baseline configuration before the next mode is applied.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, asdict

from .config import ModuleConfigs
from .constants import (
    AQI_PROTECT_ENTER,
    AQI_PROTECT_EXIT,
    AQI_PROTECT_FLOW_FACTOR,
    AQI_PROTECT_MIN_FLOW,
    COMFORT_ENTER_SCORE,
    COMFORT_ENTER_TEMP_ERROR,
    COMFORT_EXIT_SCORE,
    COMFORT_EXIT_TEMP_ERROR,
    COMFORT_PRIORITY_COP,
    COMFORT_PRIORITY_ERV_EFFICIENCY,
    EMERGENCY_FLOW_FACTOR,
    HIGH_SOLAR_COP,
    HIGH_SOLAR_ENTER,
    HIGH_SOLAR_EXIT,
    HIGH_SOLAR_HINT_BEFORE_HOUR,
    LOW_BATTERY_COP_BOOST,
    LOW_BATTERY_COP_CAP,
    LOW_BATTERY_ENTER,
    LOW_BATTERY_EXIT,
    LOW_BATTERY_TARGET_FLOOR,
    MAX_RECENT_DECISIONS,
)
from .errors import ConfigurationError
from .state import HouseState

_LOGGER = logging.getLogger(__name__)

NORMAL = "normal"
HIGH_SOLAR = "high-solar"
LOW_BATTERY = "low-battery"
AIR_QUALITY_PROTECTION = "air-quality-protection"
COMFORT_PRIORITY = "comfort-priority"
EMERGENCY = "emergency"

# Highest priority first
PRIORITY = [EMERGENCY, HIGH_SOLAR, LOW_BATTERY, AIR_QUALITY_PROTECTION, COMFORT_PRIORITY, NORMAL]
MODES = tuple(PRIORITY)

HINTS = {
    HIGH_SOLAR: "Will reduce solar heat gain at peak (15:00)",
    LOW_BATTERY: "Will restore normal temperature when battery > 30%",
    AIR_QUALITY_PROTECTION: "Will restore ventilation when AQI < 75",
    COMFORT_PRIORITY: "Will return to normal when comfort > 80%",
}


@dataclass
class Decision:
    id: int
    timestamp: int   # simulated hour
    action: str
    reason: str


class HenriDecisionEngine:
    def __init__(self, configs: ModuleConfigs, baseline: ModuleConfigs | None = None):
        # `configs` is the live object the orchestrator hands to the modules
        self.configs = configs
        self.baseline = (baseline or configs).copy()
        self.current_mode = NORMAL
        self.recent_decisions = deque(maxlen=MAX_RECENT_DECISIONS)
        self.next_adaptation: str | None = None
        self.override = False
        self.mode_changes = 0
        self._next_id = 0
        self._clock = 0
        self._smoke_emergency = False

    def set_baseline(self, baseline: ModuleConfigs):
        self.baseline = baseline.copy()

    def resync(self):
        """Drop back to normal after the live configs were replaced from configuration."""
        if self.current_mode != NORMAL:
            _LOGGER.info("Henri mode %s -> %s (configuration changed)", self.current_mode, NORMAL)
            self.current_mode = NORMAL
            self._smoke_emergency = False
            self.add_decision("Normal operation restored", "Configuration changed")
        self.next_adaptation = None

    def reset(self):
        self.current_mode = NORMAL
        self.recent_decisions.clear()
        self.next_adaptation = None
        self.override = False
        self._smoke_emergency = False
        self.mode_changes = 0
        self._next_id = 0

    def add_decision(self, action: str, reason: str) -> Decision:
        decision = Decision(self._next_id, self._clock, action, reason)
        self._next_id += 1
        self.recent_decisions.append(decision)
        _LOGGER.debug("Henri decision #%d: %s (%s)", decision.id, action, reason)
        return decision

    def battery_percent(self, state: HouseState) -> float:
        capacity = self.configs.battery.capacity
        if capacity <= 0:
            return 0.0
        return state.energy.battery_kwh / capacity * 100

    def temperature_error(self, state: HouseState) -> float:
        return abs(state.indoor.temperature - self.configs.heat_pump.effective_target())

    # --- Conditions ---

    def _entry(self, mode, state) -> bool:
        if mode == EMERGENCY:
            return state.safety.smoke_event
        if mode == HIGH_SOLAR:
            return state.outdoor.solar_radiation > HIGH_SOLAR_ENTER
        if mode == LOW_BATTERY:
            return self.battery_percent(state) < LOW_BATTERY_ENTER
        if mode == AIR_QUALITY_PROTECTION:
            return state.outdoor.air_quality_index > AQI_PROTECT_ENTER
        if mode == COMFORT_PRIORITY:
            return (state.comfort_score < COMFORT_ENTER_SCORE
                    or self.temperature_error(state) > COMFORT_ENTER_TEMP_ERROR)
        return False

    def _exit(self, mode, state) -> bool:
        if mode == EMERGENCY:
            return not state.safety.smoke_event
        if mode == HIGH_SOLAR:
            return state.outdoor.solar_radiation < HIGH_SOLAR_EXIT
        if mode == LOW_BATTERY:
            return self.battery_percent(state) > LOW_BATTERY_EXIT
        if mode == AIR_QUALITY_PROTECTION:
            return state.outdoor.air_quality_index < AQI_PROTECT_EXIT
        if mode == COMFORT_PRIORITY:
            return (state.comfort_score > COMFORT_EXIT_SCORE
                    and self.temperature_error(state) < COMFORT_EXIT_TEMP_ERROR)
        return True

    # --- Evaluation ---

    def analyze(self, state: HouseState, erv_enabled: bool = True) -> str:
        """Evaluate the environment and switch mode if needed. Returns the active mode."""
        self._clock = state.time
        self.next_adaptation = None

        if state.safety.smoke_event:
            if self.current_mode != EMERGENCY:
                self._switch(EMERGENCY, state, erv_enabled, "Smoke event detected")
                self._smoke_emergency = True
            return self.current_mode

        # A forced emergency is held until the override is cleared
        if self.current_mode == EMERGENCY and (self._smoke_emergency or not self.override):
            self._smoke_emergency = False
            state.safety.sprinklers_active = False
            self._switch(NORMAL, state, erv_enabled, "Smoke event cleared")

        if not self.override:
            self._evaluate(state, erv_enabled)

        self._update_hint(state)
        return self.current_mode

    def _evaluate(self, state, erv_enabled):
        triggered = [m for m in PRIORITY[1:-1] if self._entry(m, state)]
        candidate = triggered[0] if triggered else None
        current = self.current_mode

        if current == NORMAL:
            if candidate:
                self._switch(candidate, state, erv_enabled, self._reason(candidate, state))
            return

        if candidate and PRIORITY.index(candidate) < PRIORITY.index(current):
            self._switch(candidate, state, erv_enabled, self._reason(candidate, state))
        elif self._exit(current, state):
            if candidate and candidate != current:
                self._switch(candidate, state, erv_enabled, self._reason(candidate, state))
            else:
                self._switch(NORMAL, state, erv_enabled, "Environmental conditions normalized")

    def _reason(self, mode, state) -> str:
        if mode == HIGH_SOLAR:
            return f"Solar radiation: {state.outdoor.solar_radiation:.0f}W/m²"
        if mode == LOW_BATTERY:
            return f"Battery at {round(self.battery_percent(state))}%"
        if mode == AIR_QUALITY_PROTECTION:
            return f"Outdoor AQI: {round(state.outdoor.air_quality_index)}"
        if mode == COMFORT_PRIORITY:
            return (f"Comfort score: {state.comfort_score}%, "
                    f"temperature error {self.temperature_error(state):.1f}°C")
        return ""

    def _update_hint(self, state):
        hint = HINTS.get(self.current_mode)
        if self.current_mode == HIGH_SOLAR and state.time >= HIGH_SOLAR_HINT_BEFORE_HOUR:
            hint = None
        self.next_adaptation = hint

    # --- Transitions ---

    def _switch(self, new_mode, state, erv_enabled, reason):
        old_mode = self.current_mode
        if new_mode == old_mode:
            return
        self._restore(old_mode)
        self.current_mode = new_mode
        self.mode_changes += 1
        _LOGGER.info("Henri mode %s -> %s (%s)", old_mode, new_mode, reason)

        if new_mode == NORMAL:
            self.add_decision("Normal operation restored", reason)
            return
        self.add_decision(f"{new_mode.replace('-', ' ').capitalize()} mode activated", reason)
        self._apply(new_mode, state, erv_enabled)

    def _apply(self, mode, state, erv_enabled):
        hp = self.configs.heat_pump
        erv = self.configs.erv

        if mode == EMERGENCY:
            if state is not None:
                state.safety.sprinklers_active = True
                self.add_decision("Sprinklers activated", "Fire safety protocol")
            if erv_enabled:
                erv.flow_rate = erv.flow_rate * EMERGENCY_FLOW_FACTOR
                self.add_decision("ERV emergency ventilation",
                                  f"Evacuating contaminated air at {erv.flow_rate:.0f} m³/h")
        elif mode == HIGH_SOLAR:
            hp.efficiency = HIGH_SOLAR_COP
            self.add_decision("Heat pump efficiency reduced", "Compensating for solar heat gain")
        elif mode == LOW_BATTERY:
            hp.target_temperature = max(LOW_BATTERY_TARGET_FLOOR, hp.target_temperature - 1)
            hp.efficiency = min(LOW_BATTERY_COP_CAP, hp.efficiency * LOW_BATTERY_COP_BOOST)
            self.add_decision("Temperature setpoint lowered",
                              f"Conserving battery energy, target {hp.target_temperature:.1f}°C")
        elif mode == AIR_QUALITY_PROTECTION:
            erv.flow_rate = max(AQI_PROTECT_MIN_FLOW, erv.flow_rate * AQI_PROTECT_FLOW_FACTOR)
            self.add_decision("ERV flow reduced", "Limiting outdoor air intake")
        elif mode == COMFORT_PRIORITY:
            hp.efficiency = COMFORT_PRIORITY_COP
            erv.efficiency = COMFORT_PRIORITY_ERV_EFFICIENCY
            self.add_decision("Heat pump efficiency boosted", "Prioritizing occupant comfort")
            self.add_decision("ERV efficiency increased", "Improving air quality")

    def _restore(self, mode):
        """Undo the knobs `mode` changed, back to baseline."""
        hp, erv = self.configs.heat_pump, self.configs.erv
        base_hp, base_erv = self.baseline.heat_pump, self.baseline.erv

        if mode == EMERGENCY:
            erv.flow_rate = base_erv.flow_rate
        elif mode == HIGH_SOLAR:
            hp.efficiency = base_hp.efficiency
        elif mode == LOW_BATTERY:
            hp.target_temperature = base_hp.target_temperature
            hp.efficiency = base_hp.efficiency
        elif mode == AIR_QUALITY_PROTECTION:
            erv.flow_rate = base_erv.flow_rate
        elif mode == COMFORT_PRIORITY:
            hp.efficiency = base_hp.efficiency
            erv.efficiency = base_erv.efficiency
        else:
            return
        self.add_decision(f"{mode.replace('-', ' ').capitalize()} settings restored",
                          "Returning to baseline configuration")

    # --- Manual override ---

    def force_mode(self, mode: str, state: HouseState | None = None, erv_enabled: bool = True):
        """Apply `mode` now and suspend automatic evaluation until `clear_override()`."""
        if mode not in MODES:
            raise ConfigurationError(f"Unknown mode '{mode}'. Options: {', '.join(MODES)}")
        if state is not None:
            self._clock = state.time
        self.override = True
        self._smoke_emergency = False
        if (self.current_mode == EMERGENCY and mode != EMERGENCY
                and state is not None and not state.safety.smoke_event):
            state.safety.sprinklers_active = False
        self._switch(mode, state, erv_enabled, "Manual override")
        self.next_adaptation = None

    def clear_override(self):
        if self.override:
            self.override = False
            self.add_decision("Manual override cleared", "Automatic adaptation resumed")

    # --- Persistence ---

    def to_dict(self) -> dict:
        return {
            "current_mode": self.current_mode,
            "recent_decisions": [asdict(d) for d in self.recent_decisions],
            "next_adaptation": self.next_adaptation,
            "override": self.override,
        }

    def restore(self, data: dict | None):
        """Restore mode and log from persisted data; missing keys keep current values."""
        if not data:
            return
        mode = data.get("current_mode", self.current_mode)
        if mode in MODES:
            self.current_mode = mode
        else:
            _LOGGER.warning("Ignoring unknown persisted mode '%s'", mode)
        decisions = []
        for item in data.get("recent_decisions", []):
            try:
                decisions.append(Decision(int(item["id"]), int(item.get("timestamp", 0)),
                                          str(item["action"]), str(item.get("reason", ""))))
            except (KeyError, TypeError, ValueError):
                _LOGGER.warning("Skipping malformed persisted decision: %s", item)
        if decisions:
            self.recent_decisions = deque(decisions, maxlen=MAX_RECENT_DECISIONS)
            self._next_id = max(d.id for d in decisions) + 1
        self.next_adaptation = data.get("next_adaptation", self.next_adaptation)
        self.override = bool(data.get("override", self.override))
