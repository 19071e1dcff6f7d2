"""Named stress-test scenarios injected into a running simulation."""
from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ConfigurationError


@dataclass(frozen=True)
class Scenario:
    name: str
    title: str
    description: str
    # Outdoor overrides are re-applied after every climate refresh while active
    outdoor: dict = field(default_factory=dict)
    # Applied once, at trigger time
    indoor: dict = field(default_factory=dict)
    energy: dict = field(default_factory=dict)
    # State of charge as a fraction of battery capacity, applied once
    battery_fraction: float | None = None
    smoke: bool = False


SCENARIOS = {
    s.name: s for s in [
        Scenario("heat_wave", "Heat Wave", "Extreme heat: 38°C, 950W/m² solar",
                 outdoor={"temperature": 38.0, "solar_radiation": 950.0, "humidity": 0.3}),
        Scenario("cold_snap", "Cold Snap", "Extreme cold: -15°C, low solar",
                 outdoor={"temperature": -15.0, "solar_radiation": 200.0, "humidity": 0.7}),
        Scenario("poor_air_quality", "Poor Air Quality", "Unhealthy air: AQI 180",
                 outdoor={"air_quality_index": 180.0}),
        Scenario("low_battery", "Low Battery", "Critical battery: 10% remaining",
                 battery_fraction=0.1),
        Scenario("power_outage", "Power Outage", "No grid or solar power",
                 energy={"solar_kwh": 0.0, "net_kwh": 0.0}),
        Scenario("smoke_alarm", "Smoke Alarm", "Emergency: Smoke detected", smoke=True),
        Scenario("comfort_challenge", "Comfort Challenge", "Multiple stressors active",
                 outdoor={"temperature": 32.0, "air_quality_index": 120.0},
                 indoor={"temperature": 25.0},
                 battery_fraction=0.2),
    ]
}


def get_scenario(name: str) -> Scenario:
    # Accept the camelCase names used by older front ends
    key = "".join("_" + c.lower() if c.isupper() else c for c in name)
    scenario = SCENARIOS.get(key)
    if scenario is None:
        raise ConfigurationError(f"Unknown scenario '{name}'. Options: {', '.join(SCENARIOS)}")
    return scenario


def apply_outdoor_overrides(state, scenario: Scenario):
    for key, value in scenario.outdoor.items():
        setattr(state.outdoor, key, value)


def apply_scenario(state, scenario: Scenario, battery_capacity: float):
    """One-shot state changes for `scenario` (smoke is handled by the engine)."""
    apply_outdoor_overrides(state, scenario)
    for key, value in scenario.indoor.items():
        setattr(state.indoor, key, value)
    for key, value in scenario.energy.items():
        setattr(state.energy, key, value)
    if scenario.battery_fraction is not None:
        state.energy.battery_kwh = battery_capacity * scenario.battery_fraction
