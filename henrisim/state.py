"""House state containers.

The orchestrator owns a single `HouseState` and hands it to passive physics,
the decision engine and each device module in turn. Snapshots for history are
taken with `clone()`, never by sharing references.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict, fields, replace
from typing import Any

from .constants import (
    DEFAULT_FLOOR_AREA,
    DEFAULT_WALL_R,
    DEFAULT_ROOF_R,
    DEFAULT_FLOOR_R,
    DEFAULT_WINDOW_U,
    DEFAULT_WINDOW_AREA,
    DEFAULT_INFILTRATION_RATE,
)


def _known(cls, data: dict | None) -> dict:
    """Drop keys the dataclass does not know about (legacy/partial data)."""
    if not data:
        return {}
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class Location:
    lat: float = 39.7392
    lon: float = -104.9903
    city_id: str | None = None
    city_name: str | None = None


@dataclass
class OutdoorConditions:
    temperature: float = 25.0         # °C
    humidity: float = 0.45            # 0-1
    solar_radiation: float = 800.0    # W/m²
    air_quality_index: float = 50.0   # AQI
    wind_speed: float = 2.0           # m/s


@dataclass
class IndoorConditions:
    temperature: float = 21.0         # °C
    humidity: float = 0.4             # 0-1, clamped [0.2, 0.8]
    air_quality: float = 0.9          # 0-1, clamped [0.3, 1.0]


@dataclass
class BuildingEnvelope:
    floor_area: float = DEFAULT_FLOOR_AREA
    wall_r: float = DEFAULT_WALL_R
    roof_r: float = DEFAULT_ROOF_R
    floor_r: float = DEFAULT_FLOOR_R
    window_u: float = DEFAULT_WINDOW_U
    window_area: float = DEFAULT_WINDOW_AREA
    infiltration_rate: float = DEFAULT_INFILTRATION_RATE
    ceiling_height: float = 2.5

    @property
    def volume(self) -> float:
        return self.floor_area * self.ceiling_height


@dataclass
class EnergyState:
    """Energy flows for the current hour.

    Everything except `battery_kwh` is reset at the start of each tick;
    `battery_kwh` is the battery state of charge carried across ticks.
    """

    heat_pump_kwh: float = 0.0
    erv_kwh: float = 0.0
    solar_kwh: float = 0.0
    battery_kwh: float = 0.0
    net_kwh: float = 0.0

    @property
    def consumed_kwh(self) -> float:
        return self.heat_pump_kwh + self.erv_kwh

    def reset_hourly(self):
        self.heat_pump_kwh = 0.0
        self.erv_kwh = 0.0
        self.solar_kwh = 0.0
        self.net_kwh = 0.0


@dataclass
class SafetyState:
    smoke_event: bool = False
    sprinklers_active: bool = False


@dataclass
class HouseState:
    time: int = 12
    date: str = "2025-06-21"
    season: str = "summer"
    seasonal_date_id: str | None = None
    day_length: float | None = None
    solar_elevation: float | None = None
    location: Location = field(default_factory=Location)
    outdoor: OutdoorConditions = field(default_factory=OutdoorConditions)
    indoor: IndoorConditions = field(default_factory=IndoorConditions)
    envelope: BuildingEnvelope = field(default_factory=BuildingEnvelope)
    energy: EnergyState = field(default_factory=EnergyState)
    safety: SafetyState = field(default_factory=SafetyState)
    comfort_score: int = 100

    def clone(self) -> "HouseState":
        """Value copy of the state. Nested records are copied, not shared."""
        return replace(
            self,
            location=replace(self.location),
            outdoor=replace(self.outdoor),
            indoor=replace(self.indoor),
            envelope=replace(self.envelope),
            energy=replace(self.energy),
            safety=replace(self.safety),
        )

    def restore(self, snapshot: "HouseState"):
        """Overwrite this state in place with the values of `snapshot`."""
        copy = snapshot.clone()
        for f in fields(self):
            setattr(self, f.name, getattr(copy, f.name))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None, base: "HouseState | None" = None) -> "HouseState":
        """Build a state from (possibly partial) persisted data.

        Missing fields keep the values of `base` (or the defaults), unknown
        keys are ignored.
        """
        state = base.clone() if base is not None else cls()
        if not data:
            return state

        nested = {
            "location": Location,
            "outdoor": OutdoorConditions,
            "indoor": IndoorConditions,
            "envelope": BuildingEnvelope,
            "energy": EnergyState,
            "safety": SafetyState,
        }
        for key, value in _known(cls, data).items():
            if key in nested:
                if isinstance(value, dict):
                    current = getattr(state, key)
                    setattr(state, key, replace(current, **_known(nested[key], value)))
            else:
                setattr(state, key, value)
        return state


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def state_summary(state: HouseState) -> dict[str, Any]:
    """Flat view of the headline values, used for logging and reports."""
    return {
        "hour": state.time,
        "outdoor_temp": state.outdoor.temperature,
        "indoor_temp": state.indoor.temperature,
        "indoor_humidity": state.indoor.humidity,
        "air_quality": state.indoor.air_quality,
        "solar_radiation": state.outdoor.solar_radiation,
        "aqi": state.outdoor.air_quality_index,
        "heat_pump_kwh": state.energy.heat_pump_kwh,
        "erv_kwh": state.energy.erv_kwh,
        "solar_kwh": state.energy.solar_kwh,
        "battery_kwh": state.energy.battery_kwh,
        "net_kwh": state.energy.net_kwh,
        "comfort_score": state.comfort_score,
    }
