"""Building and HVAC configuration with documented valid ranges."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, asdict, fields, replace

from .constants import (
    DEFAULT_FLOOR_AREA,
    DEFAULT_WALL_R,
    DEFAULT_ROOF_R,
    DEFAULT_FLOOR_R,
    DEFAULT_WINDOW_U,
    DEFAULT_WINDOW_AREA,
    DEFAULT_INFILTRATION_RATE,
    DEFAULT_CEILING_HEIGHT,
    DEFAULT_TARGET_TEMP,
    DEFAULT_HP_COP,
    DEFAULT_HP_CAPACITY_KW,
    DEFAULT_TARGET_TEMP_MIN,
    DEFAULT_TARGET_TEMP_MAX,
    DEFAULT_ERV_EFFICIENCY,
    DEFAULT_ERV_FLOW_RATE,
    DEFAULT_ERV_FAN_POWER,
    DEFAULT_PANEL_AREA,
    DEFAULT_PANEL_EFFICIENCY,
    DEFAULT_INVERTER_EFFICIENCY,
    DEFAULT_WINDOW_SHGC,
    DEFAULT_WINDOW_ORIENTATION,
    DEFAULT_BATTERY_CAPACITY,
    DEFAULT_BATTERY_CHARGE_RATE,
    DEFAULT_BATTERY_DISCHARGE_RATE,
    DEFAULT_BATTERY_EFFICIENCY,
    DEFAULT_BATTERY_INITIAL_CHARGE,
    DEFAULT_OCCUPANCY,
    DEFAULT_GAIN_PEOPLE_W,
    DEFAULT_GAIN_LIGHTING_W_M2,
    DEFAULT_GAIN_EQUIPMENT_W_M2,
    DEFAULT_BRIDGE_FOUNDATION,
    DEFAULT_BRIDGE_BALCONY,
    DEFAULT_BRIDGE_ROOF,
    DEFAULT_BRIDGE_WINDOWS,
)
from .errors import ConfigurationError, ValidationError
from .state import BuildingEnvelope

_LOGGER = logging.getLogger(__name__)


# (min, max, unit) per category/field. Values outside these are rejected.
VALIDATION_RANGES = {
    "building": {
        "floor_area": (50, 500, "m²"),
        "wall_r": (2.0, 10.0, "m²·K/W"),
        "roof_r": (3.0, 15.0, "m²·K/W"),
        "floor_r": (2.0, 8.0, "m²·K/W"),
        "window_u": (0.4, 2.0, "W/m²·K"),
        "window_area": (5, 50, "m²"),
        "infiltration_rate": (0.1, 1.0, "ACH"),
        "ceiling_height": (2.2, 3.5, "m"),
    },
    "heat_pump": {
        "target_temperature": (16, 26, "°C"),
        "efficiency": (2.0, 6.0, ""),
        "capacity": (1.0, 12.0, "kW"),
        "target_temp_min": (16, 22, "°C"),
        "target_temp_max": (20, 26, "°C"),
    },
    "erv": {
        "flow_rate": (50, 300, "m³/h"),
        "efficiency": (0.5, 0.95, ""),
        "fan_power": (20, 150, "W"),
    },
    "solar": {
        "panel_area": (10, 100, "m²"),
        "efficiency": (0.15, 0.25, ""),
        "inverter_efficiency": (0.9, 0.98, ""),
        "window_shgc": (0.2, 0.7, ""),
        "orientation_factor": (0.0, 1.0, ""),
    },
    "battery": {
        "capacity": (5, 50, "kWh"),
        "charge_rate": (1.0, 10.0, "kW"),
        "discharge_rate": (1.0, 10.0, "kW"),
        "efficiency": (0.8, 0.98, ""),
        "initial_charge": (0, 50, "kWh"),
    },
    "zones": {
        "occupancy": (0, 12, "persons"),
        "people_w": (0, 150, "W/person"),
        "lighting_w_m2": (0, 20, "W/m²"),
        "equipment_w_m2": (0, 30, "W/m²"),
    },
    "bridges": {
        "foundation": (0, 50, "W/K"),
        "balcony": (0, 50, "W/K"),
        "roof": (0, 50, "W/K"),
        "windows": (0, 50, "W/K"),
    },
}


def validate_value(category: str, field_name: str, value) -> bool:
    """True when `value` lies inside the documented range (unknown fields pass)."""
    valid_range = VALIDATION_RANGES.get(category, {}).get(field_name)
    if valid_range is None:
        return True
    low, high, _ = valid_range
    return low <= value <= high


# --- Module configuration (the knobs Henri turns) ---

@dataclass
class HeatPumpConfig:
    target_temperature: float = DEFAULT_TARGET_TEMP
    efficiency: float = DEFAULT_HP_COP          # COP
    capacity: float = DEFAULT_HP_CAPACITY_KW    # kW
    target_temp_min: float = DEFAULT_TARGET_TEMP_MIN
    target_temp_max: float = DEFAULT_TARGET_TEMP_MAX

    def effective_target(self) -> float:
        """Target temperature clamped to the allowed setpoint window."""
        return min(max(self.target_temperature, self.target_temp_min), self.target_temp_max)


@dataclass
class ERVConfig:
    efficiency: float = DEFAULT_ERV_EFFICIENCY  # heat recovery 0-1
    flow_rate: float = DEFAULT_ERV_FLOW_RATE    # m³/h
    fan_power: float = DEFAULT_ERV_FAN_POWER    # W


@dataclass
class SolarConfig:
    panel_area: float = DEFAULT_PANEL_AREA
    efficiency: float = DEFAULT_PANEL_EFFICIENCY
    inverter_efficiency: float = DEFAULT_INVERTER_EFFICIENCY
    window_shgc: float = DEFAULT_WINDOW_SHGC
    orientation_factor: float = DEFAULT_WINDOW_ORIENTATION


@dataclass
class BatteryConfig:
    capacity: float = DEFAULT_BATTERY_CAPACITY
    charge_rate: float = DEFAULT_BATTERY_CHARGE_RATE
    discharge_rate: float = DEFAULT_BATTERY_DISCHARGE_RATE
    efficiency: float = DEFAULT_BATTERY_EFFICIENCY
    initial_charge: float = DEFAULT_BATTERY_INITIAL_CHARGE


@dataclass
class ModuleConfigs:
    """Runtime configuration for every known device, keyed by module name."""

    heat_pump: HeatPumpConfig = field(default_factory=HeatPumpConfig)
    erv: ERVConfig = field(default_factory=ERVConfig)
    solar: SolarConfig = field(default_factory=SolarConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)

    _BY_NAME = {
        "heatPump": "heat_pump",
        "erv": "erv",
        "solar": "solar",
        "battery": "battery",
    }

    def for_module(self, name: str):
        """Config slice for a module name, or None for unknown modules."""
        attr = self._BY_NAME.get(name)
        return getattr(self, attr) if attr else None

    def copy(self) -> "ModuleConfigs":
        return ModuleConfigs(
            heat_pump=replace(self.heat_pump),
            erv=replace(self.erv),
            solar=replace(self.solar),
            battery=replace(self.battery),
        )

    def to_dict(self) -> dict:
        return {name: asdict(self.for_module(name)) for name in self._BY_NAME}

    def update_from_dict(self, data: dict | None):
        """Apply persisted values, ignoring unknown modules and fields."""
        for name, values in (data or {}).items():
            current = self.for_module(name)
            if current is None or not isinstance(values, dict):
                continue
            known = {f.name for f in fields(current)}
            for key, value in values.items():
                if key in known:
                    setattr(current, key, value)


# --- Building configuration ---

@dataclass
class BuildingConfig:
    floor_area: float = DEFAULT_FLOOR_AREA
    wall_r: float = DEFAULT_WALL_R
    roof_r: float = DEFAULT_ROOF_R
    floor_r: float = DEFAULT_FLOOR_R
    window_u: float = DEFAULT_WINDOW_U
    window_area: float = DEFAULT_WINDOW_AREA
    infiltration_rate: float = DEFAULT_INFILTRATION_RATE
    ceiling_height: float = DEFAULT_CEILING_HEIGHT


@dataclass
class HVACConfig:
    heat_pump: HeatPumpConfig = field(default_factory=HeatPumpConfig)
    erv: ERVConfig = field(default_factory=ERVConfig)
    solar: SolarConfig = field(default_factory=SolarConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)


@dataclass
class BuildingZonesConfig:
    occupancy: int = DEFAULT_OCCUPANCY
    people_w: float = DEFAULT_GAIN_PEOPLE_W
    lighting_w_m2: float = DEFAULT_GAIN_LIGHTING_W_M2
    equipment_w_m2: float = DEFAULT_GAIN_EQUIPMENT_W_M2


@dataclass
class ThermalBridgesConfig:
    foundation: float = DEFAULT_BRIDGE_FOUNDATION
    balcony: float = DEFAULT_BRIDGE_BALCONY
    roof: float = DEFAULT_BRIDGE_ROOF
    windows: float = DEFAULT_BRIDGE_WINDOWS

    @property
    def total(self) -> float:
        return self.foundation + self.balcony + self.roof + self.windows


PRESETS = {
    # Just meets Passive House standards
    "minimal-ph": {
        "building": {"wall_r": 4.0, "roof_r": 6.0, "window_u": 1.0},
        "heat_pump": {"capacity": 2.0},
        "erv": {"efficiency": 0.75},
    },
    # Exceeds standards
    "premium-ph": {
        "building": {"wall_r": 8.0, "roof_r": 12.0, "window_u": 0.6},
        "heat_pump": {"capacity": 2.5},
        "erv": {"efficiency": 0.85},
    },
    # EnerPHit retrofit
    "retrofit": {
        "building": {"wall_r": 3.0, "roof_r": 4.5, "window_u": 1.2, "infiltration_rate": 0.6},
        "heat_pump": {"capacity": 4.0},
    },
}


class SimulationConfiguration:
    """Everything a caller can configure before (or between) simulation runs.

    The engine takes a snapshot of this at construction and re-reads it only
    when `SimulationEngine.sync_config_changes()` is called.
    """

    def __init__(self, building=None, hvac=None, zones=None, bridges=None):
        self.building = building or BuildingConfig()
        self.hvac = hvac or HVACConfig()
        self.zones = zones or BuildingZonesConfig()
        self.bridges = bridges or ThermalBridgesConfig()

    def _section(self, category):
        sections = {
            "building": self.building,
            "heat_pump": self.hvac.heat_pump,
            "erv": self.hvac.erv,
            "solar": self.hvac.solar,
            "battery": self.hvac.battery,
            "zones": self.zones,
            "bridges": self.bridges,
        }
        if category not in sections:
            raise ConfigurationError(f"Unknown configuration category '{category}'")
        return sections[category]

    def update(self, category: str, **values):
        """Validate and apply values to one section. Nothing is applied if any value is invalid."""
        section = self._section(category)
        known = {f.name for f in fields(section)}
        for key, value in values.items():
            if key not in known:
                raise ConfigurationError(f"Unknown field '{category}.{key}'")
            if not validate_value(category, key, value):
                raise ValidationError(category, key, value, VALIDATION_RANGES[category][key])
        for key, value in values.items():
            setattr(section, key, value)

    def validate(self) -> list:
        """Return a ValidationError for every out-of-range value."""
        errors = []
        for category, ranges in VALIDATION_RANGES.items():
            section = self._section(category)
            for key, valid_range in ranges.items():
                value = getattr(section, key)
                if not validate_value(category, key, value):
                    errors.append(ValidationError(category, key, value, valid_range))
        hp = self.hvac.heat_pump
        if not hp.target_temp_min <= hp.target_temperature <= hp.target_temp_max:
            errors.append(ValidationError(
                "heat_pump", "target_temperature", hp.target_temperature,
                (hp.target_temp_min, hp.target_temp_max, "°C"),
            ))
        battery = self.hvac.battery
        if battery.initial_charge > battery.capacity:
            errors.append(ValidationError(
                "battery", "initial_charge", battery.initial_charge, (0, battery.capacity, "kWh")
            ))
        return errors

    def load_preset(self, name: str):
        if name not in PRESETS:
            raise ConfigurationError(f"Unknown preset '{name}'. Options: {', '.join(PRESETS)}")
        for category, values in PRESETS[name].items():
            self.update(category, **values)
        _LOGGER.info("Loaded configuration preset '%s'", name)

    def reset_to_defaults(self):
        self.building = BuildingConfig()
        self.hvac = HVACConfig()
        self.zones = BuildingZonesConfig()
        self.bridges = ThermalBridgesConfig()

    # Derived values
    @property
    def volume(self) -> float:
        return self.building.floor_area * self.building.ceiling_height

    @property
    def window_to_floor_ratio(self) -> float:
        return self.building.window_area / self.building.floor_area * 100.0

    @property
    def total_internal_gains(self) -> float:
        """Internal gains in W (people + lighting + equipment)."""
        return (self.zones.occupancy * self.zones.people_w
                + self.building.floor_area * (self.zones.lighting_w_m2 + self.zones.equipment_w_m2))

    @property
    def total_thermal_bridges(self) -> float:
        return self.bridges.total

    def envelope(self) -> BuildingEnvelope:
        b = self.building
        return BuildingEnvelope(
            floor_area=b.floor_area,
            wall_r=b.wall_r,
            roof_r=b.roof_r,
            floor_r=b.floor_r,
            window_u=b.window_u,
            window_area=b.window_area,
            infiltration_rate=b.infiltration_rate,
            ceiling_height=b.ceiling_height,
        )

    def module_configs(self) -> ModuleConfigs:
        return ModuleConfigs(
            heat_pump=replace(self.hvac.heat_pump),
            erv=replace(self.hvac.erv),
            solar=replace(self.hvac.solar),
            battery=replace(self.hvac.battery),
        )

    def to_dict(self) -> dict:
        return {
            "building": asdict(self.building),
            "heat_pump": asdict(self.hvac.heat_pump),
            "erv": asdict(self.hvac.erv),
            "solar": asdict(self.hvac.solar),
            "battery": asdict(self.hvac.battery),
            "zones": asdict(self.zones),
            "bridges": asdict(self.bridges),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationConfiguration":
        config = cls()
        for category, values in (data or {}).items():
            if category == "description":
                continue
            if not isinstance(values, dict):
                raise ConfigurationError(f"Section '{category}' must be an object")
            config.update(category, **values)
        return config

    @classmethod
    def from_json(cls, json_path: str) -> "SimulationConfiguration":
        with open(json_path, 'r') as f:
            # Support // comments
            content = f.read()
            content = re.sub(r'//.*', '', content)
            try:
                data = json.loads(content)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid configuration file {json_path}: {e}") from e
        return cls.from_dict(data)
