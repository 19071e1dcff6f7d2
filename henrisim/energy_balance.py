"""Detailed heat loss / gain ledger (Passive House methodology).

Diagnostic only: the result is reported alongside each tick but never feeds
back into the indoor temperature.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict

import pandas as pd

from .config import BuildingZonesConfig, ThermalBridgesConfig
from .constants import AIR_DENSITY, AIR_SPECIFIC_HEAT, KW_TO_WATTS, WALL_AREA_FRACTION
from .state import HouseState

# Reduced ΔT factors for surfaces that do not face ambient air
GROUND_WALL_DT_FACTOR = 0.6
GROUND_WALL_AREA_FRACTION = 0.2
SLAB_DT_FACTOR = 0.5
GARAGE_AREA_FRACTION = 0.1
GARAGE_U = 0.5
GARAGE_DT_FACTOR = 0.6
DOOR_U = 2.0
DOOR_AREA = 4.0

# Thermal bridge split across wall / roof / window categories
BRIDGE_SPLIT = (0.4, 0.3, 0.3)

SOLAR_SHGC = 0.6
FRAME_FACTOR = 0.9
OVERHEAT_THRESHOLD = 25.0     # °C
OVERHEAT_W_PER_M2_K = 0.05

PRIMARY_ENERGY_FACTOR = 2.6   # electricity


@dataclass
class HeatLosses:
    external_wall_ambient: float = 0.0
    external_wall_ground: float = 0.0
    roof_ceiling_ambient: float = 0.0
    floor_slab_basement: float = 0.0
    unheated_garage: float = 0.0
    windows: float = 0.0
    exterior_door: float = 0.0
    ventilation: float = 0.0

    @property
    def total(self) -> float:
        return sum(asdict(self).values())


@dataclass
class HeatGains:
    solar_gains: float = 0.0
    internal_heat_gains: float = 0.0
    non_useful_heat_gains: float = 0.0

    @property
    def total(self) -> float:
        return self.solar_gains + self.internal_heat_gains + self.non_useful_heat_gains


@dataclass
class EnergyBalance:
    """All values in kWh over the timestep, area loads in kWh/m²."""

    losses: HeatLosses
    gains: HeatGains
    heating_demand: float
    cooling_demand: float
    heating_load: float
    cooling_load: float
    treatable_floor_area: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["losses"]["total"] = self.losses.total
        data["gains"]["total"] = self.gains.total
        return data


@dataclass
class PassiveHouseMetrics:
    annual_heating_demand: float   # kWh/m²a, PH limit 15
    annual_cooling_demand: float   # kWh/m²a, PH limit 15
    primary_energy_demand: float   # kWh/m²a, PH limit 120
    heat_recovery_efficiency: float
    overheating_frequency: float   # share of samples with indoor > 25 °C


def _conduction_kwh(delta_t, u_value, area, timestep_hours):
    return abs(delta_t) * u_value * area * timestep_hours / KW_TO_WATTS


class EnergyBalanceCalculator:
    def __init__(self, zones: BuildingZonesConfig = None, bridges: ThermalBridgesConfig = None):
        self.zones = zones or BuildingZonesConfig()
        self.bridges = bridges or ThermalBridgesConfig()

    def internal_gains_w(self, floor_area) -> float:
        z = self.zones
        return z.occupancy * z.people_w + floor_area * (z.lighting_w_m2 + z.equipment_w_m2)

    def calculate(self, state: HouseState, timestep_hours=1.0) -> EnergyBalance:
        indoor, outdoor, env = state.indoor, state.outdoor, state.envelope
        delta_t = indoor.temperature - outdoor.temperature
        area = env.floor_area

        losses = HeatLosses(
            external_wall_ambient=_conduction_kwh(delta_t, 1 / env.wall_r, area * WALL_AREA_FRACTION, timestep_hours),
            external_wall_ground=_conduction_kwh(delta_t * GROUND_WALL_DT_FACTOR, 1 / env.floor_r,
                                                 area * GROUND_WALL_AREA_FRACTION, timestep_hours),
            roof_ceiling_ambient=_conduction_kwh(delta_t, 1 / env.roof_r, area, timestep_hours),
            floor_slab_basement=_conduction_kwh(delta_t * SLAB_DT_FACTOR, 1 / env.floor_r, area, timestep_hours),
            unheated_garage=_conduction_kwh(delta_t * GARAGE_DT_FACTOR, GARAGE_U,
                                            area * GARAGE_AREA_FRACTION, timestep_hours),
            windows=_conduction_kwh(delta_t, env.window_u, env.window_area, timestep_hours),
            exterior_door=_conduction_kwh(delta_t, DOOR_U, DOOR_AREA, timestep_hours),
            ventilation=self._ventilation_kwh(delta_t, env.infiltration_rate, env.volume, timestep_hours),
        )

        bridge_kwh = abs(delta_t) * self.bridges.total * timestep_hours / KW_TO_WATTS
        wall_share, roof_share, window_share = BRIDGE_SPLIT
        losses.external_wall_ambient += bridge_kwh * wall_share
        losses.roof_ceiling_ambient += bridge_kwh * roof_share
        losses.windows += bridge_kwh * window_share

        gains = HeatGains(
            solar_gains=outdoor.solar_radiation * env.window_area * SOLAR_SHGC * FRAME_FACTOR
            * timestep_hours / KW_TO_WATTS,
            internal_heat_gains=self.internal_gains_w(area) * timestep_hours / KW_TO_WATTS,
            non_useful_heat_gains=self._non_useful_kwh(outdoor.temperature, indoor.temperature,
                                                       area, timestep_hours),
        )

        heating = max(0.0, losses.total - gains.total)
        cooling = max(0.0, gains.total - losses.total)
        return EnergyBalance(
            losses=losses,
            gains=gains,
            heating_demand=heating,
            cooling_demand=cooling,
            heating_load=heating / area,
            cooling_load=cooling / area,
            treatable_floor_area=area,
        )

    @staticmethod
    def _ventilation_kwh(delta_t, ach, volume, timestep_hours):
        mass_flow = ach * volume / 3600 * AIR_DENSITY  # kg/s
        heat_loss_w = abs(delta_t) * mass_flow * AIR_SPECIFIC_HEAT * KW_TO_WATTS
        return heat_loss_w * timestep_hours / KW_TO_WATTS

    @staticmethod
    def _non_useful_kwh(t_out, t_in, area, timestep_hours):
        if t_out > OVERHEAT_THRESHOLD and t_in > OVERHEAT_THRESHOLD:
            excess_w = (t_in - OVERHEAT_THRESHOLD) * area * OVERHEAT_W_PER_M2_K
            return excess_w * timestep_hours / KW_TO_WATTS
        return 0.0


def balances_frame(balances) -> pd.DataFrame:
    """One row per balance with every loss/gain category as a column."""
    rows = []
    for balance in balances:
        row = {f"loss_{k}": v for k, v in asdict(balance.losses).items()}
        row.update({f"gain_{k}": v for k, v in asdict(balance.gains).items()})
        row["heating_demand"] = balance.heating_demand
        row["cooling_demand"] = balance.cooling_demand
        rows.append(row)
    return pd.DataFrame(rows)


def passive_house_metrics(balances, floor_area, seasonal_cop, heat_recovery_efficiency,
                          indoor_temperatures=None) -> PassiveHouseMetrics:
    """Aggregate a series of balances into area-specific PH indicators."""
    frame = balances_frame(balances)
    if frame.empty:
        total_heating = total_cooling = 0.0
    else:
        total_heating = float(frame["heating_demand"].sum())
        total_cooling = float(frame["cooling_demand"].sum())

    electricity = (total_heating + total_cooling) / seasonal_cop
    overheating = 0.0
    if indoor_temperatures is not None and len(indoor_temperatures):
        temps = pd.Series(indoor_temperatures, dtype=float)
        overheating = float((temps > OVERHEAT_THRESHOLD).mean())

    return PassiveHouseMetrics(
        annual_heating_demand=total_heating / floor_area,
        annual_cooling_demand=total_cooling / floor_area,
        primary_energy_demand=electricity * PRIMARY_ENERGY_FACTOR / floor_area,
        heat_recovery_efficiency=heat_recovery_efficiency,
        overheating_frequency=overheating,
    )
