"""Passive building physics applied every tick, regardless of which devices run.

Uses the same simplified single-node thermal mass as the device modules:
C = floor_area * 0.3 kWh/K.
"""
import logging

from .constants import (
    AIR_DENSITY,
    AIR_SPECIFIC_HEAT,
    AIR_QUALITY_DECAY_PER_HOUR,
    AIR_QUALITY_MAX,
    AIR_QUALITY_MIN,
    HUMIDITY_DRIFT_PER_HOUR,
    HUMIDITY_MAX,
    HUMIDITY_MIN,
    KW_TO_WATTS,
    MAX_BELOW_OUTDOOR,
    PASSIVE_SOLAR_THRESHOLD,
    SOLAR_GAIN_UTILISATION,
    THERMAL_MASS_KWH_PER_M2,
    WALL_AREA_FRACTION,
)
from .config import SolarConfig
from .state import BuildingEnvelope, HouseState, clamp

_LOGGER = logging.getLogger(__name__)


def thermal_mass(envelope: BuildingEnvelope) -> float:
    """kWh per K of indoor temperature change."""
    return envelope.floor_area * THERMAL_MASS_KWH_PER_M2


def envelope_heat_loss_w(t_in, t_out, envelope: BuildingEnvelope) -> float:
    """Conductive + infiltration heat flow out of the house in W (negative = gain)."""
    delta_t = t_in - t_out

    wall_loss = delta_t / envelope.wall_r * envelope.floor_area * WALL_AREA_FRACTION
    roof_loss = delta_t / envelope.roof_r * envelope.floor_area
    floor_loss = delta_t / envelope.floor_r * envelope.floor_area
    window_loss = delta_t * envelope.window_u * envelope.window_area

    # rho * cp (J/kg·K) * volumetric flow (m³/s)
    infiltration_flow = envelope.infiltration_rate * envelope.volume / 3600
    infiltration_loss = delta_t * AIR_DENSITY * AIR_SPECIFIC_HEAT * KW_TO_WATTS * infiltration_flow

    return wall_loss + roof_loss + floor_loss + window_loss + infiltration_loss


def envelope_heat_loss_kwh(state: HouseState, timestep_hours=1.0) -> float:
    loss_w = envelope_heat_loss_w(state.indoor.temperature, state.outdoor.temperature, state.envelope)
    return loss_w / KW_TO_WATTS * timestep_hours


def window_solar_gain_kwh(state: HouseState, solar_config: SolarConfig, timestep_hours=1.0) -> float:
    radiation_kw = state.outdoor.solar_radiation / KW_TO_WATTS
    return (state.envelope.window_area * radiation_kw * solar_config.window_shgc
            * solar_config.orientation_factor * timestep_hours)


def window_gain_temperature_rise(state, solar_config, timestep_hours=1.0) -> float:
    gain = window_solar_gain_kwh(state, solar_config, timestep_hours)
    return gain / thermal_mass(state.envelope) * SOLAR_GAIN_UTILISATION


def apply_passive_physics(state: HouseState, timestep_hours=1.0, heat_pump_enabled=True,
                          erv_enabled=True, solar_config: SolarConfig = None) -> HouseState:
    """Envelope losses, passive solar gain and unventilated drift, in place."""
    indoor = state.indoor
    outdoor = state.outdoor
    start_temp = indoor.temperature

    loss_kwh = envelope_heat_loss_kwh(state, timestep_hours)
    indoor.temperature -= loss_kwh / thermal_mass(state.envelope)

    # Without active conditioning the windows are the only thing warming the house
    if not heat_pump_enabled and outdoor.solar_radiation > PASSIVE_SOLAR_THRESHOLD:
        indoor.temperature += window_gain_temperature_rise(
            state, solar_config or SolarConfig(), timestep_hours
        )

    if not erv_enabled:
        indoor.air_quality -= AIR_QUALITY_DECAY_PER_HOUR * timestep_hours
        indoor.humidity += (outdoor.humidity - indoor.humidity) * HUMIDITY_DRIFT_PER_HOUR * timestep_hours

    if outdoor.temperature > indoor.temperature:
        indoor.temperature = max(indoor.temperature, outdoor.temperature - MAX_BELOW_OUTDOOR)

    indoor.humidity = clamp(indoor.humidity, HUMIDITY_MIN, HUMIDITY_MAX)
    indoor.air_quality = clamp(indoor.air_quality, AIR_QUALITY_MIN, AIR_QUALITY_MAX)

    _LOGGER.debug("Passive step: loss %.3f kWh, indoor %.2f -> %.2f °C",
                  loss_kwh, start_temp, indoor.temperature)
    return state
