"""Rooftop PV generation plus passive window gain.

Net grid settlement is left to the battery (or the orchestrator when no
battery runs).
"""
from .config import SolarConfig
from .constants import KW_TO_WATTS
from .modules import SimulationModule
from .physics import window_gain_temperature_rise


def pv_generation_kwh(radiation, config: SolarConfig, timestep_hours=1.0) -> float:
    return (config.panel_area * radiation / KW_TO_WATTS * config.efficiency
            * config.inverter_efficiency * timestep_hours)


class SolarModule(SimulationModule):
    name = "solar"
    config_type = SolarConfig

    def simulate(self, state, timestep_hours=1.0, config=None):
        config = self.resolve_config(config)
        state.energy.solar_kwh += pv_generation_kwh(state.outdoor.solar_radiation, config, timestep_hours)
        state.indoor.temperature += window_gain_temperature_rise(state, config, timestep_hours)
        return state
