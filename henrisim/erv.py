"""Energy recovery ventilation: fresh air, heat/humidity recovery and fan energy."""
from .config import ERVConfig
from .constants import ERV_MAX_AIR_QUALITY, HUMIDITY_MAX, HUMIDITY_MIN, KW_TO_WATTS
from .modules import SimulationModule
from .physics import thermal_mass
from .state import clamp

# Emergency (smoke) regime
EMERGENCY_FLOW_MULTIPLIER = 2.0
EMERGENCY_FAN_MULTIPLIER = 1.5
EMERGENCY_MIXING_RATE = 0.2
EMERGENCY_RECOVERY_FACTOR = 0.5

NORMAL_MIXING_RATE = 0.1
POOR_OUTDOOR_AQI = 100
THERMAL_RECOVERY_RATE = 0.1
HUMIDITY_RECOVERY_RATE = 0.05


def fresh_air_fraction(flow_rate, envelope) -> float:
    return flow_rate / (envelope.floor_area * envelope.ceiling_height) / envelope.infiltration_rate


class ERVModule(SimulationModule):
    name = "erv"
    config_type = ERVConfig

    def simulate(self, state, timestep_hours=1.0, config=None):
        config = self.resolve_config(config)
        if state.safety.smoke_event:
            return self._simulate_emergency(state, timestep_hours, config)

        indoor, outdoor = state.indoor, state.outdoor

        outdoor_aq = max(0.3, 1 - outdoor.air_quality_index / 150)
        fraction = fresh_air_fraction(config.flow_rate, state.envelope)
        improvement = (outdoor_aq - indoor.air_quality) * fraction * NORMAL_MIXING_RATE
        if outdoor.air_quality_index > POOR_OUTDOOR_AQI:
            improvement *= 0.5
        indoor.air_quality = min(ERV_MAX_AIR_QUALITY, indoor.air_quality + improvement * timestep_hours)

        recovery_kwh = (outdoor.temperature - indoor.temperature) * config.efficiency * THERMAL_RECOVERY_RATE
        indoor.temperature += recovery_kwh * timestep_hours / thermal_mass(state.envelope)

        humidity_recovery = (outdoor.humidity - indoor.humidity) * config.efficiency * HUMIDITY_RECOVERY_RATE
        indoor.humidity = clamp(indoor.humidity + humidity_recovery * timestep_hours, HUMIDITY_MIN, HUMIDITY_MAX)

        state.energy.erv_kwh += config.fan_power / KW_TO_WATTS * timestep_hours
        return state

    def _simulate_emergency(self, state, timestep_hours, config):
        """Smoke evacuation: air exchange first, thermal comfort second."""
        indoor, outdoor = state.indoor, state.outdoor
        flow_rate = config.flow_rate * EMERGENCY_FLOW_MULTIPLIER
        fan_kw = config.fan_power / KW_TO_WATTS * EMERGENCY_FAN_MULTIPLIER

        outdoor_aq = max(0.1, 1 - outdoor.air_quality_index / 100)
        fraction = fresh_air_fraction(flow_rate, state.envelope)
        improvement = (outdoor_aq - indoor.air_quality) * fraction * EMERGENCY_MIXING_RATE
        indoor.air_quality = min(ERV_MAX_AIR_QUALITY, indoor.air_quality + improvement * timestep_hours)

        recovery_kwh = ((outdoor.temperature - indoor.temperature)
                        * config.efficiency * EMERGENCY_RECOVERY_FACTOR * THERMAL_RECOVERY_RATE)
        indoor.temperature += recovery_kwh * timestep_hours / thermal_mass(state.envelope)

        state.energy.erv_kwh += fan_kw * timestep_hours
        return state
