"""Heat pump: active conditioning toward the target temperature.

Envelope losses are applied by the passive step; this module only adds
(or removes) heat.
"""
from .config import HeatPumpConfig
from .constants import HP_DEADBAND, HP_MAX_ERROR_FRACTION, HP_SIZING_MASS_KWH_PER_M2
from .modules import SimulationModule
from .physics import envelope_heat_loss_kwh, thermal_mass


class HeatPumpModule(SimulationModule):
    name = "heatPump"
    config_type = HeatPumpConfig

    def simulate(self, state, timestep_hours=1.0, config=None):
        config = self.resolve_config(config)
        indoor = state.indoor

        target = config.effective_target()
        error = target - indoor.temperature
        if abs(error) <= HP_DEADBAND:
            return state

        # Sizing heuristic: bring the mass to target plus cover the ongoing loss
        continuous_loss = abs(envelope_heat_loss_kwh(state, timestep_hours))
        required_kwh = abs(error) * state.envelope.floor_area * HP_SIZING_MASS_KWH_PER_M2 + continuous_loss
        heat_kwh = min(required_kwh, config.capacity * timestep_hours)

        # Anti-overshoot: close at most 80% of the remaining error per tick
        delta_t = min(heat_kwh / thermal_mass(state.envelope), HP_MAX_ERROR_FRACTION * abs(error))
        heat_kwh = delta_t * thermal_mass(state.envelope)

        indoor.temperature += delta_t if error > 0 else -delta_t
        state.energy.heat_pump_kwh += heat_kwh / config.efficiency
        return state
