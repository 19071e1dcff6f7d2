"""Home battery: stores surplus PV and settles the hour's net grid exchange."""
import logging

from .config import BatteryConfig
from .constants import BATTERY_DEADBAND_KWH
from .modules import SimulationModule
from .state import clamp

_LOGGER = logging.getLogger(__name__)


class BatteryModule(SimulationModule):
    """Authoritative writer of `energy.net_kwh` when enabled.

    Must run after every producing/consuming module (it is registered last).
    """

    name = "battery"
    config_type = BatteryConfig

    def simulate(self, state, timestep_hours=1.0, config=None):
        config = self.resolve_config(config)
        energy = state.energy

        consumption = energy.consumed_kwh
        generation = energy.solar_kwh
        balance = generation - consumption

        charge = clamp(energy.battery_kwh, 0.0, config.capacity)
        accepted = 0.0    # energy drawn from the bus into the battery
        discharged = 0.0  # energy delivered by the battery

        if balance > BATTERY_DEADBAND_KWH:
            headroom = config.capacity - charge
            accepted = max(0.0, min(balance, config.charge_rate * timestep_hours,
                                    headroom / config.efficiency))
            charge += accepted * config.efficiency
        elif balance < -BATTERY_DEADBAND_KWH and charge > 0:
            discharged = min(-balance, config.discharge_rate * timestep_hours, charge)
            charge -= discharged

        energy.battery_kwh = clamp(charge, 0.0, config.capacity)
        # Negative = export
        energy.net_kwh = consumption - generation + accepted - discharged

        if accepted or discharged:
            _LOGGER.debug("Battery %s %.3f kWh, SOC %.2f/%.1f kWh",
                          "charged" if accepted else "discharged",
                          accepted or discharged, energy.battery_kwh, config.capacity)
        return state
