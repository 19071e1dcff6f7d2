"""Hour-by-hour home simulation with the Henri adaptive controller."""

from .config import SimulationConfiguration
from .simulation import SimulationEngine
from .state import HouseState

__all__ = ["HouseState", "SimulationConfiguration", "SimulationEngine"]
