"""Device module interface.

A module reads the house state and its own configuration slice, mutates the
state in place and returns it. The orchestrator calls modules in registration
order and wraps every call in a `ModuleResult`.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from .state import HouseState


class SimulationModule(ABC):
    name: str = ""
    config_type: type | None = None

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def resolve_config(self, config):
        """Use the supplied config slice, or this module's defaults."""
        if config is None and self.config_type is not None:
            return self.config_type()
        return config

    @abstractmethod
    def simulate(self, state: HouseState, timestep_hours: float = 1.0, config=None) -> HouseState:
        ...

    def __repr__(self):
        return f"<{type(self).__name__} name={self.name!r} enabled={self.enabled}>"


class FunctionModule(SimulationModule):
    """Wraps a plain callable `fn(state, timestep_hours, config)` registered by a host."""

    def __init__(self, name: str, fn: Callable[..., Any], enabled: bool = True):
        super().__init__(enabled)
        self.name = name
        self.fn = fn

    def simulate(self, state, timestep_hours=1.0, config=None):
        result = self.fn(state, timestep_hours, config)
        return state if result is None else result


@dataclass
class ModuleResult:
    name: str
    ok: bool
    duration_ms: float = 0.0
    error: str | None = None
    indoor_delta: float = 0.0
    energy_delta: float = 0.0
