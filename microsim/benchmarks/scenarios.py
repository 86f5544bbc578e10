"""Scenario registry for built-in benchmark scenarios."""

from __future__ import annotations

from typing import Callable

from ..core.control import ControlMap
from ..core.network import Network

ScenarioFactory = Callable[..., tuple[Network, ControlMap]]

_SCENARIO_REGISTRY: dict[str, ScenarioFactory] = {}


def register_scenario(name: str):
    """Decorator to register a scenario factory."""
    def wrapper(fn: ScenarioFactory) -> ScenarioFactory:
        _SCENARIO_REGISTRY[name] = fn
        return fn
    return wrapper


def get_scenario(name: str) -> ScenarioFactory:
    """Retrieve a registered scenario factory by name."""
    if name not in _SCENARIO_REGISTRY:
        raise KeyError(f"Unknown scenario: {name!r}. "
                       f"Available: {list(_SCENARIO_REGISTRY.keys())}")
    return _SCENARIO_REGISTRY[name]


def list_scenarios() -> list[str]:
    """List all registered scenario names."""
    return list(_SCENARIO_REGISTRY.keys())


# Register built-in scenarios
from .four_way import (
    create_all_way_stop,
    create_four_way_stop,
    create_signalized_intersection,
)

register_scenario("four-way-stop-v0")(create_four_way_stop)
register_scenario("all-way-stop-v0")(create_all_way_stop)
register_scenario("signalized-v0")(create_signalized_intersection)
