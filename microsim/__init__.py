"""microsim: intersection admission policies for microscopic traffic simulation."""

from __future__ import annotations

from .config import DEFAULT_CONFIG, PolicyConfig
from .core.control import ControlMap, ControlStopSign, ControlTrafficSignal, Cycle
from .core.manager import IntersectionManager
from .core.network import Intersection, Network, Turn
from .core.policy import IntersectionPolicy, ProtocolError, StopSign, TrafficSignal
from .core.types import CarID, IntersectionID, Tick, TurnID, TurnPriority, TurnType

__version__ = "0.1.0"


def make(
    scenario: str = "four-way-stop-v0",
    *,
    config: PolicyConfig | None = None,
    **scenario_kwargs,
) -> IntersectionManager:
    """Create an IntersectionManager for a registered scenario.

    Usage::

        import microsim
        manager = microsim.make("signalized-v0")
        manager.request_admission(microsim.CarID(0), microsim.TurnID(0), microsim.Tick(0))

    Parameters
    ----------
    scenario : str
        Registered scenario name.
    config : PolicyConfig, optional
        Defaults to ``PolicyConfig.from_env()``.
    **scenario_kwargs
        Extra kwargs passed to the scenario factory.
    """
    from .benchmarks.scenarios import get_scenario

    factory = get_scenario(scenario)
    net, control = factory(**scenario_kwargs)
    return IntersectionManager(net, control, config or PolicyConfig.from_env())
