"""IntersectionManager: one admission policy per intersection.

Builds the policies at map-load time from the ControlMap, routes driver
calls to the right intersection by turn, and orders the requests of a tick
deterministically.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..config import DEFAULT_CONFIG, PolicyConfig
from ..utils.validation import check_policy
from .control import ControlMap
from .network import Network
from .policy import IntersectionPolicy
from .types import CarID, IntersectionID, Tick, TurnID

logger = logging.getLogger(__name__)


class IntersectionManager:
    """Manages admission state for every intersection on the map.

    Parameters
    ----------
    net : Network
        Map geometry; answers turn lookups and conflicts.
    control : ControlMap
        Stop signs and traffic signals.  An intersection with a traffic
        signal gets a ``TrafficSignal`` policy, otherwise a ``StopSign``.
    config : PolicyConfig, optional
        Timestep, speed limit and stop-sign dwell.

    Not thread-safe: a concurrent driver must serialize calls per
    intersection.
    """

    def __init__(
        self,
        net: Network,
        control: ControlMap,
        config: PolicyConfig = DEFAULT_CONFIG,
    ) -> None:
        self.net = net
        self.control = control
        self.config = config
        self.policies: dict[IntersectionID, IntersectionPolicy] = {}
        for iid in sorted(net.intersections):
            if iid in control.traffic_signals:
                self.policies[iid] = IntersectionPolicy.traffic_signal(iid, config)
            elif iid in control.stop_signs:
                self.policies[iid] = IntersectionPolicy.stop_sign(iid, config)
            else:
                raise KeyError(f"No traffic control for intersection {iid!r}")
        logger.info(
            "Built %d intersection policies (%d signals, %d stop signs)",
            len(self.policies),
            sum(p.kind == "TrafficSignal" for p in self.policies.values()),
            sum(p.kind == "StopSign" for p in self.policies.values()),
        )

    def policy_for_turn(self, turn: TurnID) -> IntersectionPolicy:
        """The policy of the intersection ``turn`` passes through."""
        return self.policies[self.net.get_turn(turn).intersection_id]

    # -- driver protocol -----------------------------------------------------

    def request_admission(self, car: CarID, turn: TurnID, tick: Tick) -> bool:
        return self.policy_for_turn(turn).request_admission(
            car, turn, tick, self.net, self.control
        )

    def on_enter(self, car: CarID, turn: TurnID) -> None:
        self.policy_for_turn(turn).on_enter(car)

    def on_exit(self, car: CarID, turn: TurnID) -> None:
        self.policy_for_turn(turn).on_exit(car)

    def request_order(
        self, tick: Tick, requests: Iterable[tuple[CarID, TurnID]],
    ) -> list[tuple[CarID, TurnID]]:
        """Sort one tick's requests into the order they are decided in.

        Cars that have waited longest go first (a car asking for the first
        time counts as waiting since ``tick``); ties go to the lower CarID.
        """
        def key(req: tuple[CarID, TurnID]) -> tuple[int, int]:
            car, turn = req
            started = self.policy_for_turn(turn).started_waiting(car)
            return (tick if started is None else started, car)

        return sorted(requests, key=key)

    def step(
        self, tick: Tick, requests: Iterable[tuple[CarID, TurnID]],
    ) -> dict[CarID, bool]:
        """Decide every admission request of one tick.

        Returns a mapping from car to decision.
        """
        decisions: dict[CarID, bool] = {}
        for car, turn in self.request_order(tick, requests):
            decisions[car] = self.request_admission(car, turn, tick)
        return decisions

    # -- checkpointing -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "policies": [self.policies[iid].to_dict() for iid in sorted(self.policies)],
        }

    def load_state(self, data: dict) -> None:
        """Replace every policy's state from a ``to_dict()`` snapshot.

        The snapshot is checked in full before anything is replaced: every
        intersection exactly once, matching variants, consistent state.
        """
        restored = {}
        for pd in data["policies"]:
            policy = IntersectionPolicy.from_dict(pd, self.config)
            if policy.id not in self.policies:
                raise KeyError(f"Checkpoint has unknown intersection {policy.id!r}")
            if policy.kind != self.policies[policy.id].kind:
                raise ValueError(
                    f"Checkpoint has a {policy.kind} at intersection {policy.id}, "
                    f"map has a {self.policies[policy.id].kind}"
                )
            if policy.id in restored:
                raise ValueError(f"Checkpoint lists intersection {policy.id} twice")
            errors = check_policy(policy, self.net)
            if errors:
                raise ValueError(
                    f"Checkpoint state for intersection {policy.id} is inconsistent: "
                    f"{errors}"
                )
            restored[policy.id] = policy
        missing = set(self.policies) - set(restored)
        if missing:
            raise ValueError(f"Checkpoint is missing intersections {sorted(missing)}")
        self.policies = {iid: restored[iid] for iid in sorted(restored)}
