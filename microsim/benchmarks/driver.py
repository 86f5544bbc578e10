"""ScriptedDriver: a minimal tick loop around an IntersectionManager.

Cars appear at scheduled ticks, ask for admission every tick until they get
it, enter immediately and leave once their crossing time has passed.  It
exercises the admission protocol for benchmarks and tests; there is no car
movement.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from ..core.manager import IntersectionManager
from ..core.network import Network
from ..core.types import CarID, IntersectionID, Tick, TurnID
from ..utils.validation import check_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Arrival:
    """A car reaching the stop line of ``turn`` at ``tick``."""
    car: CarID
    turn: TurnID
    tick: Tick


@dataclass
class DriverStats:
    """Counters collected while driving a scenario."""
    ticks: int = 0
    admitted: int = 0
    exited: int = 0
    wait_ticks: dict[CarID, int] = field(default_factory=dict)
    max_accepted: dict[IntersectionID, int] = field(default_factory=dict)
    violations: list[str] = field(default_factory=list)

    def summary(self, still_waiting: int = 0) -> dict[str, float]:
        """Return a dict of aggregate metrics.

        Keys: ``ticks``, ``admitted``, ``exited``, ``still_waiting``,
        ``avg_wait_ticks``, ``max_wait_ticks``, ``violations``.
        """
        waits = np.array(list(self.wait_ticks.values()), dtype=float)
        return {
            "ticks": self.ticks,
            "admitted": self.admitted,
            "exited": self.exited,
            "still_waiting": still_waiting,
            "avg_wait_ticks": float(waits.mean()) if len(waits) else 0.0,
            "max_wait_ticks": float(waits.max()) if len(waits) else 0.0,
            "violations": len(self.violations),
        }


class ScriptedDriver:
    """Feeds scheduled arrivals through the admission protocol.

    Usage::

        driver = ScriptedDriver(manager, arrivals)
        stats = driver.run(600)
    """

    def __init__(self, manager: IntersectionManager, arrivals: list[Arrival]) -> None:
        self.manager = manager
        self.tick = Tick(0)
        self.stats = DriverStats()
        self._pending = sorted(arrivals, key=lambda a: (a.tick, a.car))
        self.waiting: dict[CarID, tuple[TurnID, Tick]] = {}
        self.crossing: dict[CarID, tuple[TurnID, Tick]] = {}

    def crossing_ticks(self, turn: TurnID) -> int:
        """Ticks a car needs to drive ``turn`` at the speed limit."""
        config = self.manager.config
        seconds = self.manager.net.get_turn(turn).length() / config.speed_limit_mps
        return max(1, math.ceil(seconds / config.timestep_s))

    def step(self) -> dict[CarID, bool]:
        """Advance one tick.  Returns this tick's admission decisions."""
        tick = self.tick

        # 1. Cars that finished crossing leave
        done = sorted(c for c, (_, exit_tick) in self.crossing.items() if exit_tick <= tick)
        for car in done:
            turn, _ = self.crossing.pop(car)
            self.manager.on_exit(car, turn)
            self.stats.exited += 1

        # 2. New arrivals join the queue
        while self._pending and self._pending[0].tick <= tick:
            a = self._pending.pop(0)
            self.waiting[a.car] = (a.turn, tick)

        # 3. Everyone waiting asks
        requests = [(car, turn) for car, (turn, _) in self.waiting.items()]
        decisions = self.manager.step(tick, requests)

        # 4. Admitted cars enter
        for car, admitted in decisions.items():
            if not admitted:
                continue
            turn, arrived = self.waiting.pop(car)
            self.manager.on_enter(car, turn)
            self.crossing[car] = (turn, Tick(tick + self.crossing_ticks(turn)))
            self.stats.admitted += 1
            self.stats.wait_ticks[car] = tick - arrived

        for iid, policy in self.manager.policies.items():
            n = len(policy.accepted)
            if n > self.stats.max_accepted.get(iid, 0):
                self.stats.max_accepted[iid] = n
            errors = check_policy(policy, self.manager.net)
            if errors:
                logger.warning("Tick %s, intersection %s: %s", tick, iid, errors)
                self.stats.violations.extend(errors)

        self.tick = Tick(tick + 1)
        self.stats.ticks += 1
        return decisions

    def run(self, n_ticks: int) -> DriverStats:
        for _ in range(n_ticks):
            self.step()
        return self.stats


def random_arrivals(
    net: Network,
    n_cars: int,
    horizon_ticks: int,
    seed: int | None = None,
) -> list[Arrival]:
    """Uniformly random arrivals over every turn of the map."""
    rng = np.random.default_rng(seed)
    turn_ids = sorted(net.turns)
    turns = rng.choice(turn_ids, size=n_cars)
    ticks = np.sort(rng.integers(0, max(1, horizon_ticks), size=n_cars))
    return [
        Arrival(CarID(i), TurnID(int(t)), Tick(int(k)))
        for i, (t, k) in enumerate(zip(turns, ticks))
    ]
