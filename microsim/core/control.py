"""Static traffic-control configuration for microsim.

ControlStopSign assigns a priority class to every turn at an unsignalised
intersection.  ControlTrafficSignal cycles through a fixed schedule of
Cycles, each serving a set of compatible turns for a fixed duration.
ControlMap holds one of the two per intersection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from .network import Network
from .types import (
    FLOAT,
    SECONDS_DIGITS,
    IntersectionID,
    TurnID,
    TurnPriority,
    round_seconds,
)


# ---------------------------------------------------------------------------
# Stop signs
# ---------------------------------------------------------------------------

@dataclass
class ControlStopSign:
    """Per-turn priority classes at one stop-sign intersection."""
    intersection_id: IntersectionID
    priorities: dict[TurnID, TurnPriority] = field(default_factory=dict)

    def get_priority(self, turn: TurnID) -> TurnPriority:
        if turn not in self.priorities:
            raise KeyError(
                f"Turn {turn} has no priority at stop sign {self.intersection_id}"
            )
        return self.priorities[turn]

    def with_priority_turns(
        self,
        turns: Iterable[TurnID],
        priority: TurnPriority = TurnPriority.PRIORITY,
    ) -> ControlStopSign:
        """Return a copy with ``turns`` promoted to ``priority``."""
        priorities = dict(self.priorities)
        for t in turns:
            if t not in priorities:
                raise KeyError(
                    f"Turn {t} is not part of stop sign {self.intersection_id}"
                )
            priorities[t] = priority
        return ControlStopSign(self.intersection_id, priorities)

    @classmethod
    def all_way_stop(cls, net: Network, intersection_id: IntersectionID) -> ControlStopSign:
        """Every turn at the intersection must come to a full stop."""
        return cls(
            intersection_id,
            {t.turn_id: TurnPriority.STOP for t in net.turns_at(intersection_id)},
        )


# ---------------------------------------------------------------------------
# Traffic signals
# ---------------------------------------------------------------------------

@dataclass
class Cycle:
    """One signal phase: which turns may go, and for how long."""
    turns: list[TurnID]
    duration: float = 30.0    # seconds

    def contains(self, turn: TurnID) -> bool:
        return turn in self.turns


@dataclass
class ControlTrafficSignal:
    """A repeating schedule of cycles at one signalised intersection."""
    intersection_id: IntersectionID
    cycles: list[Cycle]

    def __post_init__(self) -> None:
        self._cycle_ends()

    def _cycle_ends(self) -> np.ndarray:
        """Offset (s) into the period where each cycle ends.

        Recomputed and re-validated from ``cycles`` on every call.
        """
        if not self.cycles:
            raise ValueError(
                f"Traffic signal {self.intersection_id} needs at least one cycle"
            )
        durations = np.array([c.duration for c in self.cycles], dtype=FLOAT)
        if (durations <= 0.0).any():
            bad = np.where(durations <= 0.0)[0]
            raise ValueError(
                f"Traffic signal {self.intersection_id}: cycles {bad.tolist()} "
                f"have non-positive duration"
            )
        return np.round(np.cumsum(durations), SECONDS_DIGITS)

    @property
    def period(self) -> float:
        """Total length of one pass through every cycle (s)."""
        return float(self._cycle_ends()[-1])

    def current_cycle_and_remaining_time(self, time: float) -> tuple[Cycle, float]:
        """Return the active cycle at ``time`` seconds and the time left in it."""
        ends = self._cycle_ends()
        offset = round_seconds(time % float(ends[-1]))
        if offset >= ends[-1]:
            offset = 0.0
        idx = int(np.searchsorted(ends, offset, side="right"))
        idx = min(idx, len(self.cycles) - 1)
        return self.cycles[idx], round_seconds(float(ends[idx]) - offset)

    @classmethod
    def greedy_assignment(
        cls,
        net: Network,
        intersection_id: IntersectionID,
        cycle_duration: float = 30.0,
    ) -> ControlTrafficSignal:
        """Pack the intersection's turns into mutually compatible cycles.

        Each turn joins the first cycle whose turns it does not conflict
        with, opening a new cycle when none fits.
        """
        cycles: list[Cycle] = []
        for turn in net.turns_at(intersection_id):
            for cycle in cycles:
                if not any(turn.conflicts_with(net.get_turn(t)) for t in cycle.turns):
                    cycle.turns.append(turn.turn_id)
                    break
            else:
                cycles.append(Cycle([turn.turn_id], cycle_duration))
        return cls(intersection_id, cycles)


# ---------------------------------------------------------------------------
# ControlMap
# ---------------------------------------------------------------------------

@dataclass
class ControlMap:
    """Traffic control for every intersection on the map."""
    stop_signs: dict[IntersectionID, ControlStopSign] = field(default_factory=dict)
    traffic_signals: dict[IntersectionID, ControlTrafficSignal] = field(default_factory=dict)

    def add(self, control: ControlStopSign | ControlTrafficSignal) -> None:
        if isinstance(control, ControlTrafficSignal):
            self.traffic_signals[control.intersection_id] = control
        else:
            self.stop_signs[control.intersection_id] = control

    def control_for(
        self, intersection_id: IntersectionID,
    ) -> ControlStopSign | ControlTrafficSignal:
        if intersection_id in self.traffic_signals:
            return self.traffic_signals[intersection_id]
        if intersection_id in self.stop_signs:
            return self.stop_signs[intersection_id]
        raise KeyError(f"No traffic control for intersection {intersection_id!r}")

    def validate(self, net: Network) -> list[str]:
        """Return a list of problems against ``net`` (empty when valid)."""
        errors = []
        for iid in net.intersections:
            controls = (iid in self.stop_signs) + (iid in self.traffic_signals)
            if controls == 0:
                errors.append(f"Intersection {iid} has no traffic control")
            elif controls > 1:
                errors.append(
                    f"Intersection {iid} has both a stop sign and a traffic signal"
                )

        for iid, ss in self.stop_signs.items():
            if iid not in net.intersections:
                errors.append(f"Stop sign for unknown intersection {iid}")
                continue
            for turn in net.turns_at(iid):
                if turn.turn_id not in ss.priorities:
                    errors.append(f"Stop sign {iid}: turn {turn.turn_id} has no priority")

        for iid, signal in self.traffic_signals.items():
            if iid not in net.intersections:
                errors.append(f"Traffic signal for unknown intersection {iid}")
                continue
            own = set(net.intersections[iid].turns)
            for idx, cycle in enumerate(signal.cycles):
                for t in cycle.turns:
                    if t not in own:
                        errors.append(
                            f"Traffic signal {iid}: cycle {idx} serves foreign turn {t}"
                        )
        return errors
