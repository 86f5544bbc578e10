"""Network topology: Intersection, Turn, and Network.

The Network object holds the *static* map geometry the admission policies
consult: which turns exist at each intersection, how long they are, and
which pairs of turns cannot be driven at the same time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ..utils.geometry import as_point, euclid_dist, line_segments_intersect
from .types import IntersectionID, TurnID, TurnType


# ---------------------------------------------------------------------------
# Logical topology dataclasses
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Turn:
    """A movement through an intersection, from one lane end to another.

    The path is approximated by the straight segment ``src → dst``.
    """
    turn_id: TurnID
    intersection_id: IntersectionID
    src: np.ndarray          # (x, y) metres, where the incoming lane ends
    dst: np.ndarray          # (x, y) metres, where the outgoing lane starts
    turn_type: TurnType = TurnType.STRAIGHT

    def length(self) -> float:
        """Path length in metres."""
        return euclid_dist(self.src, self.dst)

    def conflicts_with(self, other: Turn) -> bool:
        """True if driving both turns at once is physically unsafe.

        Turns out of the same lane never conflict (their cars queue behind
        each other); turns into the same lane always do.
        """
        if np.array_equal(self.src, other.src):
            return False
        if np.array_equal(self.dst, other.dst):
            return True
        return line_segments_intersect((self.src, self.dst), (other.src, other.dst))

    def __repr__(self) -> str:
        return (
            f"Turn({self.turn_id}, {self.turn_type.name}, "
            f"intersection={self.intersection_id}, length={self.length():.1f}m)"
        )


@dataclass
class Intersection:
    """A shared resource that cars arbitrate for."""
    intersection_id: IntersectionID
    x: float = 0.0
    y: float = 0.0
    turns: list[TurnID] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

class Network:
    """Mutable map builder and turn lookup."""

    def __init__(self) -> None:
        self.intersections: dict[IntersectionID, Intersection] = {}
        self.turns: dict[TurnID, Turn] = {}
        self._next_turn_id = 0

    # -- builder helpers -----------------------------------------------------

    def add_intersection(
        self,
        intersection_id: IntersectionID,
        x: float = 0.0,
        y: float = 0.0,
    ) -> Intersection:
        """Add an intersection to the map."""
        inter = Intersection(intersection_id=intersection_id, x=x, y=y)
        self.intersections[intersection_id] = inter
        return inter

    def add_turn(
        self,
        intersection_id: IntersectionID,
        src: tuple[float, float],
        dst: tuple[float, float],
        turn_type: TurnType = TurnType.STRAIGHT,
    ) -> Turn:
        """Add a turn through an existing intersection."""
        if intersection_id not in self.intersections:
            raise KeyError(f"Unknown intersection: {intersection_id!r}")
        tid = TurnID(self._next_turn_id)
        self._next_turn_id += 1
        turn = Turn(
            turn_id=tid,
            intersection_id=intersection_id,
            src=as_point(src),
            dst=as_point(dst),
            turn_type=turn_type,
        )
        self.turns[tid] = turn
        self.intersections[intersection_id].turns.append(tid)
        return turn

    # -- queries -------------------------------------------------------------

    def get_turn(self, turn_id: TurnID) -> Turn:
        """Look up a turn by ID."""
        return self.turns[turn_id]

    def turns_at(self, intersection_id: IntersectionID) -> list[Turn]:
        """All turns through one intersection, in ID order."""
        return [self.turns[t] for t in self.intersections[intersection_id].turns]

    def conflicting_pairs(self, intersection_id: IntersectionID) -> list[tuple[TurnID, TurnID]]:
        """Every unordered pair of conflicting turns at an intersection."""
        turns = self.turns_at(intersection_id)
        pairs = []
        for i, t1 in enumerate(turns):
            for t2 in turns[i + 1:]:
                if t1.conflicts_with(t2):
                    pairs.append((t1.turn_id, t2.turn_id))
        return pairs

    def validate(self) -> list[str]:
        """Return a list of problems with the map (empty when valid)."""
        errors = []
        for iid, inter in self.intersections.items():
            if not inter.turns:
                errors.append(f"Intersection {iid} has no turns")
        for tid, turn in self.turns.items():
            if turn.intersection_id not in self.intersections:
                errors.append(
                    f"Turn {tid} references unknown intersection {turn.intersection_id}"
                )
            if turn.length() <= 0.0:
                errors.append(f"Turn {tid} has zero length")
        return errors
