"""Four-leg intersection benchmark scenarios."""

from __future__ import annotations

from ..core.control import ControlMap, ControlStopSign, ControlTrafficSignal
from ..core.network import Network
from ..core.types import IntersectionID, TurnID, TurnPriority, TurnType

# Approach name -> (unit vector pointing from the centre out along the leg)
_LEGS = {
    "N": (0.0, 1.0),
    "E": (1.0, 0.0),
    "S": (0.0, -1.0),
    "W": (-1.0, 0.0),
}
# Leg reached by each turn type, walking clockwise N -> E -> S -> W
_TARGET = {
    TurnType.RIGHT: 3,
    TurnType.STRAIGHT: 2,
    TurnType.LEFT: 1,
}


def add_four_way(
    net: Network,
    intersection_id: IntersectionID,
    x: float = 0.0,
    y: float = 0.0,
    half_width: float = 7.0,
    lane_offset: float = 3.5,
) -> dict[tuple[str, TurnType], TurnID]:
    """Add a four-leg intersection with a left, straight and right turn per leg.

    Traffic drives on the right.  Returns the turn IDs keyed by
    ``(approach, turn_type)``, e.g. ``("N", TurnType.LEFT)`` is the left turn
    of cars arriving from the north.

    Layout::

                 N
                 |
            W ---+--- E
                 |
                 S
    """
    net.add_intersection(intersection_id, x=x, y=y)

    def lane_end(leg: str, incoming: bool) -> tuple[float, float]:
        ux, uy = _LEGS[leg]
        # Right-hand traffic: incoming lanes sit counter-clockwise of the leg axis.
        side = 1.0 if incoming else -1.0
        px, py = -uy * side, ux * side
        return (
            x + ux * half_width + px * lane_offset,
            y + uy * half_width + py * lane_offset,
        )

    legs = list(_LEGS)
    turns: dict[tuple[str, TurnType], TurnID] = {}
    for i, leg in enumerate(legs):
        for turn_type, step in _TARGET.items():
            out_leg = legs[(i + step) % 4]
            turn = net.add_turn(
                intersection_id,
                lane_end(leg, incoming=True),
                lane_end(out_leg, incoming=False),
                turn_type,
            )
            turns[(leg, turn_type)] = turn.turn_id
    return turns


def create_four_way_stop(
    priority_axis: str | None = "EW",
    half_width: float = 7.0,
    lane_offset: float = 3.5,
) -> tuple[Network, ControlMap]:
    """Single four-leg intersection controlled by stop signs.

    With ``priority_axis=None`` it is an all-way stop.  Otherwise the
    straight and right turns of the two legs on that axis (``"EW"`` or
    ``"NS"``) have ``PRIORITY``, their left turns ``YIELD``, and the cross
    street keeps ``STOP``.

    Returns (network, control).
    """
    net = Network()
    iid = IntersectionID(0)
    turns = add_four_way(net, iid, half_width=half_width, lane_offset=lane_offset)

    ss = ControlStopSign.all_way_stop(net, iid)
    if priority_axis is not None:
        if priority_axis not in ("EW", "NS"):
            raise ValueError(f"priority_axis must be 'EW', 'NS' or None, got {priority_axis!r}")
        major = [turns[(leg, tt)] for leg in priority_axis
                 for tt in (TurnType.STRAIGHT, TurnType.RIGHT)]
        yielding = [turns[(leg, TurnType.LEFT)] for leg in priority_axis]
        ss = ss.with_priority_turns(major).with_priority_turns(
            yielding, TurnPriority.YIELD
        )

    control = ControlMap()
    control.add(ss)
    return net, control


def create_all_way_stop(
    half_width: float = 7.0,
    lane_offset: float = 3.5,
) -> tuple[Network, ControlMap]:
    """Single four-leg intersection where every turn must stop."""
    return create_four_way_stop(None, half_width=half_width, lane_offset=lane_offset)


def create_signalized_intersection(
    cycle_duration: float = 30.0,
    half_width: float = 7.0,
    lane_offset: float = 3.5,
) -> tuple[Network, ControlMap]:
    """Single four-leg intersection with a greedily assigned signal plan.

    Returns (network, control).
    """
    net = Network()
    iid = IntersectionID(0)
    add_four_way(net, iid, half_width=half_width, lane_offset=lane_offset)

    control = ControlMap()
    control.add(ControlTrafficSignal.greedy_assignment(net, iid, cycle_duration))
    return net, control
