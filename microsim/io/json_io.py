"""JSON export/import for maps, traffic control and policy checkpoints.

Enables reproducible scenario sharing and mid-run checkpoints without code
dependencies.
"""

from __future__ import annotations

import json
from pathlib import Path

from ..core.control import ControlMap, ControlStopSign, ControlTrafficSignal, Cycle
from ..core.manager import IntersectionManager
from ..core.network import Network
from ..core.types import IntersectionID, TurnID, TurnPriority, TurnType

CHECKPOINT_VERSION = 1


def network_to_dict(network: Network) -> dict:
    """Serialize a Network to a plain dict."""
    intersections = []
    for iid, inter in network.intersections.items():
        intersections.append({
            "id": int(iid),
            "x": inter.x,
            "y": inter.y,
        })

    turns = []
    for tid, turn in network.turns.items():
        turns.append({
            "id": int(tid),
            "intersection_id": int(turn.intersection_id),
            "src": [float(v) for v in turn.src],
            "dst": [float(v) for v in turn.dst],
            "turn_type": turn.turn_type.name,
        })

    return {
        "version": 1,
        "intersections": intersections,
        "turns": turns,
    }


def dict_to_network(data: dict) -> Network:
    """Deserialize a Network from a dict."""
    net = Network()

    for nd in data["intersections"]:
        net.add_intersection(
            IntersectionID(nd["id"]),
            x=nd.get("x", 0.0),
            y=nd.get("y", 0.0),
        )

    # Turns need to be added in order to match IDs
    turn_data = sorted(data.get("turns", []), key=lambda t: t["id"])
    for td in turn_data:
        turn = net.add_turn(
            IntersectionID(td["intersection_id"]),
            td["src"],
            td["dst"],
            turn_type=TurnType[td.get("turn_type", "STRAIGHT")],
        )
        if turn.turn_id != td["id"]:
            raise ValueError(f"Turn IDs must be contiguous from 0, got {td['id']}")

    return net


def control_to_dict(control: ControlMap) -> dict:
    """Serialize a ControlMap to a plain dict."""
    stop_signs = []
    for iid, ss in sorted(control.stop_signs.items()):
        stop_signs.append({
            "intersection_id": int(iid),
            "priorities": [
                [int(t), p.name] for t, p in sorted(ss.priorities.items())
            ],
        })

    traffic_signals = []
    for iid, signal in sorted(control.traffic_signals.items()):
        traffic_signals.append({
            "intersection_id": int(iid),
            "cycles": [
                {"turns": [int(t) for t in c.turns], "duration": c.duration}
                for c in signal.cycles
            ],
        })

    return {
        "stop_signs": stop_signs,
        "traffic_signals": traffic_signals,
    }


def dict_to_control(data: dict) -> ControlMap:
    """Deserialize a ControlMap from a dict."""
    control = ControlMap()
    for sd in data.get("stop_signs", []):
        control.add(ControlStopSign(
            IntersectionID(sd["intersection_id"]),
            {TurnID(t): TurnPriority[p] for t, p in sd["priorities"]},
        ))
    for td in data.get("traffic_signals", []):
        control.add(ControlTrafficSignal(
            IntersectionID(td["intersection_id"]),
            [
                Cycle([TurnID(t) for t in cd["turns"]], cd.get("duration", 30.0))
                for cd in td["cycles"]
            ],
        ))
    return control


def save_scenario(path: str | Path, network: Network, control: ControlMap) -> None:
    """Save a map and its traffic control to a JSON file."""
    data = {
        "network": network_to_dict(network),
        "control": control_to_dict(control),
    }
    Path(path).write_text(json.dumps(data, indent=2))


def load_scenario(path: str | Path) -> tuple[Network, ControlMap]:
    """Load a scenario from a JSON file."""
    data = json.loads(Path(path).read_text())
    return dict_to_network(data["network"]), dict_to_control(data["control"])


def save_checkpoint(path: str | Path, manager: IntersectionManager, tick: int) -> None:
    """Write every intersection's admission state to a JSON file."""
    data = {"version": CHECKPOINT_VERSION, "tick": int(tick)}
    data.update(manager.to_dict())
    Path(path).write_text(json.dumps(data, indent=2, sort_keys=True))


def load_checkpoint(path: str | Path, manager: IntersectionManager) -> int:
    """Restore admission state into ``manager``; returns the saved tick."""
    data = json.loads(Path(path).read_text())
    if data.get("version") != CHECKPOINT_VERSION:
        raise ValueError(f"Unsupported checkpoint version: {data.get('version')!r}")
    manager.load_state(data)
    return int(data["tick"])
