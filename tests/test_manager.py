"""Tests for IntersectionManager routing, request ordering and state restore."""

import pytest

from microsim.benchmarks.four_way import add_four_way
from microsim.config import PolicyConfig
from microsim.core.control import ControlMap, ControlStopSign, ControlTrafficSignal
from microsim.core.manager import IntersectionManager
from microsim.core.network import Network
from microsim.core.policy import ProtocolError
from microsim.core.types import CarID, IntersectionID, Tick, TurnID, TurnPriority

I0, I1 = IntersectionID(0), IntersectionID(1)


def _make_mixed() -> tuple[Network, ControlMap]:
    """Intersection 0 is an all-way stop (turns 0-11), 1 is signalised (12-23)."""
    net = Network()
    add_four_way(net, I0)
    add_four_way(net, I1, x=200.0)
    control = ControlMap()
    control.add(ControlStopSign.all_way_stop(net, I0))
    control.add(ControlTrafficSignal.greedy_assignment(net, I1))
    return net, control


def _make_yield_crossing() -> tuple[Network, ControlMap]:
    """Two crossing YIELD turns, 0 northbound and 1 eastbound."""
    net = Network()
    net.add_intersection(I0)
    net.add_turn(I0, (0.0, -10.0), (0.0, 10.0))
    net.add_turn(I0, (-10.0, 0.0), (10.0, 0.0))
    control = ControlMap()
    control.add(ControlStopSign(I0, {
        TurnID(0): TurnPriority.YIELD,
        TurnID(1): TurnPriority.YIELD,
    }))
    return net, control


class TestRouting:
    """One policy per intersection, chosen by its control."""

    def test_policy_kinds(self):
        net, control = _make_mixed()
        manager = IntersectionManager(net, control)
        assert list(manager.policies) == [I0, I1]
        assert manager.policies[I0].kind == "StopSign"
        assert manager.policies[I1].kind == "TrafficSignal"

    def test_policy_for_turn(self):
        net, control = _make_mixed()
        manager = IntersectionManager(net, control)
        assert manager.policy_for_turn(TurnID(3)).id == I0
        assert manager.policy_for_turn(TurnID(15)).id == I1

    def test_signal_wins_over_stop_sign(self):
        """An intersection listed under both controls is signalised."""
        net, control = _make_mixed()
        control.add(ControlTrafficSignal.greedy_assignment(net, I0))
        manager = IntersectionManager(net, control)
        assert manager.policies[I0].kind == "TrafficSignal"

    def test_uncontrolled_intersection(self):
        net, control = _make_mixed()
        del control.traffic_signals[I1]
        with pytest.raises(KeyError):
            IntersectionManager(net, control)

    def test_intersections_are_independent(self):
        """State at one intersection does not leak into the other."""
        net, control = _make_mixed()
        manager = IntersectionManager(net, control)
        assert not manager.request_admission(CarID(1), TurnID(0), Tick(0))
        assert manager.request_admission(CarID(2), TurnID(12), Tick(0))
        assert manager.policies[I0].accepted == {}
        assert manager.policies[I1].accepted == {CarID(2): TurnID(12)}

    def test_enter_and_exit(self):
        net, control = _make_mixed()
        manager = IntersectionManager(net, control)
        assert manager.request_admission(CarID(2), TurnID(12), Tick(0))
        manager.on_enter(CarID(2), TurnID(12))
        manager.on_exit(CarID(2), TurnID(12))
        assert manager.policies[I1].accepted == {}
        with pytest.raises(ProtocolError):
            manager.on_exit(CarID(2), TurnID(12))

    def test_config_reaches_policies(self):
        net, control = _make_mixed()
        config = PolicyConfig(stop_sign_wait_s=0.0)
        manager = IntersectionManager(net, control, config)
        assert manager.request_admission(CarID(1), TurnID(0), Tick(0))


class TestRequestOrder:
    """Deterministic order of one tick's requests."""

    def test_tie_goes_to_lower_car_id(self):
        """Two new cars on conflicting turns: the lower ID is decided first."""
        net, control = _make_yield_crossing()
        manager = IntersectionManager(net, control)
        decisions = manager.step(Tick(0), [(CarID(5), TurnID(0)), (CarID(3), TurnID(1))])
        assert decisions == {CarID(3): True, CarID(5): False}

    def test_longest_waiting_first(self):
        """A car waiting since tick 0 beats a newcomer with a lower ID."""
        net, control = _make_yield_crossing()
        manager = IntersectionManager(net, control)
        assert manager.step(Tick(0), [(CarID(7), TurnID(1)), (CarID(9), TurnID(0))]) == {
            CarID(7): True, CarID(9): False,
        }
        manager.on_exit(CarID(7), TurnID(1))

        requests = [(CarID(1), TurnID(1)), (CarID(9), TurnID(0))]
        assert manager.request_order(Tick(5), requests) == [
            (CarID(9), TurnID(0)), (CarID(1), TurnID(1)),
        ]
        assert manager.step(Tick(5), requests) == {CarID(9): True, CarID(1): False}

    def test_order_ignores_input_order(self):
        net, control = _make_yield_crossing()
        manager = IntersectionManager(net, control)
        requests = [(CarID(4), TurnID(0)), (CarID(2), TurnID(1)), (CarID(8), TurnID(0))]
        assert manager.request_order(Tick(0), requests) == \
            manager.request_order(Tick(0), list(reversed(requests)))


class TestLoadState:
    """Restoring a manager from a snapshot."""

    def _busy(self):
        net, control = _make_mixed()
        manager = IntersectionManager(net, control)
        manager.step(Tick(0), [(CarID(1), TurnID(1)), (CarID(2), TurnID(12))])
        return net, control, manager

    def test_round_trip(self):
        net, control, manager = self._busy()
        fresh = IntersectionManager(net, control)
        fresh.load_state(manager.to_dict())
        assert fresh.to_dict() == manager.to_dict()
        assert fresh.policies[I0] == manager.policies[I0]

    def test_policies_sorted_by_intersection(self):
        _, _, manager = self._busy()
        assert [p["id"] for p in manager.to_dict()["policies"]] == [0, 1]

    def test_unknown_intersection(self):
        net, control, manager = self._busy()
        data = manager.to_dict()
        data["policies"].append({
            "type": "StopSign", "id": 7,
            "started_waiting_at": [], "accepted": [], "waiting": [],
        })
        with pytest.raises(KeyError):
            IntersectionManager(net, control).load_state(data)

    def test_kind_mismatch(self):
        net, control, manager = self._busy()
        data = manager.to_dict()
        data["policies"][0] = {"type": "TrafficSignal", "id": 0, "accepted": []}
        with pytest.raises(ValueError, match="map has a StopSign"):
            IntersectionManager(net, control).load_state(data)

    def test_missing_intersection(self):
        net, control, manager = self._busy()
        data = manager.to_dict()
        del data["policies"][1]
        fresh = IntersectionManager(net, control)
        with pytest.raises(ValueError, match="missing"):
            fresh.load_state(data)
        assert fresh.policies[I0].to_dict()["waiting"] == []

    def test_duplicate_intersection(self):
        """An intersection listed twice is rejected, not overwritten."""
        net, control, manager = self._busy()
        data = manager.to_dict()
        data["policies"].append(dict(data["policies"][0]))
        fresh = IntersectionManager(net, control)
        with pytest.raises(ValueError, match="twice"):
            fresh.load_state(data)
        assert fresh.policies[I0].to_dict()["waiting"] == []

    def test_inconsistent_state(self):
        """A car both waiting and accepted makes the snapshot unusable."""
        net, control, manager = self._busy()
        data = manager.to_dict()
        data["policies"][0] = {
            "type": "StopSign", "id": 0,
            "started_waiting_at": [[1, 0]],
            "accepted": [[1, 1]],
            "waiting": [[1, 1]],
        }
        with pytest.raises(ValueError, match="inconsistent"):
            IntersectionManager(net, control).load_state(data)

    def test_conflicting_accepted_state(self):
        """Two accepted cars on crossing turns are rejected on restore."""
        net, control, manager = self._busy()
        data = manager.to_dict()
        data["policies"][0] = {
            "type": "StopSign", "id": 0,
            "started_waiting_at": [],
            "accepted": [[1, 1], [2, 4]],    # straight from N and from E
            "waiting": [],
        }
        with pytest.raises(ValueError, match="conflicting"):
            IntersectionManager(net, control).load_state(data)
