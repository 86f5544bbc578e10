"""Tests for traffic-signal admission and the clearance boundary."""

import pytest

from microsim.config import PolicyConfig
from microsim.core.control import ControlMap, ControlTrafficSignal, Cycle
from microsim.core.network import Network
from microsim.core.policy import ProtocolError, TrafficSignal
from microsim.core.types import CarID, IntersectionID, Tick, TurnID

# 1 tick = 1 s, 5 m/s: a 20 m turn takes exactly 4 s to cross.
CONFIG = PolicyConfig(timestep_s=1.0, speed_limit_mps=5.0)
I0 = IntersectionID(0)


def _make_signal() -> tuple[Network, ControlMap]:
    """Turn 7 (20 m) is green for t in [0, 10) of a 20 s period.

    Turn 8 (19.99 m) shares the green; turn 0 owns the second cycle.
    """
    net = Network()
    net.add_intersection(I0)
    for i in range(7):
        net.add_turn(I0, (100.0 + i, 0.0), (100.0 + i, 5.0))
    t7 = net.add_turn(I0, (0.0, 0.0), (20.0, 0.0))
    t8 = net.add_turn(I0, (0.0, 10.0), (19.99, 10.0))
    assert t7.turn_id == 7 and t8.turn_id == 8

    control = ControlMap()
    control.add(ControlTrafficSignal(I0, [
        Cycle([TurnID(7), TurnID(8)], duration=10.0),
        Cycle([TurnID(0)], duration=10.0),
    ]))
    return net, control


def _ask(policy, net, control, car, turn, tick):
    return policy.request_admission(CarID(car), TurnID(turn), Tick(tick), net, control)


class TestClearance:
    """A car is admitted only if it clears before the cycle ends."""

    def test_admitted_at_cycle_start(self):
        """4 s crossing < 10 s remaining."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 0)
        assert policy.accepted == {CarID(1): TurnID(7)}

    def test_rejected_late_in_cycle(self):
        """At t=7 only 3 s remain, less than the 4 s crossing."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert not _ask(policy, net, control, 1, 7, 7)
        assert policy.accepted == {}

    def test_exact_boundary_rejected(self):
        """Crossing time equal to remaining time is not enough."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert not _ask(policy, net, control, 1, 7, 6)

    def test_marginally_shorter_admitted(self):
        """A 19.99 m turn (3.998 s) fits in the last 4 s."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 8, 6)

    def test_one_tick_earlier_admitted(self):
        """At t=5, 5 s remain for the 4 s crossing."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 5)

    def test_speed_limit_is_configurable(self):
        """Doubling the speed limit halves the crossing time."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, PolicyConfig(timestep_s=1.0, speed_limit_mps=10.0))
        assert _ask(policy, net, control, 1, 7, 7)


class TestCycles:
    """Only turns in the active cycle may go."""

    def test_red_turn_rejected_without_tracking(self):
        """A turn outside the active cycle is refused and nothing is recorded."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert not _ask(policy, net, control, 1, 0, 0)
        assert policy.accepted == {}
        assert policy.to_dict()["accepted"] == []

    def test_second_cycle_serves_its_turns(self):
        """At t=12 the second cycle is active."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 0, 12)
        assert not _ask(policy, net, control, 2, 7, 12)

    def test_schedule_repeats(self):
        """The plan wraps around every 20 s."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 20)
        assert not _ask(policy, net, control, 2, 7, 27)

    def test_sub_second_ticks(self):
        """Ticks are converted to seconds with the configured timestep."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, PolicyConfig(timestep_s=0.1, speed_limit_mps=5.0))
        assert _ask(policy, net, control, 1, 7, 55)       # 5.5 s, 4.5 s left
        assert not _ask(policy, net, control, 2, 7, 70)   # 7.0 s, 3.0 s left


class TestTurn7Scenario:
    """Turn 7, 20 m, 5 m/s, green for 10 s from t=0."""

    def test_scenario(self):
        """Admitted at t=0, a second car rejected at t=7."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 0)
        assert not _ask(policy, net, control, 2, 7, 7)


class TestSignalProtocol:
    """Idempotence and protocol violations."""

    def test_admission_is_idempotent(self):
        """An admitted car stays admitted, even after its cycle ends."""
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 0)
        for tick in range(1, 30):
            assert _ask(policy, net, control, 1, 7, tick)

    def test_enter_and_exit(self):
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert _ask(policy, net, control, 1, 7, 0)
        policy.on_enter(CarID(1))
        policy.on_exit(CarID(1))
        assert policy.accepted == {}

    def test_exit_without_admission_is_fatal(self):
        net, control = _make_signal()
        policy = TrafficSignal(I0, CONFIG)
        assert not _ask(policy, net, control, 1, 7, 9)
        with pytest.raises(ProtocolError):
            policy.on_exit(CarID(1))
        with pytest.raises(ProtocolError):
            policy.on_enter(CarID(1))

    def test_foreign_turn_is_fatal(self):
        """A turn of another intersection cannot be requested here."""
        net, control = _make_signal()
        net.add_intersection(IntersectionID(1))
        other = net.add_turn(IntersectionID(1), (0.0, 50.0), (10.0, 50.0))
        policy = TrafficSignal(I0, CONFIG)
        with pytest.raises(ProtocolError):
            _ask(policy, net, control, 1, other.turn_id, 0)


class TestDefaultTimestep:
    """The strict clearance boundary holds at 0.1 s ticks."""

    def _make(self):
        net = Network()
        net.add_intersection(I0)
        turn = net.add_turn(I0, (0.0, 0.0), (9.5, 0.0))    # 1.9 s at 5 m/s
        control = ControlMap()
        control.add(ControlTrafficSignal(I0, [Cycle([turn.turn_id], duration=10.0)]))
        return net, control, turn.turn_id

    def test_exact_boundary_rejected(self):
        """At tick 81 (8.1 s) exactly 1.9 s remain: not enough."""
        net, control, turn = self._make()
        policy = TrafficSignal(I0, PolicyConfig(timestep_s=0.1, speed_limit_mps=5.0))
        assert _ask(policy, net, control, 1, turn, 80)
        assert not _ask(policy, net, control, 2, turn, 81)

    def test_every_tick_of_the_cycle(self):
        """Admitted exactly on ticks 0..80 of each 100-tick cycle."""
        net, control, turn = self._make()
        policy = TrafficSignal(I0, PolicyConfig(timestep_s=0.1, speed_limit_mps=5.0))
        admitted = [
            tick for tick in range(300)
            if _ask(policy, net, control, tick, turn, tick)
        ]
        expected = [c * 100 + k for c in range(3) for k in range(81)]
        assert admitted == expected

    def test_remaining_time_is_exact(self):
        _, control, _ = self._make()
        signal = control.traffic_signals[I0]
        for tick in range(100):
            _, remaining = signal.current_cycle_and_remaining_time(tick * 0.1)
            assert remaining == (100 - tick) / 10
