"""Intersection admission policies.

Each intersection owns one IntersectionPolicy, a closed tagged union over
two variants:

* :class:`StopSign` admits turns in priority order, making ``STOP`` turns
  dwell before entering.
* :class:`TrafficSignal` admits turns served by the active cycle, as long as
  the car can clear the intersection before the cycle ends.

The driver calls ``request_admission`` every tick for every car waiting at
the intersection, then ``on_enter`` and ``on_exit`` as an admitted car
crosses.  A rejected request is ordinary; the driver simply asks again on a
later tick.  Calling ``on_enter``/``on_exit`` for a car that was never
admitted is a protocol violation and raises :class:`ProtocolError`.

The variant set is closed so that policy state serializes structurally:
``to_dict()`` produces plain lists of ``[car, value]`` pairs sorted by car,
tagged by variant name.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import DEFAULT_CONFIG, PolicyConfig
from .control import ControlMap
from .network import Network
from .types import (
    CarID,
    IntersectionID,
    Tick,
    TurnID,
    TurnPriority,
    round_seconds,
    ticks_to_seconds,
)

logger = logging.getLogger(__name__)


class ProtocolError(RuntimeError):
    """The driver broke the request / enter / exit protocol."""


def _pairs(mapping: dict[CarID, int]) -> list[list[int]]:
    return [[int(car), int(value)] for car, value in sorted(mapping.items())]


def _unpairs(pairs: list[list[int]], value_type) -> dict:
    return {CarID(car): value_type(value) for car, value in pairs}


class _Policy:
    """State and protocol checks shared by both variants."""

    kind = ""

    def __init__(
        self,
        intersection_id: IntersectionID,
        config: PolicyConfig = DEFAULT_CONFIG,
    ) -> None:
        self.id = intersection_id
        self.config = config
        self.accepted: dict[CarID, TurnID] = {}

    def _check_turn(self, car: CarID, turn: TurnID, net: Network) -> None:
        owner = net.get_turn(turn).intersection_id
        if owner != self.id:
            logger.error(
                "Car %s requested turn %s of intersection %s at intersection %s",
                car, turn, owner, self.id,
            )
            raise ProtocolError(
                f"Turn {turn} belongs to intersection {owner}, not {self.id}"
            )

    def _check_accepted(self, car: CarID, action: str) -> None:
        if car not in self.accepted:
            logger.error("%s for car %s at %s %s, which never got admitted",
                         action, car, self.kind, self.id)
            raise ProtocolError(
                f"{action}: car {car} was not admitted at intersection {self.id}"
            )

    def on_enter(self, car: CarID) -> None:
        self._check_accepted(car, "on_enter")

    def on_exit(self, car: CarID) -> None:
        self._check_accepted(car, "on_exit")
        del self.accepted[car]
        logger.debug("Car %s left %s %s", car, self.kind, self.id)


# ---------------------------------------------------------------------------
# Stop sign
# ---------------------------------------------------------------------------

class StopSign(_Policy):
    """Priority-ordered admission with a mandatory dwell for ``STOP`` turns.

    State:

    * ``started_waiting_at``: first tick each not-yet-admitted car asked.
    * ``accepted``: cars currently allowed in the intersection.
    * ``waiting``: cars whose last request was rejected, with their turn.
    """

    kind = "StopSign"

    def __init__(
        self,
        intersection_id: IntersectionID,
        config: PolicyConfig = DEFAULT_CONFIG,
    ) -> None:
        super().__init__(intersection_id, config)
        self.started_waiting_at: dict[CarID, Tick] = {}
        self.waiting: dict[CarID, TurnID] = {}

    def _conflicts_with_accepted(self, turn: TurnID, net: Network) -> bool:
        base = net.get_turn(turn)
        return any(base.conflicts_with(net.get_turn(t)) for t in self.accepted.values())

    def _conflicts_with_waiting_with_higher_priority(
        self,
        car: CarID,
        turn: TurnID,
        net: Network,
        control: ControlMap,
    ) -> bool:
        ss = control.stop_signs[self.id]
        base = net.get_turn(turn)
        base_priority = ss.get_priority(turn)
        return any(
            ss.get_priority(t) > base_priority and base.conflicts_with(net.get_turn(t))
            for other, t in self.waiting.items()
            if other != car
        )

    def _reject(self, car: CarID, turn: TurnID, reason: str) -> bool:
        self.waiting[car] = turn
        logger.debug("Stop sign %s: car %s waits for turn %s (%s)",
                     self.id, car, turn, reason)
        return False

    def request_admission(
        self,
        car: CarID,
        turn: TurnID,
        time: Tick,
        net: Network,
        control: ControlMap,
    ) -> bool:
        """Decide whether ``car`` may start ``turn`` at tick ``time``."""
        self._check_turn(car, turn, net)

        if car in self.accepted:
            return True

        # Look up everything that can fail before touching any state.
        priority = control.stop_signs[self.id].get_priority(turn)

        if car not in self.started_waiting_at:
            self.started_waiting_at[car] = time

        if self._conflicts_with_accepted(turn, net):
            return self._reject(car, turn, "conflicts with an accepted turn")

        if self._conflicts_with_waiting_with_higher_priority(car, turn, net, control):
            return self._reject(car, turn, "yields to a higher-priority waiter")

        if priority is TurnPriority.STOP:
            waited = ticks_to_seconds(
                time - self.started_waiting_at[car], self.config.timestep_s
            )
            if waited < self.config.stop_sign_wait_s:
                return self._reject(car, turn, f"stopped for {waited:.2f}s")

        self.accepted[car] = turn
        self.waiting.pop(car, None)
        del self.started_waiting_at[car]
        logger.debug("Stop sign %s: admitted car %s for turn %s at tick %s",
                     self.id, car, turn, time)
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "id": int(self.id),
            "started_waiting_at": _pairs(self.started_waiting_at),
            "accepted": _pairs(self.accepted),
            "waiting": _pairs(self.waiting),
        }

    @classmethod
    def from_dict(cls, data: dict, config: PolicyConfig = DEFAULT_CONFIG) -> StopSign:
        policy = cls(IntersectionID(data["id"]), config)
        policy.started_waiting_at = _unpairs(data["started_waiting_at"], Tick)
        policy.accepted = _unpairs(data["accepted"], TurnID)
        policy.waiting = _unpairs(data["waiting"], TurnID)
        return policy

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StopSign):
            return NotImplemented
        return (
            self.id == other.id
            and self.started_waiting_at == other.started_waiting_at
            and self.accepted == other.accepted
            and self.waiting == other.waiting
        )


# ---------------------------------------------------------------------------
# Traffic signal
# ---------------------------------------------------------------------------

class TrafficSignal(_Policy):
    """Admit turns in the active cycle that can clear before it ends.

    Only ``accepted`` is tracked: a car whose turn is red is simply told no
    and asks again next tick.
    """

    kind = "TrafficSignal"

    def request_admission(
        self,
        car: CarID,
        turn: TurnID,
        time: Tick,
        net: Network,
        control: ControlMap,
    ) -> bool:
        """Decide whether ``car`` may start ``turn`` at tick ``time``."""
        self._check_turn(car, turn, net)

        if car in self.accepted:
            return True

        signal = control.traffic_signals[self.id]
        cycle, remaining = signal.current_cycle_and_remaining_time(
            ticks_to_seconds(time, self.config.timestep_s)
        )
        if not cycle.contains(turn):
            return False

        # How long will it take the car to cross the turn?
        crossing_time = round_seconds(
            net.get_turn(turn).length() / self.config.speed_limit_mps
        )
        if crossing_time < remaining:
            self.accepted[car] = turn
            logger.debug("Signal %s: admitted car %s for turn %s (%.2fs to cross, %.2fs left)",
                         self.id, car, turn, crossing_time, remaining)
            return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "id": int(self.id),
            "accepted": _pairs(self.accepted),
        }

    @classmethod
    def from_dict(cls, data: dict, config: PolicyConfig = DEFAULT_CONFIG) -> TrafficSignal:
        policy = cls(IntersectionID(data["id"]), config)
        policy.accepted = _unpairs(data["accepted"], TurnID)
        return policy

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrafficSignal):
            return NotImplemented
        return self.id == other.id and self.accepted == other.accepted


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

_VARIANTS: dict[str, type[StopSign] | type[TrafficSignal]] = {
    StopSign.kind: StopSign,
    TrafficSignal.kind: TrafficSignal,
}


class IntersectionPolicy:
    """The admission policy of one intersection: a StopSign or a TrafficSignal."""

    def __init__(self, policy: StopSign | TrafficSignal) -> None:
        if type(policy) not in _VARIANTS.values():
            raise TypeError(f"Unsupported policy variant: {type(policy).__name__}")
        self.policy = policy

    @classmethod
    def stop_sign(
        cls, intersection_id: IntersectionID, config: PolicyConfig = DEFAULT_CONFIG,
    ) -> IntersectionPolicy:
        return cls(StopSign(intersection_id, config))

    @classmethod
    def traffic_signal(
        cls, intersection_id: IntersectionID, config: PolicyConfig = DEFAULT_CONFIG,
    ) -> IntersectionPolicy:
        return cls(TrafficSignal(intersection_id, config))

    @property
    def kind(self) -> str:
        return self.policy.kind

    @property
    def id(self) -> IntersectionID:
        return self.policy.id

    @property
    def accepted(self) -> dict[CarID, TurnID]:
        return self.policy.accepted

    def started_waiting(self, car: CarID) -> Tick | None:
        """First tick ``car`` asked without being admitted, if tracked."""
        if isinstance(self.policy, StopSign):
            return self.policy.started_waiting_at.get(car)
        return None

    # This must only be called when the car is ready to enter the intersection.
    def request_admission(
        self,
        car: CarID,
        turn: TurnID,
        time: Tick,
        net: Network,
        control: ControlMap,
    ) -> bool:
        return self.policy.request_admission(car, turn, time, net, control)

    def on_enter(self, car: CarID) -> None:
        self.policy.on_enter(car)

    def on_exit(self, car: CarID) -> None:
        self.policy.on_exit(car)

    # -- serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return self.policy.to_dict()

    @classmethod
    def from_dict(
        cls, data: dict, config: PolicyConfig = DEFAULT_CONFIG,
    ) -> IntersectionPolicy:
        kind = data.get("type")
        if kind not in _VARIANTS:
            raise ValueError(
                f"Unknown policy type: {kind!r}. Available: {list(_VARIANTS)}"
            )
        return cls(_VARIANTS[kind].from_dict(data, config))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntersectionPolicy):
            return NotImplemented
        return self.policy == other.policy

    def __repr__(self) -> str:
        return (
            f"IntersectionPolicy({self.kind}, id={self.id}, "
            f"accepted={len(self.accepted)})"
        )
