"""Consistency checks for admission policy state."""

from __future__ import annotations

from ..core.network import Network
from ..core.policy import IntersectionPolicy, StopSign


def check_policy(policy: IntersectionPolicy, net: Network) -> list[str]:
    """Return a list of violated invariants (empty when consistent).

    Checks that no two accepted turns conflict, that accepted turns belong
    to the policy's intersection and, for stop signs, that waiting and
    accepted cars are disjoint and that exactly the waiting cars have a
    recorded first-wait tick.
    """
    errors = []
    accepted = sorted(policy.accepted.items())
    for car, turn in accepted:
        if net.get_turn(turn).intersection_id != policy.id:
            errors.append(f"Car {car} accepted for foreign turn {turn}")

    for i, (car1, turn1) in enumerate(accepted):
        t1 = net.get_turn(turn1)
        for car2, turn2 in accepted[i + 1:]:
            if t1.conflicts_with(net.get_turn(turn2)):
                errors.append(
                    f"Cars {car1} and {car2} accepted for conflicting turns "
                    f"{turn1} and {turn2}"
                )

    inner = policy.policy
    if isinstance(inner, StopSign):
        both = set(inner.waiting) & set(inner.accepted)
        if both:
            errors.append(f"Cars {sorted(both)} are both waiting and accepted")
        if set(inner.started_waiting_at) != set(inner.waiting):
            errors.append(
                f"Wait start recorded for {sorted(inner.started_waiting_at)} "
                f"but waiting cars are {sorted(inner.waiting)}"
            )
    return errors
