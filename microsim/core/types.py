"""Type aliases and enumerations for microsim."""

from __future__ import annotations

from enum import IntEnum, auto
from typing import NewType

import numpy as np

# --- Identifiers (semantic ints) ---
CarID = NewType("CarID", int)
TurnID = NewType("TurnID", int)
IntersectionID = NewType("IntersectionID", int)
Tick = NewType("Tick", int)

# --- Enumerations ---

class TurnType(IntEnum):
    LEFT = auto()
    STRAIGHT = auto()
    RIGHT = auto()
    UTURN = auto()


class TurnPriority(IntEnum):
    """Precedence of a turn at a stop sign.  Higher value wins."""
    STOP = auto()       # must come to a full stop before entering
    YIELD = auto()
    PRIORITY = auto()


# --- NumPy dtypes ---
FLOAT = np.float64


# Every time compared by the policies is rounded to whole nanoseconds.
SECONDS_DIGITS = 9


def round_seconds(seconds: float) -> float:
    """Snap a time or duration (s) to ``SECONDS_DIGITS`` decimal places."""
    return round(seconds, SECONDS_DIGITS)


def ticks_to_seconds(ticks: int, timestep_s: float) -> float:
    """Convert a tick count (or tick difference) to simulated seconds."""
    return round_seconds(ticks * timestep_s)
