"""Planar geometry helpers for turn paths."""

from __future__ import annotations

import numpy as np

from ..core.types import FLOAT


def as_point(xy) -> np.ndarray:
    """Coerce an (x, y) pair into a float array of shape (2,)."""
    pt = np.asarray(xy, dtype=FLOAT)
    if pt.shape != (2,):
        raise ValueError(f"Expected an (x, y) point, got shape {pt.shape}")
    return pt


def euclid_dist(pt1: np.ndarray, pt2: np.ndarray) -> float:
    """Straight-line distance between two points (metres)."""
    return float(np.hypot(*(pt2 - pt1)))


def _is_counter_clockwise(pt1: np.ndarray, pt2: np.ndarray, pt3: np.ndarray) -> bool:
    return bool(
        (pt3[1] - pt1[1]) * (pt2[0] - pt1[0]) > (pt2[1] - pt1[1]) * (pt3[0] - pt1[0])
    )


def line_segments_intersect(
    seg1: tuple[np.ndarray, np.ndarray],
    seg2: tuple[np.ndarray, np.ndarray],
) -> bool:
    """True if the two segments cross each other.

    Orientation test: the endpoints of each segment must lie on opposite
    sides of the other.  Collinear or merely touching segments do not count.
    """
    pt1, pt2 = seg1
    pt3, pt4 = seg2
    return (
        _is_counter_clockwise(pt1, pt3, pt4) != _is_counter_clockwise(pt2, pt3, pt4)
        and _is_counter_clockwise(pt1, pt2, pt3) != _is_counter_clockwise(pt1, pt2, pt4)
    )

