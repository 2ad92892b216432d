"""
Membership Predicate
====================

A point belongs to the shape defined by grid G and interval [lo, hi] iff
lo <= G(p) <= hi. Inverted intervals are accepted and give an empty shape.
"""

from typing import Callable, NamedTuple

import numpy as np

from shape_metrics.core.grid import Point, VolumeGrid


class ThresholdInterval(NamedTuple):
    """Inclusive threshold bounds."""
    lo: int
    hi: int

    def __str__(self) -> str:
        return f"[{self.lo}, {self.hi}]"


def membership_predicate(grid: VolumeGrid, interval: ThresholdInterval) -> Callable[[Point], bool]:
    """Pointwise membership test for one grid and interval."""
    lo, hi = interval

    def is_inside(point: Point) -> bool:
        return lo <= grid(point) <= hi

    return is_inside


def membership_mask(grid: VolumeGrid, interval: ThresholdInterval) -> np.ndarray:
    """Membership evaluated over the whole domain, indexed [x, y, z]."""
    return in_interval(grid.values, interval.lo, interval.hi)


def in_interval(values: np.ndarray, lo: int, hi: int) -> np.ndarray:
    # int64 keeps bounds such as -1 or 256 meaningful for uint8 volumes
    values = values.astype(np.int64, copy=False)
    return (values >= lo) & (values <= hi)
