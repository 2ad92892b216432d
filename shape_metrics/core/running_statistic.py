"""
Running Statistic
=================

Accumulates a multiset of real values in any order and exposes count, min,
max, mean, population variance and the exact median.

Count, sum, sum of squares, min and max are merged across partitions by
simple addition / comparison. The median keeps every value and is selected
once over the merged samples; for an even count it is the mean of the two
middle values.
"""

from typing import Iterable, List, Optional

import numpy as np


class RunningStatistic:
    """Mergeable accumulator of real values."""

    def __init__(self, values: Optional[Iterable[float]] = None):
        self._count = 0
        self._sum = 0.0
        self._sum_sq = 0.0
        self._min = float('inf')
        self._max = float('-inf')
        self._chunks: List[np.ndarray] = []
        if values is not None:
            self.add_values(values)

    def add_value(self, value: float):
        self.add_values(np.array([value], dtype=np.float64))

    def add_values(self, values: Iterable[float]):
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.size == 0:
            return
        self._count += int(values.size)
        self._sum += float(values.sum())
        self._sum_sq += float(np.square(values).sum())
        self._min = min(self._min, float(values.min()))
        self._max = max(self._max, float(values.max()))
        self._chunks.append(values)

    def merge(self, other: 'RunningStatistic') -> 'RunningStatistic':
        """Fold another accumulator into this one and return self."""
        self._count += other._count
        self._sum += other._sum
        self._sum_sq += other._sum_sq
        self._min = min(self._min, other._min)
        self._max = max(self._max, other._max)
        self._chunks.extend(other._chunks)
        return self

    @property
    def count(self) -> int:
        return self._count

    @property
    def min(self) -> float:
        return self._min if self._count else float('nan')

    @property
    def max(self) -> float:
        return self._max if self._count else float('nan')

    @property
    def mean(self) -> float:
        if not self._count:
            return float('nan')
        return self._sum / self._count

    @property
    def variance(self) -> float:
        """Population variance (divides by the count)."""
        if not self._count:
            return float('nan')
        mean = self.mean
        if not np.isfinite(mean):
            return float('nan')
        # sum of squares can undershoot mean^2 by rounding
        return max(0.0, self._sum_sq / self._count - mean * mean)

    @property
    def median(self) -> float:
        if not self._count:
            return float('nan')
        samples = self.samples()
        return float(np.median(samples))

    def samples(self) -> np.ndarray:
        """All accumulated values, in insertion order."""
        if not self._chunks:
            return np.empty(0, dtype=np.float64)
        if len(self._chunks) > 1:
            self._chunks = [np.concatenate(self._chunks)]
        return self._chunks[0]

    def to_dict(self) -> dict:
        return {
            'count': self.count,
            'max': self.max,
            'mean': self.mean,
            'variance': self.variance,
            'median': self.median,
        }

    def __repr__(self) -> str:
        return (f"RunningStatistic(count={self.count}, max={self.max}, mean={self.mean}, "
                f"variance={self.variance}, median={self.median})")
