"""
Voxel Classifier
================

Partitions the shared domain of two thresholded volumes into four disjoint
categories, with A as the reference shape:

- B in A             (true positive)
- not B and not A    (true negative)
- B not in A         (false positive)
- not B but in A     (false negative)

The sweep is split into z-slabs that can be processed by a thread pool.
Each slab returns its own counts and point lists, merged in slab order, so
results do not depend on the number of workers.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from shape_metrics.core.errors import DomainMismatchError
from shape_metrics.core.grid import Domain, VolumeGrid
from shape_metrics.core.membership import ThresholdInterval, in_interval


class VoxelCategory(Enum):
    """Joint A/B membership label of a voxel."""
    B_IN_A = "BinA"
    NOT_B_NOT_A = "NotBNotA"
    B_NOT_IN_A = "BNotInA"
    NOT_B_IN_A = "NotBInA"

    @classmethod
    def from_membership(cls, in_a: bool, in_b: bool) -> 'VoxelCategory':
        return _CATEGORY_BY_CODE[_membership_code(in_a, in_b)]


def _membership_code(in_a, in_b):
    # Works on bools and on boolean arrays alike
    return 2 * in_a + in_b


_CATEGORY_BY_CODE: Tuple[VoxelCategory, ...] = (
    VoxelCategory.NOT_B_NOT_A,  # 0: not in A, not in B
    VoxelCategory.B_NOT_IN_A,   # 1: not in A, in B
    VoxelCategory.NOT_B_IN_A,   # 2: in A, not in B
    VoxelCategory.B_IN_A,       # 3: in A, in B
)


def _ratio(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return float('nan')
    return numerator / denominator


@dataclass(frozen=True)
class ConfusionCounts:
    """Category counts of one classification pass."""
    b_in_a: int = 0
    not_b_not_a: int = 0
    b_not_in_a: int = 0
    not_b_in_a: int = 0

    @classmethod
    def from_tally(cls, tally: Dict[VoxelCategory, int]) -> 'ConfusionCounts':
        return cls(
            b_in_a=int(tally.get(VoxelCategory.B_IN_A, 0)),
            not_b_not_a=int(tally.get(VoxelCategory.NOT_B_NOT_A, 0)),
            b_not_in_a=int(tally.get(VoxelCategory.B_NOT_IN_A, 0)),
            not_b_in_a=int(tally.get(VoxelCategory.NOT_B_IN_A, 0)),
        )

    def __add__(self, other: 'ConfusionCounts') -> 'ConfusionCounts':
        return ConfusionCounts(
            self.b_in_a + other.b_in_a,
            self.not_b_not_a + other.not_b_not_a,
            self.b_not_in_a + other.b_not_in_a,
            self.not_b_in_a + other.not_b_in_a,
        )

    def count(self, category: VoxelCategory) -> int:
        return {
            VoxelCategory.B_IN_A: self.b_in_a,
            VoxelCategory.NOT_B_NOT_A: self.not_b_not_a,
            VoxelCategory.B_NOT_IN_A: self.b_not_in_a,
            VoxelCategory.NOT_B_IN_A: self.not_b_in_a,
        }[category]

    @property
    def total(self) -> int:
        return self.b_in_a + self.not_b_not_a + self.b_not_in_a + self.not_b_in_a

    @property
    def total_in_a(self) -> int:
        return self.b_in_a + self.not_b_in_a

    @property
    def total_in_b(self) -> int:
        return self.b_in_a + self.b_not_in_a

    @property
    def total_in_comp_a(self) -> int:
        return self.not_b_not_a + self.b_not_in_a

    @property
    def total_in_comp_b(self) -> int:
        return self.not_b_not_a + self.not_b_in_a

    @property
    def precision(self) -> float:
        """B in A over all of B; NaN when B is empty."""
        return _ratio(self.b_in_a, self.b_in_a + self.b_not_in_a)

    @property
    def recall(self) -> float:
        """B in A over all of A; NaN when A is empty."""
        return _ratio(self.b_in_a, self.b_in_a + self.not_b_in_a)

    @property
    def f_measure(self) -> float:
        precision, recall = self.precision, self.recall
        if math.isnan(precision) or math.isnan(recall):
            return float('nan')
        return _ratio(2.0 * precision * recall, precision + recall)

    def as_row(self) -> List[int]:
        """The eight counts in report column order."""
        return [
            self.b_in_a, self.not_b_not_a, self.b_not_in_a, self.not_b_in_a,
            self.total_in_a, self.total_in_b, self.total_in_comp_a, self.total_in_comp_b,
        ]

    def to_dict(self) -> Dict[str, int]:
        return {
            'b_in_a': self.b_in_a,
            'not_b_not_a': self.not_b_not_a,
            'b_not_in_a': self.b_not_in_a,
            'not_b_in_a': self.not_b_in_a,
            'total_in_a': self.total_in_a,
            'total_in_b': self.total_in_b,
            'total_in_comp_a': self.total_in_comp_a,
            'total_in_comp_b': self.total_in_comp_b,
        }


@dataclass
class ClassificationResult:
    """Counts of a classification pass and, if collected, the points per category."""
    domain: Domain
    counts: ConfusionCounts
    points: Optional[Dict[VoxelCategory, np.ndarray]] = field(default=None, repr=False)

    def points_of(self, category: VoxelCategory) -> np.ndarray:
        if self.points is None:
            raise ValueError("Points were not collected; classify with collect_points=True")
        return self.points[category]


class VoxelClassifier:
    """
    Classify every voxel of the shared domain of two thresholded volumes.
    """

    def __init__(self, workers: int = 1, logger: Optional[logging.Logger] = None):
        """
        Initialize voxel classifier.

        Args:
            workers: Number of threads sweeping disjoint z-slabs
            logger: Optional logger instance
        """
        self.workers = max(1, int(workers))
        self.logger = logger or logging.getLogger(__name__)

    def classify(self,
                 grid_a: VolumeGrid,
                 interval_a: ThresholdInterval,
                 grid_b: VolumeGrid,
                 interval_b: ThresholdInterval,
                 collect_points: bool = False) -> ClassificationResult:
        """
        Partition the domain into the four voxel categories.

        Args:
            grid_a: Reference volume
            interval_a: Threshold interval defining shape A
            grid_b: Compared volume
            interval_b: Threshold interval defining shape B
            collect_points: Also return the points of each category

        Returns:
            ClassificationResult with counts (and points if requested)

        Raises:
            DomainMismatchError: If the two volumes have different domains
        """
        if grid_a.domain != grid_b.domain:
            raise DomainMismatchError(
                f"Volume domains differ: A={grid_a.domain}, B={grid_b.domain}"
            )

        domain = grid_a.domain
        self.logger.info(f"Classifying {domain.size} voxels "
                         f"(A in {interval_a}, B in {interval_b}, workers={self.workers})...")

        slabs = self._slab_bounds(domain.shape[2])

        def run(bounds: Tuple[int, int]):
            return self._classify_slab(grid_a, interval_a, grid_b, interval_b,
                                       bounds, collect_points)

        if self.workers > 1 and len(slabs) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                partials = list(pool.map(run, slabs))
        else:
            partials = [run(bounds) for bounds in slabs]

        counts = ConfusionCounts()
        for slab_counts, _ in partials:
            counts = counts + slab_counts

        points = None
        if collect_points:
            points = {
                category: np.concatenate([slab_points[category] for _, slab_points in partials])
                for category in VoxelCategory
            }

        self.logger.info(f"Voxel counts: B in A={counts.b_in_a}, not B not A={counts.not_b_not_a}, "
                         f"B not in A={counts.b_not_in_a}, not B in A={counts.not_b_in_a}")

        return ClassificationResult(domain=domain, counts=counts, points=points)

    def precision_recall_f_measure(self, counts: ConfusionCounts) -> Dict[str, float]:
        """
        Derived metrics; undefined values are NaN and reported as warnings.
        """
        metrics = {
            'precision': counts.precision,
            'recall': counts.recall,
            'f_measure': counts.f_measure,
        }
        for name, value in metrics.items():
            if math.isnan(value):
                self.logger.warning(f"{name} is undefined (zero denominator)")
        self.logger.debug(f"Precision={metrics['precision']:.6f}, recall={metrics['recall']:.6f}, "
                          f"F-measure={metrics['f_measure']:.6f}")
        return metrics

    def _slab_bounds(self, depth: int) -> List[Tuple[int, int]]:
        n_slabs = min(self.workers, depth)
        edges = np.linspace(0, depth, n_slabs + 1).astype(int)
        return [(int(z0), int(z1)) for z0, z1 in zip(edges[:-1], edges[1:]) if z1 > z0]

    @staticmethod
    def _classify_slab(grid_a: VolumeGrid,
                       interval_a: ThresholdInterval,
                       grid_b: VolumeGrid,
                       interval_b: ThresholdInterval,
                       bounds: Tuple[int, int],
                       collect_points: bool):
        z0, z1 = bounds
        in_a = in_interval(grid_a.values[:, :, z0:z1], interval_a.lo, interval_a.hi)
        in_b = in_interval(grid_b.values[:, :, z0:z1], interval_b.lo, interval_b.hi)
        codes = _membership_code(in_a.astype(np.uint8), in_b.astype(np.uint8))

        tally = np.bincount(codes.ravel(), minlength=len(_CATEGORY_BY_CODE))
        counts = ConfusionCounts.from_tally({
            category: tally[code] for code, category in enumerate(_CATEGORY_BY_CODE)
        })

        points = None
        if collect_points:
            points = {
                category: grid_a.domain.ordered_points(codes == code, z_offset=z0)
                for code, category in enumerate(_CATEGORY_BY_CODE)
            }
        return counts, points
