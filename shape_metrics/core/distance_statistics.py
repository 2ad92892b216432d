"""
Distance Statistics Aggregator
==============================

Folds the distances from selected voxels of B to shape A into a running
statistic (max, mean, variance, median) and tracks the farthest voxel.

Points are processed in chunks that can run on a thread pool. Each chunk
returns a local statistic and its first maximum; chunks are merged in order,
so the reported farthest voxel is the first one reaching the maximum in the
input sequence.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from shape_metrics.core.classifier import ClassificationResult, VoxelCategory
from shape_metrics.core.distance_field import DistanceField
from shape_metrics.core.errors import EmptyStatisticsInputError
from shape_metrics.core.grid import Point, VolumeGrid
from shape_metrics.core.membership import ThresholdInterval, membership_mask
from shape_metrics.core.running_statistic import RunningStatistic


@dataclass
class DistanceStatistics:
    """Distance statistic together with the farthest point."""
    statistic: RunningStatistic
    argmax_point: Point

    def to_dict(self) -> Dict[str, Any]:
        stats = self.statistic.to_dict()
        stats['farthest_point'] = list(self.argmax_point)
        return stats


def select_points(classification: ClassificationResult,
                  restrict_to_false_positives: bool = False) -> np.ndarray:
    """
    Voxels of B used for distance statistics.

    Args:
        classification: Result of a classification with collected points
        restrict_to_false_positives: Keep only voxels of B that are not in A

    Returns:
        (n, 3) array in domain iteration order
    """
    if restrict_to_false_positives:
        return classification.points_of(VoxelCategory.B_NOT_IN_A)

    b_points = np.concatenate([
        classification.points_of(VoxelCategory.B_IN_A),
        classification.points_of(VoxelCategory.B_NOT_IN_A),
    ])
    if len(b_points) == 0:
        return b_points
    # restore domain order: z slowest, then y, then x
    order = np.lexsort((b_points[:, 0], b_points[:, 1], b_points[:, 2]))
    return b_points[order]


def select_points_from_grids(grid_a: VolumeGrid,
                             interval_a: ThresholdInterval,
                             grid_b: VolumeGrid,
                             interval_b: ThresholdInterval,
                             restrict_to_false_positives: bool = False) -> np.ndarray:
    """Same selection as :func:`select_points` without collected point lists."""
    selected = membership_mask(grid_b, interval_b)
    if restrict_to_false_positives:
        selected &= ~membership_mask(grid_a, interval_a)
    return grid_b.domain.ordered_points(selected)


class DistanceStatisticsAggregator:
    """
    Aggregate distance field values over a point sequence.
    """

    def __init__(self,
                 workers: int = 1,
                 chunk_size: int = 1_000_000,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize aggregator.

        Args:
            workers: Number of threads processing point chunks
            chunk_size: Number of points per chunk
            logger: Optional logger instance
        """
        self.workers = max(1, int(workers))
        self.chunk_size = max(1, int(chunk_size))
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(self, field: DistanceField, points: np.ndarray) -> DistanceStatistics:
        """
        Query the field once per point and accumulate the distances.

        Args:
            field: Distance field rooted at shape A
            points: (n, 3) array of absolute points

        Returns:
            DistanceStatistics

        Raises:
            EmptyStatisticsInputError: If no point is given
        """
        points = np.asarray(points, dtype=np.int64).reshape(-1, 3)
        if len(points) == 0:
            raise EmptyStatisticsInputError("No point added to distance statistics")

        self.logger.info(f"Computing distance statistics over {len(points)} voxels...")

        chunks = [points[start:start + self.chunk_size]
                  for start in range(0, len(points), self.chunk_size)]

        def run(chunk: np.ndarray):
            return self._aggregate_chunk(field, chunk)

        if self.workers > 1 and len(chunks) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                partials = list(pool.map(run, chunks))
        else:
            partials = [run(chunk) for chunk in chunks]

        statistic = RunningStatistic()
        best_distance, best_point = None, None
        for chunk_stat, (distance, point) in partials:
            statistic.merge(chunk_stat)
            # strict comparison keeps the earliest chunk on ties
            if best_distance is None or distance > best_distance:
                best_distance, best_point = distance, point

        self.logger.info(f"Distance statistics: max={statistic.max:.6f}, mean={statistic.mean:.6f}, "
                         f"variance={statistic.variance:.6f}, median={statistic.median:.6f}, "
                         f"farthest point={best_point}")

        return DistanceStatistics(statistic=statistic, argmax_point=best_point)

    @staticmethod
    def _aggregate_chunk(field: DistanceField,
                         chunk: np.ndarray) -> Tuple[RunningStatistic, Tuple[float, Point]]:
        distances = field.query(chunk)
        # argmax returns the first occurrence of the maximum
        index = int(np.argmax(distances))
        farthest = tuple(int(c) for c in chunk[index])
        return RunningStatistic(distances), (float(distances[index]), farthest)
