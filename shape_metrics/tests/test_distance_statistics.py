"""Tests for distance statistics aggregation."""

import math

import numpy as np
import pytest

from shape_metrics.core.classifier import VoxelClassifier
from shape_metrics.core.distance_field import DistanceField, compute_distance_field
from shape_metrics.core.distance_statistics import (
    DistanceStatisticsAggregator,
    select_points,
    select_points_from_grids,
)
from shape_metrics.core.errors import EmptyStatisticsInputError
from shape_metrics.core.grid import Domain, VolumeGrid
from shape_metrics.core.membership import ThresholdInterval


def center_field():
    """3x3x1 field rooted at the center voxel."""
    values = np.zeros((3, 3, 1), dtype=np.uint8)
    values[1, 1, 0] = 1
    return compute_distance_field(VolumeGrid(values), ThresholdInterval(1, 1))


def all_points(shape):
    domain = Domain.from_shape(shape)
    return domain.ordered_points(np.ones(shape, dtype=bool))


def test_statistics_over_points():
    field = center_field()
    result = DistanceStatisticsAggregator().aggregate(field, all_points((3, 3, 1)))
    stat = result.statistic

    assert stat.count == 9
    assert stat.max == pytest.approx(math.sqrt(2))
    assert stat.mean == pytest.approx((4 + 4 * math.sqrt(2)) / 9)
    assert stat.median == 1.0


def test_farthest_point_is_first_seen_on_ties():
    result = DistanceStatisticsAggregator().aggregate(center_field(), all_points((3, 3, 1)))

    assert result.argmax_point == (0, 0, 0)


def test_farthest_point_reaches_the_maximum():
    rng = np.random.default_rng(4)
    domain = Domain.from_shape((4, 4, 4))
    field = DistanceField(rng.random((4, 4, 4)), domain)
    points = all_points((4, 4, 4))[rng.permutation(64)]
    result = DistanceStatisticsAggregator().aggregate(field, points)

    assert field(result.argmax_point) == result.statistic.max == field.distances.max()


def test_chunked_parallel_aggregation_keeps_first_maximum():
    points = all_points((3, 3, 1))
    sequential = DistanceStatisticsAggregator().aggregate(center_field(), points)
    chunked = DistanceStatisticsAggregator(workers=3, chunk_size=2).aggregate(center_field(), points)

    assert chunked.argmax_point == sequential.argmax_point
    assert chunked.statistic.count == sequential.statistic.count
    assert chunked.statistic.mean == pytest.approx(sequential.statistic.mean)
    assert chunked.statistic.variance == pytest.approx(sequential.statistic.variance)
    assert chunked.statistic.median == sequential.statistic.median


def test_empty_input_is_signalled():
    with pytest.raises(EmptyStatisticsInputError):
        DistanceStatisticsAggregator().aggregate(center_field(), np.empty((0, 3), dtype=np.int64))


def make_pair():
    rng = np.random.default_rng(21)
    grid_a = VolumeGrid(rng.integers(0, 256, size=(5, 6, 4), dtype=np.uint8))
    grid_b = VolumeGrid(rng.integers(0, 256, size=(5, 6, 4), dtype=np.uint8))
    return grid_a, ThresholdInterval(0, 128), grid_b, ThresholdInterval(60, 200)


@pytest.mark.parametrize("false_positives_only", [False, True])
def test_selection_with_and_without_collected_points_agree(false_positives_only):
    grid_a, interval_a, grid_b, interval_b = make_pair()
    classification = VoxelClassifier().classify(grid_a, interval_a, grid_b, interval_b,
                                                collect_points=True)
    from_points = select_points(classification, false_positives_only)
    from_grids = select_points_from_grids(grid_a, interval_a, grid_b, interval_b, false_positives_only)

    np.testing.assert_array_equal(from_points, from_grids)
    expected = (classification.counts.b_not_in_a if false_positives_only
                else classification.counts.total_in_b)
    assert len(from_points) == expected


def test_false_positive_distances_are_positive():
    grid_a, interval_a, grid_b, interval_b = make_pair()
    field = compute_distance_field(grid_a, interval_a)
    points = select_points_from_grids(grid_a, interval_a, grid_b, interval_b, True)
    result = DistanceStatisticsAggregator().aggregate(field, points)

    assert (field.query(points) > 0).all()
    assert result.statistic.count == len(points)
