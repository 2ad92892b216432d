"""Tests for the voxel classifier."""

import math

import numpy as np
import pytest

from shape_metrics.core.classifier import ConfusionCounts, VoxelCategory, VoxelClassifier
from shape_metrics.core.errors import DomainMismatchError
from shape_metrics.core.grid import VolumeGrid
from shape_metrics.core.membership import ThresholdInterval


def random_grid(seed, shape=(6, 5, 7)):
    rng = np.random.default_rng(seed)
    return VolumeGrid(rng.integers(0, 256, size=shape, dtype=np.uint8))


def test_category_mapping_is_total():
    assert VoxelCategory.from_membership(True, True) is VoxelCategory.B_IN_A
    assert VoxelCategory.from_membership(False, False) is VoxelCategory.NOT_B_NOT_A
    assert VoxelCategory.from_membership(False, True) is VoxelCategory.B_NOT_IN_A
    assert VoxelCategory.from_membership(True, False) is VoxelCategory.NOT_B_IN_A


@pytest.mark.parametrize("interval_a,interval_b", [
    ((0, 128), (0, 128)),
    ((50, 200), (100, 255)),
    ((10, 5), (0, 255)),
])
def test_counts_partition_the_domain(interval_a, interval_b):
    grid_a, grid_b = random_grid(1), random_grid(2)
    result = VoxelClassifier().classify(grid_a, ThresholdInterval(*interval_a),
                                        grid_b, ThresholdInterval(*interval_b))
    counts = result.counts

    assert counts.total == grid_a.domain.size
    assert counts.total_in_a == counts.b_in_a + counts.not_b_in_a
    assert counts.total_in_b == counts.b_in_a + counts.b_not_in_a
    assert counts.total_in_a + counts.total_in_comp_a == grid_a.domain.size
    assert counts.total_in_b + counts.total_in_comp_b == grid_a.domain.size


def test_identical_shapes_have_perfect_scores():
    grid = random_grid(5)
    interval = ThresholdInterval(0, 128)
    counts = VoxelClassifier().classify(grid, interval, grid, interval).counts

    assert counts.b_not_in_a == 0
    assert counts.not_b_in_a == 0
    assert counts.precision == 1.0
    assert counts.recall == 1.0
    assert counts.f_measure == 1.0


def test_empty_compared_shape_leaves_precision_undefined():
    grid_a = random_grid(5)
    grid_b = VolumeGrid(np.full(grid_a.domain.shape, 255, dtype=np.uint8))
    counts = VoxelClassifier().classify(grid_a, ThresholdInterval(0, 128),
                                        grid_b, ThresholdInterval(0, 128)).counts

    assert counts.b_in_a == 0
    assert counts.b_not_in_a == 0
    assert math.isnan(counts.precision)
    assert counts.recall == 0.0
    assert math.isnan(counts.f_measure)


def test_empty_shapes_in_small_cube():
    grid = VolumeGrid(np.ones((2, 2, 2), dtype=np.uint8))
    interval = ThresholdInterval(0, 0)
    counts = VoxelClassifier().classify(grid, interval, grid, interval).counts

    assert counts.not_b_not_a == 8
    assert counts.b_in_a == counts.b_not_in_a == counts.not_b_in_a == 0
    assert counts.total_in_a == counts.total_in_b == 0
    assert math.isnan(counts.precision)
    assert math.isnan(counts.recall)


def test_single_false_positive_voxel():
    values_a = np.full((3, 3, 3), 10, dtype=np.uint8)
    values_a[1, 1, 1] = 200
    values_b = np.full((3, 3, 3), 10, dtype=np.uint8)
    interval = ThresholdInterval(0, 100)
    counts = VoxelClassifier().classify(VolumeGrid(values_a), interval,
                                        VolumeGrid(values_b), interval).counts

    assert counts.b_not_in_a == 1
    assert counts.not_b_in_a == 0
    assert counts.b_in_a == 26
    assert counts.precision == pytest.approx(26 / 27)
    assert counts.recall == 1.0


def test_domain_mismatch_is_rejected():
    with pytest.raises(DomainMismatchError):
        VoxelClassifier().classify(random_grid(1, (4, 4, 4)), ThresholdInterval(0, 128),
                                   random_grid(2, (4, 4, 5)), ThresholdInterval(0, 128))


def test_collected_points_follow_domain_order():
    grid = VolumeGrid(np.zeros((2, 2, 2), dtype=np.uint8))
    interval = ThresholdInterval(0, 0)
    result = VoxelClassifier().classify(grid, interval, grid, interval, collect_points=True)
    points = result.points_of(VoxelCategory.B_IN_A)

    assert [tuple(p) for p in points] == [
        (0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0),
        (0, 0, 1), (1, 0, 1), (0, 1, 1), (1, 1, 1),
    ]
    assert len(result.points_of(VoxelCategory.NOT_B_NOT_A)) == 0


def test_points_not_collected_by_default():
    grid = random_grid(3)
    result = VoxelClassifier().classify(grid, ThresholdInterval(0, 128), grid, ThresholdInterval(0, 128))

    assert result.points is None
    with pytest.raises(ValueError):
        result.points_of(VoxelCategory.B_IN_A)


def test_parallel_sweep_matches_sequential():
    grid_a, grid_b = random_grid(8, (9, 7, 11)), random_grid(9, (9, 7, 11))
    interval_a, interval_b = ThresholdInterval(30, 160), ThresholdInterval(90, 250)
    sequential = VoxelClassifier(workers=1).classify(grid_a, interval_a, grid_b, interval_b,
                                                     collect_points=True)
    parallel = VoxelClassifier(workers=4).classify(grid_a, interval_a, grid_b, interval_b,
                                                   collect_points=True)

    assert parallel.counts == sequential.counts
    for category in VoxelCategory:
        np.testing.assert_array_equal(parallel.points_of(category), sequential.points_of(category))
    assert sum(len(parallel.points_of(c)) for c in VoxelCategory) == grid_a.domain.size


def test_counts_addition():
    total = ConfusionCounts(1, 2, 3, 4) + ConfusionCounts(10, 20, 30, 40)

    assert total.as_row() == [11, 22, 33, 44, 55, 44, 55, 66]


def test_count_per_category_matches_collected_points():
    grid_a, grid_b = random_grid(4, (5, 6, 7)), random_grid(5, (5, 6, 7))
    result = VoxelClassifier().classify(grid_a, ThresholdInterval(0, 100),
                                        grid_b, ThresholdInterval(50, 200), collect_points=True)

    for category in VoxelCategory:
        assert result.counts.count(category) == len(result.points_of(category))
    assert ConfusionCounts(1, 2, 3, 4).count(VoxelCategory.B_NOT_IN_A) == 3
