"""Tests for the running statistic accumulator."""

import math

import numpy as np
import pytest

from shape_metrics.core.running_statistic import RunningStatistic


def test_median_of_odd_count():
    stat = RunningStatistic([3, 0, 4, 1, 2])

    assert stat.median == 2.0


def test_median_of_even_count_is_interpolated():
    stat = RunningStatistic([3, 1, 0, 2])

    assert stat.median == 1.5


def test_population_variance_and_mean():
    stat = RunningStatistic([0, 1, 2, 3, 4])

    assert stat.count == 5
    assert stat.mean == pytest.approx(2.0)
    assert stat.variance == pytest.approx(2.0)
    assert stat.max == 4.0
    assert stat.min == 0.0


def test_max_is_order_independent():
    values = np.random.default_rng(3).random(101) * 10
    forward = RunningStatistic(values)
    backward = RunningStatistic()
    for value in values[::-1]:
        backward.add_value(value)

    assert forward.max == backward.max == values.max()
    assert forward.median == backward.median


def test_merge_matches_single_accumulator():
    values = np.random.default_rng(11).random(50)
    whole = RunningStatistic(values)
    merged = RunningStatistic(values[:20]).merge(RunningStatistic(values[20:]))

    assert merged.count == whole.count
    assert merged.max == whole.max
    assert merged.mean == pytest.approx(whole.mean)
    assert merged.variance == pytest.approx(whole.variance)
    assert merged.median == whole.median


def test_empty_statistic_is_undefined():
    stat = RunningStatistic()

    assert stat.count == 0
    assert math.isnan(stat.max)
    assert math.isnan(stat.mean)
    assert math.isnan(stat.variance)
    assert math.isnan(stat.median)
