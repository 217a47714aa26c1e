"""Tests for region reductions and running composites."""

import numpy as np
import pytest

from lst_trends.analysis.reduction import RegionReducer, RunningMean, block_mean, sampling_factor
from lst_trends.core.errors import ResourceExceeded

from conftest import make_context


def test_sampling_factor(grid):
    assert sampling_factor(grid, 30.0) == 1
    assert sampling_factor(grid, 60.0) == 2
    assert sampling_factor(grid, 10.0) == 1


def test_block_mean_ignores_nan():
    values = np.array([
        [1.0, 3.0, np.nan, np.nan],
        [np.nan, 5.0, np.nan, np.nan],
    ])
    out = block_mean(values, 2)

    assert out.shape == (1, 2)
    assert out[0, 0] == pytest.approx(3.0)
    assert np.isnan(out[0, 1])


def test_block_mean_pads_ragged_edges():
    out = block_mean(np.ones((5, 3)), 2)

    assert out.shape == (3, 2)
    np.testing.assert_array_equal(out, 1.0)


def test_coarse_sampling(region, grid):
    context = make_context(region, sample_resolution_m=60.0)
    reducer = RegionReducer(context, stage="test")

    samples = reducer.samples(np.full(grid.shape, 5.0), grid)

    assert samples.size == 100
    assert reducer.count(np.full(grid.shape, 5.0), grid) == 100


def test_mean_of_empty_region_is_none(context, grid):
    reducer = RegionReducer(context, stage="test")

    assert reducer.mean(np.full(grid.shape, np.nan), grid) is None
    assert reducer.count(np.full(grid.shape, np.nan), grid) == 0


def test_budget_exceeded_names_stage(region, grid):
    context = make_context(region, max_pixels=50)
    reducer = RegionReducer(context, stage="quality_filter")

    with pytest.raises(ResourceExceeded) as exc:
        reducer.count(np.ones(grid.shape), grid)

    assert exc.value.stage == "quality_filter"
    assert exc.value.pixels == 400
    assert exc.value.params["region"] == "test_region"


def test_coarser_sampling_fits_budget(region, grid):
    context = make_context(region, max_pixels=150, sample_resolution_m=60.0)

    assert RegionReducer(context, stage="test").count(np.ones(grid.shape), grid) == 100


def test_running_mean():
    acc = RunningMean((1, 3))
    acc.add(np.array([[1.0, np.nan, np.nan]]))
    acc.add(np.array([[3.0, 4.0, np.nan]]))

    out = acc.result()
    assert acc.n_images == 2
    assert out[0, 0] == pytest.approx(2.0)
    assert out[0, 1] == pytest.approx(4.0)
    assert np.isnan(out[0, 2])
