"""Tests for yearly composites and the per-pixel OLS trend."""

from datetime import datetime

import numpy as np
import pytest

from lst_trends.analysis.trend import (
    CONSTANT_BAND,
    MASK_NODATA,
    NOT_SIGNIFICANT,
    SIGNIFICANT,
    YEAR_BAND,
    TrendEstimator,
    solve_ols,
)
from lst_trends.core.errors import ResourceExceeded
from lst_trends.core.raster import RasterCollection
from lst_trends.core.tile_grid import TileGrid

from conftest import lst_image, make_context


@pytest.fixture
def july_context(region):
    return make_context(region, season_start_month=7, season_end_month=7)


def _linear_collection(grid, values):
    """One July scene per year, 2000 onwards, with the given LST values."""
    return RasterCollection(
        lst_image(grid, datetime(2000 + i, 7, 10), value) for i, value in enumerate(values)
    )


def test_solve_ols_recovers_line():
    years = np.array([2000.0, 2001.0, 2002.0, 2003.0])[:, None]
    y = 3.0 + 0.25 * (years - 2000.0)
    ones = np.ones_like(years)

    intercept, slope, n = solve_ols(y, ones, years, origin=2000.0)

    assert slope[0] == pytest.approx(0.25)
    assert intercept[0] == pytest.approx(3.0 - 0.25 * 2000.0)
    assert n[0] == 4


def test_solve_ols_origin_does_not_change_fit():
    rng = np.random.default_rng(0)
    years = np.arange(1990.0, 2021.0)[:, None] * np.ones((1, 5))
    y = 30.0 + 0.03 * (years - 1990.0) + rng.normal(0, 0.5, years.shape)
    ones = np.ones_like(years)

    a = solve_ols(y, ones, years, origin=0.0)
    b = solve_ols(y, ones, years, origin=1990.0)

    np.testing.assert_allclose(a[1], b[1], rtol=1e-6, atol=1e-9)
    np.testing.assert_allclose(a[0], b[0], rtol=1e-6, atol=1e-9)


def test_yearly_composites_carry_regressor_bands(july_context, grid):
    collection = RasterCollection([
        lst_image(grid, datetime(2000, 7, 1), 10.0),
        lst_image(grid, datetime(2000, 7, 20), 14.0),
        lst_image(grid, datetime(2002, 7, 1), 11.0),
        lst_image(grid, datetime(2001, 6, 1), 99.0),  # outside the season
    ])
    composites = TrendEstimator(july_context).yearly_composites(collection)

    assert [c.year for c in composites] == [2000, 2002]
    first = composites[0]
    np.testing.assert_allclose(first.band("LST"), 12.0)
    np.testing.assert_array_equal(first.band(CONSTANT_BAND), 1.0)
    np.testing.assert_array_equal(first.band(YEAR_BAND), 2000.0)
    assert first.properties["image_count"] == 2


def test_linear_trend(july_context, grid):
    result = TrendEstimator(july_context).estimate(_linear_collection(grid, [10.0, 10.5, 11.0]))

    np.testing.assert_allclose(result.slope, 0.5)
    np.testing.assert_allclose(result.intercept, 10.0 - 0.5 * 2000)
    np.testing.assert_allclose(result.predict(2000), 10.0)
    np.testing.assert_allclose(result.total_change, 0.5 * 2)
    assert result.years_used == (2000, 2001, 2002)
    assert (result.sample_count == 3).all()


def test_single_year_pixel_is_undefined(july_context, grid):
    sparse = np.full(grid.shape, np.nan)
    sparse[0, 0] = 11.0
    collection = RasterCollection([
        lst_image(grid, datetime(2000, 7, 1), 10.0),
        lst_image(grid, datetime(2001, 7, 1), sparse),
    ])
    result = TrendEstimator(july_context).estimate(collection)

    assert result.slope[0, 0] == pytest.approx(1.0)
    assert np.isnan(result.slope[5, 5])
    assert np.isnan(result.intercept[5, 5])
    assert result.sample_count[5, 5] == 1
    assert result.significance_mask[5, 5] == MASK_NODATA


def test_significance_mask(july_context, grid):
    values = np.full(grid.shape, 20.0)
    values[:10] = 20.1
    collection = RasterCollection([
        lst_image(grid, datetime(2000, 7, 1), 20.0),
        lst_image(grid, datetime(2002, 7, 1), values),
    ])
    result = TrendEstimator(july_context).estimate(collection)

    mask = result.significance_mask
    assert mask.dtype == np.uint8
    # slope 0.05 > 0.02 in the top half, 0 elsewhere
    assert (mask[:10] == SIGNIFICANT).all()
    assert (mask[10:] == NOT_SIGNIFICANT).all()


def test_tile_size_does_not_change_result(region, grid):
    rng = np.random.default_rng(42)
    collection = RasterCollection(
        lst_image(grid, datetime(year, 7, 1), rng.normal(30, 2, grid.shape))
        for year in (2000, 2001, 2002)
    )

    big = TrendEstimator(make_context(region, season_start_month=7, season_end_month=7)).estimate(collection)
    small = TrendEstimator(
        make_context(region, season_start_month=7, season_end_month=7, tile_size=7)
    ).estimate(collection)

    np.testing.assert_allclose(small.slope, big.slope, equal_nan=True)
    np.testing.assert_allclose(small.intercept, big.intercept, equal_nan=True)


def test_no_composites_gives_none(july_context):
    estimator = TrendEstimator(july_context)

    assert estimator.estimate(RasterCollection()) is None
    summary = estimator.summarize(None)
    assert summary.mean_slope is None
    assert summary.total_change is None
    assert summary.valid_pixels == 0


def test_summary_over_region(july_context, grid):
    estimator = TrendEstimator(july_context)
    result = estimator.estimate(_linear_collection(grid, [10.0, 10.1, 10.2]))
    summary = estimator.summarize(result)

    assert summary.mean_slope == pytest.approx(0.1)
    assert summary.total_change == pytest.approx(0.2)
    assert summary.span_years == 2
    assert summary.valid_pixels == grid.size
    assert summary.significant_pixels == grid.size


def test_pixel_budget(region, grid):
    context = make_context(region, season_start_month=7, season_end_month=7, max_pixels=10)
    collection = _linear_collection(grid, [10.0, 11.0])

    with pytest.raises(ResourceExceeded) as exc:
        TrendEstimator(context).estimate(collection)
    assert exc.value.stage == TrendEstimator.STAGE
    assert exc.value.pixels == grid.size


def test_tiles_cover_grid_once(grid):
    tiles = TileGrid(grid, tile_size=7)
    hits = np.zeros(grid.shape, dtype=int)
    for tile in tiles:
        rows, cols = tile.slices
        hits[rows, cols] += 1

    assert len(tiles) == 9
    assert (hits == 1).all()
    assert tiles.n_rows == 3 and tiles.n_cols == 3
