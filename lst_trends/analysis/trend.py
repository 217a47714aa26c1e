"""
Per-Pixel Trend Estimation

Builds one mean composite per study year and fits, independently for
every pixel, an ordinary least squares line of LST against year. Pixels
with fewer than two yearly samples have no defined regression and stay
NaN in every output layer.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
import logging

import numpy as np

from ..core.errors import ResourceExceeded
from ..core.parallel import TileExecutor
from ..core.raster import GridSpec, RasterCollection, RasterImage
from ..core.tile_grid import Tile, TileGrid
from ..data.sensors import LST_BAND
from ..utils.logging import StageLogger
from .context import AnalysisContext
from .reduction import RegionReducer, RunningMean

logger = logging.getLogger(__name__)

YEAR_BAND = "year"
CONSTANT_BAND = "constant"

# Significance mask codes
NOT_SIGNIFICANT = 0
SIGNIFICANT = 1
MASK_NODATA = 255


@dataclass
class TrendResult:
    """
    Per-pixel regression output on the collection grid.

    `intercept` and `slope` are NaN where the regression is undefined;
    every derived layer keeps that no-data footprint.
    """
    intercept: np.ndarray
    slope: np.ndarray
    sample_count: np.ndarray
    grid: GridSpec
    start_year: int
    end_year: int
    threshold: float = 0.02
    years_used: Tuple[int, ...] = ()

    @property
    def span_years(self) -> int:
        return self.end_year - self.start_year

    @property
    def valid(self) -> np.ndarray:
        return np.isfinite(self.slope)

    @property
    def total_change(self) -> np.ndarray:
        """Slope extrapolated over the study span (degrees C)."""
        return self.slope * self.span_years

    @property
    def significant(self) -> np.ndarray:
        """True where |slope| > threshold; False where undefined."""
        with np.errstate(invalid="ignore"):
            return self.valid & (np.abs(self.slope) > self.threshold)

    @property
    def significance_mask(self) -> np.ndarray:
        """uint8 layer: 1 significant, 0 not significant, 255 no-data."""
        mask = np.full(self.slope.shape, MASK_NODATA, dtype=np.uint8)
        mask[self.valid] = NOT_SIGNIFICANT
        mask[self.significant] = SIGNIFICANT
        return mask

    def predict(self, year: float) -> np.ndarray:
        """Fitted LST for a given year."""
        return self.intercept + self.slope * year


@dataclass(frozen=True)
class TrendSummary:
    """Region-wide scalar summary of the trend rasters."""
    mean_slope: Optional[float]
    total_change: Optional[float]
    span_years: int
    threshold: float
    valid_pixels: int
    significant_pixels: int
    years_used: Tuple[int, ...] = ()


def solve_ols(
    y: np.ndarray,
    constant: np.ndarray,
    year: np.ndarray,
    origin: float = 0.0
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorized OLS of y on [constant, year] along axis 0.

    Samples where y is NaN are excluded pixel by pixel. The year regressor
    is shifted by `origin` while solving to keep the normal equations well
    conditioned; the returned intercept refers to the unshifted year.

    Returns:
        intercept, slope, sample_count
    """
    present = np.isfinite(y)
    c = np.where(present, constant, 0.0)
    u = np.where(present, year - origin, 0.0)
    yv = np.where(present, y, 0.0)

    # Normal equations X'X b = X'y with X = [c, u]
    s_cc = (c * c).sum(axis=0)
    s_cu = (c * u).sum(axis=0)
    s_uu = (u * u).sum(axis=0)
    s_cy = (c * yv).sum(axis=0)
    s_uy = (u * yv).sum(axis=0)

    n = present.sum(axis=0)
    det = s_cc * s_uu - s_cu * s_cu
    defined = (n >= 2) & (det > 0)

    intercept = np.full(n.shape, np.nan)
    slope = np.full(n.shape, np.nan)
    safe_det = np.where(defined, det, 1.0)

    b0 = (s_uu * s_cy - s_cu * s_uy) / safe_det
    b1 = (s_cc * s_uy - s_cu * s_cy) / safe_det
    slope[defined] = b1[defined]
    intercept[defined] = (b0 - b1 * origin)[defined]

    return intercept, slope, n


class TrendEstimator:
    """
    Annual composites plus per-pixel OLS trend.

    Example:
        >>> estimator = TrendEstimator(context)
        >>> result = estimator.estimate(filtered)
        >>> summary = estimator.summarize(result)
        >>> summary.mean_slope
        0.034
    """

    STAGE = "trend_estimation"

    def __init__(self, context: AnalysisContext):
        self.context = context
        self.threshold = context.study.significance_threshold
        self.executor = TileExecutor(context.max_workers)

    def yearly_composites(self, collection: RasterCollection) -> List[RasterImage]:
        """
        One composite per study year that has season scenes.

        Each composite carries the mean LST plus constant bands `constant`
        (1) and `year`. Years without scenes are skipped entirely.
        """
        season = set(self.context.season_months)
        composites = []

        for year in self.context.years:
            images = [i for i in collection if i.year == year and i.month in season]
            if not images:
                logger.debug(f"No scenes for {year}; year dropped from regression")
                continue

            grid = images[0].grid
            acc = RunningMean(grid.shape)
            for image in images:
                acc.add(image.band(LST_BAND))

            composites.append(RasterImage(
                bands={
                    LST_BAND: acc.result(),
                    CONSTANT_BAND: np.ones(grid.shape),
                    YEAR_BAND: np.full(grid.shape, float(year)),
                },
                grid=grid,
                timestamp=datetime(year, 1, 1),
                sensor="COMPOSITE",
                image_id=f"composite_{year}",
                properties={"image_count": len(images)},
            ))

        return composites

    def fit(self, composites: List[RasterImage]) -> Optional[TrendResult]:
        """Solve the per-pixel regression tile by tile."""
        if not composites:
            logger.warning("No yearly composites; trend is undefined everywhere")
            return None

        grid = composites[0].grid
        if grid.size > self.context.max_pixels:
            raise ResourceExceeded(
                self.STAGE,
                grid.size,
                self.context.max_pixels,
                params={"grid_shape": grid.shape, "years": len(composites)},
            )

        origin = float(self.context.study.start_year)

        def solve_tile(tile: Tile):
            rows, cols = tile.slices
            y = np.stack([c.band(LST_BAND)[rows, cols] for c in composites])
            constant = np.stack([c.band(CONSTANT_BAND)[rows, cols] for c in composites])
            year = np.stack([c.band(YEAR_BAND)[rows, cols] for c in composites])
            return tile, solve_ols(y, constant, year, origin=origin)

        intercept = np.full(grid.shape, np.nan)
        slope = np.full(grid.shape, np.nan)
        sample_count = np.zeros(grid.shape, dtype=np.int64)

        tiles = TileGrid(grid, tile_size=self.context.tile_size)
        for tile, (b0, b1, n) in self.executor.map(solve_tile, tiles):
            rows, cols = tile.slices
            intercept[rows, cols] = b0
            slope[rows, cols] = b1
            sample_count[rows, cols] = n

        result = TrendResult(
            intercept=intercept,
            slope=slope,
            sample_count=sample_count,
            grid=grid,
            start_year=self.context.study.start_year,
            end_year=self.context.study.end_year,
            threshold=self.threshold,
            years_used=tuple(c.year for c in composites),
        )

        StageLogger().log_stage(
            self.STAGE,
            images_in=len(composites),
            tiles=len(tiles),
            valid_pixels=int(result.valid.sum()),
            undefined_pixels=int((~result.valid).sum()),
            significant_pixels=int(result.significant.sum()),
        )
        return result

    def estimate(self, collection: RasterCollection) -> Optional[TrendResult]:
        return self.fit(self.yearly_composites(collection))

    def summarize(self, result: Optional[TrendResult]) -> TrendSummary:
        """Region-mean slope and its extrapolation over the study span."""
        span = self.context.span_years
        if result is None:
            return TrendSummary(None, None, span, self.threshold, 0, 0)

        reducer = RegionReducer(self.context, stage="trend_summary")
        mean_slope = reducer.mean(result.slope, result.grid)
        inside = self.context.region.mask(result.grid)

        return TrendSummary(
            mean_slope=mean_slope,
            total_change=None if mean_slope is None else mean_slope * span,
            span_years=span,
            threshold=self.threshold,
            valid_pixels=int((result.valid & inside).sum()),
            significant_pixels=int((result.significant & inside).sum()),
            years_used=result.years_used,
        )
