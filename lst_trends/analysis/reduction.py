"""
Region Reductions

Area statistics over the study region at a fixed sampling resolution, and
the running per-pixel mean used to build composites. Every reduction
checks a hard pixel budget before touching data.
"""

from typing import Any, Dict, Optional, Tuple
import logging

import numpy as np

from ..core.errors import ResourceExceeded
from ..core.raster import GridSpec
from .context import AnalysisContext

logger = logging.getLogger(__name__)


def sampling_factor(grid: GridSpec, scale_m: float) -> int:
    """Integer block size that brings the grid's pixels to roughly `scale_m` meters."""
    return max(1, int(round(scale_m / grid.pixel_size_m)))


def block_mean(values: np.ndarray, factor: int) -> np.ndarray:
    """
    Aggregate (H, W) samples into factor x factor blocks.

    Each block is the mean of its finite samples and NaN when it has none,
    so a coarse sample is valid as soon as any fine sample beneath it is.
    """
    values = np.asarray(values, dtype=np.float64)
    if factor <= 1:
        return values

    height, width = values.shape
    pad_h = (-height) % factor
    pad_w = (-width) % factor
    if pad_h or pad_w:
        values = np.pad(values, ((0, pad_h), (0, pad_w)), constant_values=np.nan)

    blocks = values.reshape(
        values.shape[0] // factor, factor, values.shape[1] // factor, factor
    )
    valid = np.isfinite(blocks)
    counts = valid.sum(axis=(1, 3))
    sums = np.where(valid, blocks, 0.0).sum(axis=(1, 3))

    out = np.full(counts.shape, np.nan)
    np.divide(sums, counts, out=out, where=counts > 0)
    return out


class RegionReducer:
    """
    Region-wide scalar reductions for one pipeline stage.

    Example:
        >>> reducer = RegionReducer(context, stage="quality_filter")
        >>> reducer.count(image.band("LST"), image.grid)
        48211
        >>> reducer.mean(composite, grid)
        31.84
    """

    def __init__(self, context: AnalysisContext, stage: str):
        self.context = context
        self.stage = stage
        self._prepared: Dict[GridSpec, Tuple[int, np.ndarray]] = {}

    def _prepare(self, grid: GridSpec) -> Tuple[int, np.ndarray]:
        """Sampling factor and region mask on the sampling grid, budget-checked."""
        if grid in self._prepared:
            return self._prepared[grid]

        scale = self.context.study.sample_resolution_m
        factor = sampling_factor(grid, scale)
        sample_grid = grid.coarsen(factor)
        inside = self.context.region.mask(sample_grid)
        pixels = int(inside.sum())

        if pixels > self.context.max_pixels:
            raise ResourceExceeded(
                self.stage,
                pixels,
                self.context.max_pixels,
                params=self._params(grid, factor),
            )

        logger.debug(
            f"[{self.stage}] sampling {grid.shape} at factor {factor} "
            f"-> {sample_grid.shape}, {pixels} region samples"
        )
        self._prepared[grid] = (factor, inside)
        return factor, inside

    def _params(self, grid: GridSpec, factor: int) -> Dict[str, Any]:
        return {
            "region": self.context.region.name,
            "scale_m": self.context.study.sample_resolution_m,
            "grid_shape": grid.shape,
            "factor": factor,
        }

    def samples(self, values: np.ndarray, grid: GridSpec) -> np.ndarray:
        """Region samples at the sampling resolution (NaN = masked)."""
        factor, inside = self._prepare(grid)
        return block_mean(values, factor)[inside]

    def count(self, values: np.ndarray, grid: GridSpec) -> int:
        """Number of non-masked samples inside the region."""
        return int(np.isfinite(self.samples(values, grid)).sum())

    def mean(self, values: np.ndarray, grid: GridSpec) -> Optional[float]:
        """Area mean over the region, or None when no sample is valid."""
        samples = self.samples(values, grid)
        valid = samples[np.isfinite(samples)]
        if valid.size == 0:
            return None
        return float(valid.mean())


class RunningMean:
    """
    Per-pixel mean accumulated one image at a time.

    Only a sum and a count array are held, never the stack of inputs.

    Example:
        >>> acc = RunningMean(grid.shape)
        >>> for image in images:
        ...     acc.add(image.band("LST"))
        >>> composite = acc.result()
    """

    def __init__(self, shape: Tuple[int, int]):
        self.sum = np.zeros(shape, dtype=np.float64)
        self.count = np.zeros(shape, dtype=np.int64)
        self.n_images = 0

    def add(self, values: np.ndarray) -> None:
        valid = np.isfinite(values)
        self.sum += np.where(valid, values, 0.0)
        self.count += valid
        self.n_images += 1

    def result(self) -> np.ndarray:
        """Mean of the finite contributions per pixel, NaN where there were none."""
        out = np.full(self.sum.shape, np.nan)
        np.divide(self.sum, self.count, out=out, where=self.count > 0)
        return out
