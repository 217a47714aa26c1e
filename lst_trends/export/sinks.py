"""
Export Sinks

Destinations for the pipeline's tabular series and trend rasters. Sinks
carry no analysis logic: they receive finished arrays and tables together
with the export parameters (target CRS, resolution, pixel ceiling).
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union
import logging

import numpy as np
import pandas as pd
import rasterio
from rasterio.crs import CRS
from rasterio.warp import Resampling, calculate_default_transform, reproject

from ..config.settings import ExportConfig
from ..core.errors import ResourceExceeded
from ..core.raster import METERS_PER_DEGREE_LAT, GridSpec

logger = logging.getLogger(__name__)


class RasterSink(ABC):
    """Receives georeferenced layers."""

    @abstractmethod
    def write(
        self,
        name: str,
        data: np.ndarray,
        grid: GridSpec,
        nodata: Optional[float] = None
    ) -> Optional[Path]:
        pass


class TableSink(ABC):
    """Receives tabular series."""

    @abstractmethod
    def write_table(self, name: str, table: pd.DataFrame) -> Optional[Path]:
        pass


def target_grid(grid: GridSpec, config: ExportConfig) -> GridSpec:
    """Grid in the export CRS at the export resolution, covering the source bounds."""
    dst_crs = config.crs or grid.crs
    resolution = config.resolution_m
    if CRS.from_user_input(dst_crs).is_geographic:
        resolution = resolution / METERS_PER_DEGREE_LAT

    transform, width, height = calculate_default_transform(
        grid.crs, dst_crs, grid.width, grid.height, *grid.bounds, resolution=resolution
    )
    return GridSpec(crs=dst_crs, transform=transform, shape=(height, width))


class GeoTIFFRasterSink(RasterSink):
    """
    Writes each layer as `<output_dir>/<name>.tif`, reprojected to the
    export CRS and resolution.

    Example:
        >>> sink = GeoTIFFRasterSink(ExportConfig(output_dir="out", crs="EPSG:32643"))
        >>> sink.write("slope", result.slope, result.grid)
        PosixPath('out/slope.tif')
    """

    def __init__(self, config: ExportConfig):
        self.config = config
        self.output_dir = Path(config.output_dir)

    def write(
        self,
        name: str,
        data: np.ndarray,
        grid: GridSpec,
        nodata: Optional[float] = None
    ) -> Path:
        dst = target_grid(grid, self.config)
        if dst.size > self.config.max_pixels:
            raise ResourceExceeded(
                f"export:{name}",
                dst.size,
                self.config.max_pixels,
                params={"crs": dst.crs, "resolution_m": self.config.resolution_m},
            )

        is_float = np.issubdtype(data.dtype, np.floating)
        dtype = "float32" if is_float else str(data.dtype)
        if nodata is None:
            nodata = np.nan if is_float else None

        out = np.full(dst.shape, np.nan if is_float else (nodata or 0), dtype=dtype)
        reproject(
            source=np.asarray(data, dtype=dtype),
            destination=out,
            src_transform=grid.transform,
            src_crs=grid.crs,
            src_nodata=nodata,
            dst_transform=dst.transform,
            dst_crs=dst.crs,
            dst_nodata=nodata,
            resampling=Resampling.bilinear if is_float else Resampling.nearest,
        )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{name}.tif"
        profile = {
            "driver": "GTiff",
            "height": dst.height,
            "width": dst.width,
            "count": 1,
            "dtype": dtype,
            "crs": dst.crs,
            "transform": dst.transform,
            "nodata": nodata,
            "compress": "deflate",
        }
        with rasterio.open(path, "w", **profile) as f:
            f.write(out, 1)
            f.set_band_description(1, name)

        logger.info(f"Wrote {name} ({dst.width}x{dst.height}, {dst.crs}) to {path}")
        return path


class CSVTableSink(TableSink):
    """Writes each table as `<output_dir>/<name>.csv`."""

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    def write_table(self, name: str, table: pd.DataFrame) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{name}.csv"
        table.to_csv(path, index=False)
        logger.info(f"Wrote {name} ({len(table)} rows) to {path}")
        return path


class MemorySink(RasterSink, TableSink):
    """Keeps everything it receives; useful for embedding and tests."""

    def __init__(self):
        self.rasters: Dict[str, np.ndarray] = {}
        self.grids: Dict[str, GridSpec] = {}
        self.tables: Dict[str, pd.DataFrame] = {}

    def write(self, name, data, grid, nodata=None):
        self.rasters[name] = np.array(data, copy=True)
        self.grids[name] = grid
        return None

    def write_table(self, name, table):
        self.tables[name] = table.copy()
        return None
