"""Shared fixtures: small synthetic grids, regions and scenes."""

from datetime import datetime
from typing import Dict, Optional

import numpy as np
import pytest
from rasterio.transform import from_origin

from lst_trends.analysis.context import AnalysisContext
from lst_trends.config.settings import StudyConfig
from lst_trends.core.raster import METERS_PER_DEGREE_LAT, GridSpec, RasterImage
from lst_trends.core.region import Region
from lst_trends.data.sensors import KELVIN_OFFSET, SENSORS

# One 30 m pixel, in degrees
PIXEL_DEG = 30.0 / METERS_PER_DEGREE_LAT


def make_grid(height: int = 20, width: int = 20, west: float = 77.55, north: float = 12.95) -> GridSpec:
    return GridSpec(
        crs="EPSG:4326",
        transform=from_origin(west, north, PIXEL_DEG, PIXEL_DEG),
        shape=(height, width),
    )


def lst_image(
    grid: GridSpec,
    timestamp: datetime,
    value,
    sensor: str = "LANDSAT_8",
    cloud_cover: float = 5.0,
    image_id: str = "",
) -> RasterImage:
    """Harmonized-looking scene carrying only an LST band (scalar or array)."""
    lst = np.broadcast_to(np.asarray(value, dtype=np.float64), grid.shape).copy()
    return RasterImage(
        bands={"LST": lst},
        grid=grid,
        timestamp=timestamp,
        sensor=sensor,
        cloud_cover=cloud_cover,
        image_id=image_id,
    )


def thermal_dn(celsius: float) -> float:
    """Inverse of the Collection-2 surface temperature scaling."""
    spec = SENSORS["LANDSAT_8"]
    return (celsius + KELVIN_OFFSET - spec.thermal_offset) / spec.thermal_scale


def raw_image(
    grid: GridSpec,
    timestamp: datetime,
    sensor: str = "LANDSAT_8",
    celsius: float = 25.0,
    qa: Optional[np.ndarray] = None,
    cloud_cover: float = 5.0,
    thermal_band: Optional[str] = None,
    drop: tuple = (),
    image_id: str = "",
) -> RasterImage:
    """Raw Collection-2 style scene with SR_*, ST_* and QA_PIXEL bands."""
    spec = SENSORS[sensor]
    bands: Dict[str, np.ndarray] = {}
    for raw in spec.optical_bands:
        bands[raw] = np.full(grid.shape, 10000.0)
    if thermal_band is None:
        thermal_band = "ST_B10" if sensor in ("LANDSAT_8", "LANDSAT_9") else "ST_B6"
    bands[thermal_band] = np.full(grid.shape, thermal_dn(celsius))
    bands["QA_PIXEL"] = np.full(grid.shape, 21824) if qa is None else qa
    for name in drop:
        bands.pop(name, None)
    return RasterImage(
        bands=bands,
        grid=grid,
        timestamp=timestamp,
        sensor=sensor,
        cloud_cover=cloud_cover,
        image_id=image_id,
    )


def make_context(region: Region, **study) -> AnalysisContext:
    params = dict(start_year=2000, end_year=2002, season_start_month=6, season_end_month=8)
    params.update(study)
    max_pixels = params.pop("max_pixels", 1_000_000)
    tile_size = params.pop("tile_size", 512)
    return AnalysisContext(
        region=region,
        study=StudyConfig(**params),
        max_pixels=max_pixels,
        tile_size=tile_size,
        max_workers=2,
    )


@pytest.fixture
def grid() -> GridSpec:
    return make_grid()


@pytest.fixture
def region(grid) -> Region:
    west, south, east, north = grid.bounds
    return Region.from_bounds(west, south, east, north, name="test_region")


@pytest.fixture
def context(region) -> AnalysisContext:
    return make_context(region)
