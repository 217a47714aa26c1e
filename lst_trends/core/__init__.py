"""Core module for the raster data model and spatial utilities."""

from .errors import (
    LSTTrendError,
    ConfigError,
    InvalidGeometry,
    ArchiveAccessError,
    MissingBandError,
    ResourceExceeded,
)
from .raster import GridSpec, RasterImage, RasterCollection, season_months
from .region import BoundingBox, Region
from .tile_grid import TileGrid, Tile
from .parallel import TileExecutor

__all__ = [
    "LSTTrendError",
    "ConfigError",
    "InvalidGeometry",
    "ArchiveAccessError",
    "MissingBandError",
    "ResourceExceeded",
    "GridSpec",
    "RasterImage",
    "RasterCollection",
    "season_months",
    "BoundingBox",
    "Region",
    "TileGrid",
    "Tile",
    "TileExecutor",
]
