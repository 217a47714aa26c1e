"""
Region of Interest

The fixed geographic polygon over which every area-mean statistic is
computed. Regions are immutable and shared read-only by all stages.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union
import json
import logging

import numpy as np
from rasterio.features import geometry_mask
from rasterio.warp import transform_geom
from shapely.geometry import MultiPolygon, Polygon, box, mapping, shape
from shapely.geometry.base import BaseGeometry

from .errors import InvalidGeometry
from .raster import GridSpec

logger = logging.getLogger(__name__)

REGION_CRS = "EPSG:4326"


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding box in WGS84 coordinates."""
    min_lon: float  # West
    min_lat: float  # South
    max_lon: float  # East
    max_lat: float  # North

    @property
    def width(self) -> float:
        """Width in degrees."""
        return self.max_lon - self.min_lon

    @property
    def height(self) -> float:
        """Height in degrees."""
        return self.max_lat - self.min_lat

    @property
    def center(self) -> Tuple[float, float]:
        """Center point (lon, lat)."""
        return (
            (self.min_lon + self.max_lon) / 2,
            (self.min_lat + self.max_lat) / 2
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (min_lon, min_lat, max_lon, max_lat)."""
        return (self.min_lon, self.min_lat, self.max_lon, self.max_lat)

    def intersects(self, other: "BoundingBox") -> bool:
        """Check if this bbox intersects with another."""
        return not (
            self.max_lon < other.min_lon or
            self.min_lon > other.max_lon or
            self.max_lat < other.min_lat or
            self.min_lat > other.max_lat
        )


@dataclass(frozen=True)
class Region:
    """
    Immutable study-area polygon in geographic coordinates.

    Example:
        >>> region = Region.from_bounds(77.55, 12.90, 77.70, 13.05, name="bangalore")
        >>> mask = region.mask(image.grid)   # True inside the polygon
        >>> region.bbox.to_tuple()
    """
    geometry: BaseGeometry
    name: str = "region"

    def __post_init__(self):
        geom = self.geometry
        if geom is None or geom.is_empty:
            raise InvalidGeometry(f"Region '{self.name}' geometry is empty")
        if not isinstance(geom, (Polygon, MultiPolygon)):
            raise InvalidGeometry(
                f"Region '{self.name}' must be a Polygon or MultiPolygon, got {geom.geom_type}"
            )
        if not geom.is_valid:
            raise InvalidGeometry(f"Region '{self.name}' geometry is not valid")
        if geom.area <= 0:
            raise InvalidGeometry(f"Region '{self.name}' has zero area")

    @classmethod
    def from_bounds(
        cls,
        min_lon: float,
        min_lat: float,
        max_lon: float,
        max_lat: float,
        name: str = "region"
    ) -> "Region":
        if min_lon >= max_lon or min_lat >= max_lat:
            raise InvalidGeometry(
                f"Degenerate bounds ({min_lon}, {min_lat}, {max_lon}, {max_lat})"
            )
        return cls(box(min_lon, min_lat, max_lon, max_lat), name=name)

    @classmethod
    def from_coordinates(
        cls,
        coordinates: Sequence[Sequence[float]],
        name: str = "region"
    ) -> "Region":
        """Build from an exterior ring of (lon, lat) pairs."""
        if len(coordinates) < 3:
            raise InvalidGeometry(f"Region '{name}' needs at least 3 vertices")
        return cls(Polygon([tuple(c) for c in coordinates]), name=name)

    @classmethod
    def from_geojson(cls, data: Dict[str, Any], name: str = "region") -> "Region":
        """Accept a Geometry, Feature or single-feature FeatureCollection."""
        kind = data.get("type")
        if kind == "FeatureCollection":
            features = data.get("features") or []
            if len(features) != 1:
                raise InvalidGeometry(
                    f"Expected exactly one feature in FeatureCollection, got {len(features)}"
                )
            data = features[0]
            kind = data.get("type")
        if kind == "Feature":
            name = (data.get("properties") or {}).get("name", name)
            data = data.get("geometry") or {}
        try:
            geom = shape(data)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            raise InvalidGeometry(f"Could not parse region geometry: {e}") from e
        return cls(geom, name=name)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Region":
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise InvalidGeometry(f"Could not read region file {path}: {e}") from e
        return cls.from_geojson(data, name=path.stem)

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox(*self.geometry.bounds)

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "properties": {"name": self.name},
            "geometry": mapping(self.geometry),
        }

    def mask(self, grid: GridSpec) -> np.ndarray:
        """Boolean (H, W) array, True where the pixel center lies inside the region."""
        return _rasterize(self, grid)


@lru_cache(maxsize=32)
def _rasterize(region: Region, grid: GridSpec) -> np.ndarray:
    geom = mapping(region.geometry)
    if grid.crs != REGION_CRS:
        geom = transform_geom(REGION_CRS, grid.crs, geom)
    inside = geometry_mask(
        [geom],
        out_shape=grid.shape,
        transform=grid.transform,
        invert=True
    )
    inside.flags.writeable = False
    logger.debug(f"Rasterized region '{region.name}' on {grid.shape}: {int(inside.sum())} pixels")
    return inside
