"""
Raster Data Model

In-memory representation of georeferenced multi-band scenes and ordered
scene collections. No-data samples are NaN throughout the pipeline.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine, array_bounds

from .errors import LSTTrendError

logger = logging.getLogger(__name__)

# Approximate meters per degree of latitude
METERS_PER_DEGREE_LAT = 111320.0


def season_months(start_month: int, end_month: int) -> List[int]:
    """
    Calendar months of a season window, inclusive.

    Windows that wrap the year end (e.g. 11 -> 2) are supported.
    """
    if start_month <= end_month:
        return list(range(start_month, end_month + 1))
    return list(range(start_month, 13)) + list(range(1, end_month + 1))


@dataclass(frozen=True)
class GridSpec:
    """Spatial reference of a raster: CRS, affine transform and shape."""
    crs: str
    transform: Affine
    shape: Tuple[int, int]  # (height, width)

    def __post_init__(self):
        object.__setattr__(self, "shape", (int(self.shape[0]), int(self.shape[1])))

    def __hash__(self):
        return hash((self.crs, self.transform.to_gdal(), self.shape))

    @property
    def height(self) -> int:
        return self.shape[0]

    @property
    def width(self) -> int:
        return self.shape[1]

    @property
    def size(self) -> int:
        return self.shape[0] * self.shape[1]

    @property
    def is_geographic(self) -> bool:
        return CRS.from_user_input(self.crs).is_geographic

    @property
    def pixel_size(self) -> Tuple[float, float]:
        """Pixel size (x, y) in CRS units."""
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def pixel_size_m(self) -> float:
        """Nominal pixel size in meters (y direction for geographic CRSs)."""
        size_x, size_y = self.pixel_size
        if self.is_geographic:
            return size_y * METERS_PER_DEGREE_LAT
        return size_x

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north) in CRS units."""
        return array_bounds(self.height, self.width, self.transform)

    def coarsen(self, factor: int) -> "GridSpec":
        """Grid with pixels `factor` times larger, covering the same origin."""
        if factor <= 1:
            return self
        return GridSpec(
            crs=self.crs,
            transform=self.transform * Affine.scale(factor),
            shape=(-(-self.height // factor), -(-self.width // factor)),
        )


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    A single scene: named 2-D bands on a shared grid plus acquisition metadata.

    Band arrays are exposed read-only; derive new images with `with_bands`.

    Example:
        >>> image = RasterImage(
        ...     bands={"LST": lst},
        ...     grid=grid,
        ...     timestamp=datetime(2001, 7, 14),
        ...     sensor="LANDSAT_7",
        ... )
        >>> image.band("LST").mean()
    """
    bands: Mapping[str, np.ndarray]
    grid: GridSpec
    timestamp: datetime
    sensor: str
    cloud_cover: float = 0.0
    image_id: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        frozen: Dict[str, np.ndarray] = {}
        for name, values in self.bands.items():
            arr = np.asarray(values)
            if arr.shape != self.grid.shape:
                raise LSTTrendError(
                    f"Band '{name}' of image {self.image_id or self.timestamp} has shape "
                    f"{arr.shape}, grid expects {self.grid.shape}"
                )
            view = arr.view()
            view.flags.writeable = False
            frozen[name] = view
        object.__setattr__(self, "bands", MappingProxyType(frozen))
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        if not self.image_id:
            object.__setattr__(
                self, "image_id", f"{self.sensor}_{self.timestamp:%Y%m%dT%H%M%S}"
            )

    @property
    def band_names(self) -> Tuple[str, ...]:
        return tuple(self.bands)

    @property
    def year(self) -> int:
        return self.timestamp.year

    @property
    def month(self) -> int:
        return self.timestamp.month

    def has_band(self, name: str) -> bool:
        return name in self.bands

    def band(self, name: str) -> np.ndarray:
        try:
            return self.bands[name]
        except KeyError:
            raise KeyError(f"Image {self.image_id} has no band '{name}'") from None

    def with_bands(self, bands: Mapping[str, np.ndarray], **changes) -> "RasterImage":
        """Return a copy carrying a new band mapping (and optional metadata changes)."""
        return replace(self, bands=dict(bands), **changes)


class RasterCollection:
    """
    Immutable, chronologically ordered sequence of RasterImage.

    Images are stably sorted by timestamp on construction, so images with
    identical timestamps keep their relative input order. All members must
    share one GridSpec.

    Example:
        >>> collection = RasterCollection(images)
        >>> summer = collection.filter_months(6, 8).filter_years(1990, 2020)
        >>> len(summer)
    """

    def __init__(self, images: Iterable[RasterImage] = ()):
        ordered = sorted(images, key=lambda image: image.timestamp)
        grids = {image.grid for image in ordered}
        if len(grids) > 1:
            raise LSTTrendError(
                f"Collection members must share one grid, found {len(grids)} distinct grids"
            )
        self._images: Tuple[RasterImage, ...] = tuple(ordered)

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[RasterImage]:
        return iter(self._images)

    def __getitem__(self, idx: int) -> RasterImage:
        return self._images[idx]

    def __bool__(self) -> bool:
        return bool(self._images)

    def __repr__(self) -> str:
        return f"RasterCollection({len(self)} images)"

    @property
    def images(self) -> Tuple[RasterImage, ...]:
        return self._images

    @property
    def grid(self) -> Optional[GridSpec]:
        return self._images[0].grid if self._images else None

    @property
    def band_names(self) -> Tuple[str, ...]:
        """Bands common to every member."""
        if not self._images:
            return ()
        common = set(self._images[0].band_names)
        for image in self._images[1:]:
            common &= set(image.band_names)
        return tuple(name for name in self._images[0].band_names if name in common)

    @property
    def years(self) -> List[int]:
        return sorted({image.year for image in self._images})

    @classmethod
    def merge(cls, collections: Sequence[Iterable[RasterImage]]) -> "RasterCollection":
        """Concatenate collections in order, then stably sort by timestamp."""
        merged: List[RasterImage] = []
        for collection in collections:
            merged.extend(collection)
        return cls(merged)

    def filter(self, predicate: Callable[[RasterImage], bool]) -> "RasterCollection":
        return RasterCollection(image for image in self._images if predicate(image))

    def filter_date(self, start: datetime, end: datetime) -> "RasterCollection":
        """Images with start <= timestamp < end."""
        return self.filter(lambda image: start <= image.timestamp < end)

    def filter_years(self, start_year: int, end_year: int) -> "RasterCollection":
        """Images whose calendar year is in [start_year, end_year]."""
        return self.filter(lambda image: start_year <= image.year <= end_year)

    def filter_months(self, start_month: int, end_month: int) -> "RasterCollection":
        """Images inside a calendar-month window (wraps across the year end)."""
        months = set(season_months(start_month, end_month))
        return self.filter(lambda image: image.month in months)

    def filter_month_of_year(self, year: int, month: int) -> "RasterCollection":
        return self.filter(lambda image: image.year == year and image.month == month)

    def filter_cloud_cover(self, ceiling: float) -> "RasterCollection":
        """Images with scene cloud cover strictly below `ceiling` percent."""
        return self.filter(lambda image: image.cloud_cover < ceiling)
