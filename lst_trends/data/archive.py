"""
Image Archive Access

Read-only collaborators that return raw scenes for a collection, bounding
box and time range. The pipeline only depends on the `ImageArchive`
interface; concrete archives cover in-memory scenes and directories of
GeoTIFFs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
import logging

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.warp import transform_bounds
from tqdm import tqdm

from ..core.errors import ArchiveAccessError
from ..core.raster import GridSpec, RasterImage
from ..core.region import REGION_CRS, BoundingBox

logger = logging.getLogger(__name__)

# GeoTIFF metadata tags describing a scene
TAG_TIME = "ACQUISITION_TIME"
TAG_SENSOR = "SENSOR"
TAG_CLOUD = "CLOUD_COVER"


def footprint(grid: GridSpec) -> BoundingBox:
    """Geographic bounding box of a raster grid."""
    west, south, east, north = grid.bounds
    if grid.crs != REGION_CRS:
        west, south, east, north = transform_bounds(grid.crs, REGION_CRS, west, south, east, north)
    return BoundingBox(west, south, east, north)


def collection_dirname(collection_id: str) -> str:
    """Directory name for a collection id ("LANDSAT/LC08/C02/T1_L2" -> "LANDSAT_LC08_C02_T1_L2")."""
    return collection_id.replace("/", "_")


class ImageArchive(ABC):
    """
    Abstract base class for raw scene archives.

    Example:
        >>> archive = GeoTIFFArchive("data/archive")
        >>> scenes = archive.query(
        ...     "LANDSAT/LC08/C02/T1_L2", region.bbox,
        ...     datetime(2013, 1, 1), datetime(2021, 1, 1)
        ... )
    """

    @abstractmethod
    def query(
        self,
        collection_id: str,
        bbox: BoundingBox,
        start: datetime,
        end: datetime
    ) -> List[RasterImage]:
        """
        Raw scenes of a collection whose footprint intersects `bbox` and whose
        timestamp falls in [start, end).

        Raises:
            ArchiveAccessError: if the archive cannot be read
        """
        pass

    @staticmethod
    def _matches(image: RasterImage, bbox: BoundingBox, start: datetime, end: datetime) -> bool:
        return start <= image.timestamp < end and footprint(image.grid).intersects(bbox)


class InMemoryArchive(ImageArchive):
    """Archive backed by scenes held in memory, keyed by collection id."""

    def __init__(self, collections: Optional[Dict[str, Iterable[RasterImage]]] = None):
        self._collections: Dict[str, List[RasterImage]] = {}
        for collection_id, images in (collections or {}).items():
            self.add(collection_id, images)

    def add(self, collection_id: str, images: Iterable[RasterImage]) -> None:
        self._collections.setdefault(collection_id, []).extend(images)

    def query(
        self,
        collection_id: str,
        bbox: BoundingBox,
        start: datetime,
        end: datetime
    ) -> List[RasterImage]:
        images = self._collections.get(collection_id, [])
        return [image for image in images if self._matches(image, bbox, start, end)]


class GeoTIFFArchive(ImageArchive):
    """
    Archive of GeoTIFF scenes laid out as `<root>/<collection dir>/*.tif`.

    Band names come from the band descriptions; acquisition time, sensor
    and scene cloud cover come from the dataset tags. Nodata samples are
    read as NaN.
    """

    RASTER_EXTS = {".tif", ".tiff"}

    def __init__(self, root: Union[str, Path], progress: bool = False):
        self.root = Path(root)
        self.progress = progress

    def collection_path(self, collection_id: str) -> Path:
        return self.root / collection_dirname(collection_id)

    def query(
        self,
        collection_id: str,
        bbox: BoundingBox,
        start: datetime,
        end: datetime
    ) -> List[RasterImage]:
        if not self.root.is_dir():
            raise ArchiveAccessError(collection_id, "archive root does not exist", str(self.root))

        directory = self.collection_path(collection_id)
        if not directory.is_dir():
            logger.info(f"No scenes stored for {collection_id} under {self.root}")
            return []

        paths = sorted(p for p in directory.iterdir() if p.suffix.lower() in self.RASTER_EXTS)
        images = []
        for path in tqdm(paths, desc=f"Reading {collection_id}", disable=not self.progress):
            image = read_scene(path, collection_id)
            if self._matches(image, bbox, start, end):
                images.append(image)

        logger.info(f"{collection_id}: {len(images)}/{len(paths)} scenes match the query")
        return images


def read_scene(path: Union[str, Path], collection_id: str = "") -> RasterImage:
    """Read one GeoTIFF scene into a RasterImage."""
    path = Path(path)
    try:
        with rasterio.open(path) as src:
            data = src.read().astype(np.float64)
            nodata = src.nodata
            if nodata is not None:
                data[data == nodata] = np.nan

            names = list(src.descriptions) if src.descriptions else []
            if not names or any(name is None for name in names):
                names = [f"B{idx}" for idx in range(1, data.shape[0] + 1)]

            tags = src.tags()
            grid = GridSpec(
                crs=src.crs.to_string() if src.crs else REGION_CRS,
                transform=src.transform,
                shape=(src.height, src.width),
            )
    except RasterioError as e:
        raise ArchiveAccessError(collection_id, str(e), str(path)) from e

    try:
        timestamp = datetime.fromisoformat(tags[TAG_TIME])
        sensor = tags[TAG_SENSOR]
        cloud_cover = float(tags.get(TAG_CLOUD, 0.0))
    except (KeyError, ValueError) as e:
        raise ArchiveAccessError(collection_id, f"bad scene metadata: {e}", str(path)) from e

    return RasterImage(
        bands={name: data[idx] for idx, name in enumerate(names)},
        grid=grid,
        timestamp=timestamp,
        sensor=sensor,
        cloud_cover=cloud_cover,
        image_id=path.stem,
        properties={"path": str(path), "collection_id": collection_id},
    )


def write_scene(image: RasterImage, path: Union[str, Path], nodata: float = np.nan) -> Path:
    """Write a RasterImage as a float GeoTIFF that `read_scene` can load back."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    names = list(image.band_names)

    profile = {
        "driver": "GTiff",
        "height": image.grid.height,
        "width": image.grid.width,
        "count": len(names),
        "dtype": "float64",
        "crs": image.grid.crs,
        "transform": image.grid.transform,
        "nodata": nodata,
    }
    with rasterio.open(path, "w", **profile) as dst:
        for idx, name in enumerate(names, start=1):
            dst.write(np.asarray(image.band(name), dtype=np.float64), idx)
            dst.set_band_description(idx, name)
        dst.update_tags(**{
            TAG_TIME: image.timestamp.isoformat(),
            TAG_SENSOR: image.sensor,
            TAG_CLOUD: str(image.cloud_cover),
        })
    return path
