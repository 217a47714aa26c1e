"""
Collection Building

Queries each sensor stream from the archive, keeps the scenes relevant to
the study (region, years, season, cloud ceiling), harmonizes them and
merges everything into one chronologically ordered collection.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Union
import logging

from shapely.geometry import box

from ..analysis.context import AnalysisContext
from ..core.errors import MissingBandError
from ..core.raster import RasterCollection, RasterImage, season_months
from ..utils.logging import StageLogger
from .archive import ImageArchive, footprint
from .harmonizer import SensorHarmonizer
from .sensors import SensorSpec, get_sensor

logger = logging.getLogger(__name__)


class CollectionBuilder:
    """
    Builds the harmonized, merged scene collection for a study.

    Streams are merged in the order the sensors are given; scenes with
    identical timestamps keep that order. There is no deduplication.

    Example:
        >>> builder = CollectionBuilder(archive, context, ["LANDSAT_5", "LANDSAT_8"])
        >>> collection = builder.build()
        >>> builder.dropped
        ['LT05_..._20010712']
    """

    def __init__(
        self,
        archive: ImageArchive,
        context: AnalysisContext,
        sensors: Sequence[Union[str, SensorSpec]],
        harmonizer: Optional[SensorHarmonizer] = None
    ):
        self.archive = archive
        self.context = context
        self.sensors: List[SensorSpec] = [
            get_sensor(s) if isinstance(s, str) else s for s in sensors
        ]
        self.harmonizer = harmonizer or SensorHarmonizer()
        self.dropped: List[str] = []
        self.stage_log = StageLogger()
        self._last_error: Optional[MissingBandError] = None
        self._months = set(season_months(
            context.study.season_start_month,
            context.study.season_end_month,
        ))

    def _keep(self, image: RasterImage) -> bool:
        study = self.context.study
        if not image.cloud_cover < study.cloud_cover_ceiling:
            return False
        if not study.start_year <= image.year <= study.end_year:
            return False
        if image.month not in self._months:
            return False
        return self.context.region.geometry.intersects(box(*footprint(image.grid).to_tuple()))

    def stream(self, spec: SensorSpec) -> List[RasterImage]:
        """Filtered, harmonized scenes of one sensor, in archive order."""
        study = self.context.study
        raw = self.archive.query(
            spec.collection_id,
            self.context.region.bbox,
            datetime(study.start_year, 1, 1),
            datetime(study.end_year + 1, 1, 1),
        )

        candidates = [image for image in raw if self._keep(image)]
        harmonized = []
        for image in candidates:
            try:
                harmonized.append(self.harmonizer(image, spec))
            except MissingBandError as e:
                logger.warning(f"Dropping scene: {e}")
                self.dropped.append(image.image_id)
                self._last_error = e

        self.stage_log.log_stage(
            f"collection:{spec.sensor_id}",
            images_in=len(raw),
            images_out=len(harmonized),
            filtered_out=len(raw) - len(candidates),
            harmonize_failed=len(candidates) - len(harmonized),
        )
        return harmonized

    def build(self) -> RasterCollection:
        """
        Merge every sensor stream into one collection sorted by timestamp.

        Raises:
            MissingBandError: if scenes were found but none could be harmonized
        """
        self.dropped = []
        self._last_error = None

        streams = [self.stream(spec) for spec in self.sensors]
        collection = RasterCollection.merge(streams)

        if not collection and self._last_error is not None:
            logger.error("No sensor produced a usable scene")
            raise self._last_error

        self.stage_log.log_stage(
            "collection",
            images_out=len(collection),
            sensors=len(self.sensors),
            dropped=len(self.dropped),
        )
        return collection
