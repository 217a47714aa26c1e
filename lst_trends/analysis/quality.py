"""
Scene Quality Filtering

Discards scenes whose valid LST coverage over the region falls far below
the collection average. The threshold depends on every scene in the
collection, so the filter makes one counting pass over all scenes before
it can decide on any of them.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging

from tqdm import tqdm

from ..core.raster import RasterCollection
from ..data.sensors import LST_BAND
from ..utils.logging import StageLogger
from .context import AnalysisContext
from .reduction import RegionReducer

logger = logging.getLogger(__name__)


@dataclass
class QualityReport:
    """Per-scene valid counts and the threshold derived from them."""
    counts: List[Tuple[str, int]] = field(default_factory=list)  # (image_id, valid samples)
    mean_count: float = 0.0
    ratio: float = 0.7
    retained: int = 0

    @property
    def threshold(self) -> float:
        return self.ratio * self.mean_count

    @property
    def discarded(self) -> int:
        return len(self.counts) - self.retained


class QualityFilter:
    """
    Keep scenes whose valid-sample count is >= ratio x collection mean.

    Deterministic for a fixed input, and raising `ratio` can only shrink
    the retained set.

    Example:
        >>> qfilter = QualityFilter(context)
        >>> filtered, report = qfilter.apply(collection)
        >>> report.discarded
        12
    """

    STAGE = "quality_filter"

    def __init__(self, context: AnalysisContext, ratio: Optional[float] = None):
        self.context = context
        self.ratio = context.study.valid_pixel_ratio if ratio is None else ratio
        self.reducer = RegionReducer(context, stage=self.STAGE)

    def count_valid(self, collection: RasterCollection) -> List[int]:
        """First pass: non-masked LST samples in the region, per scene."""
        return [
            self.reducer.count(image.band(LST_BAND), image.grid)
            for image in tqdm(collection, desc="Counting valid pixels", disable=len(collection) < 50)
        ]

    def apply(self, collection: RasterCollection) -> Tuple[RasterCollection, QualityReport]:
        counts = self.count_valid(collection)
        report = QualityReport(
            counts=[(image.image_id, count) for image, count in zip(collection, counts)],
            ratio=self.ratio,
        )

        if not counts:
            logger.warning("Quality filter received an empty collection")
            return collection, report

        report.mean_count = sum(counts) / len(counts)
        threshold = report.threshold

        # Second pass: decide with the collection-wide threshold
        kept = [image for image, count in zip(collection, counts) if count >= threshold]
        report.retained = len(kept)

        for image, count in zip(collection, counts):
            if count < threshold:
                logger.debug(f"Filtered out {image.image_id}: {count} < {threshold:.1f} valid samples")

        StageLogger().log_stage(
            self.STAGE,
            images_in=len(collection),
            images_out=len(kept),
            mean_count=report.mean_count,
            threshold=threshold,
        )
        return RasterCollection(kept), report

    def __call__(self, collection: RasterCollection) -> RasterCollection:
        filtered, _ = self.apply(collection)
        return filtered
