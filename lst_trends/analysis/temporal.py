"""
Temporal Aggregation

Monthly and annual region-mean LST series over the study window, with
missing months filled from the same calendar month of neighbouring years.

Missing values are None everywhere and are never coerced to zero:
- a month with no scenes, or no valid region sample, is missing;
- gap-filling replaces a missing month at most once;
- a year is missing only when all of its months are still missing.
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple
import logging

import pandas as pd

from ..core.raster import RasterCollection, RasterImage
from ..data.sensors import LST_BAND
from ..utils.logging import StageLogger
from .context import AnalysisContext
from .reduction import RegionReducer, RunningMean

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyBucket:
    """Region-mean LST for one (year, month)."""
    year: int
    month: int
    value: Optional[float]
    image_count: int = 0
    filled: bool = False

    @property
    def missing(self) -> bool:
        return self.value is None


@dataclass(frozen=True)
class AnnualRecord:
    """Annual region-mean LST and the number of scenes behind it."""
    year: int
    image_count: int
    mean_lst: Optional[float]
    months_present: int = 0


@dataclass
class TemporalSeries:
    """Output of the temporal aggregator."""
    monthly: List[MonthlyBucket] = field(default_factory=list)
    annual: List[AnnualRecord] = field(default_factory=list)

    @property
    def image_counts(self) -> List[Tuple[int, int]]:
        """(year, imageCount) series for diagnostics."""
        return [(record.year, record.image_count) for record in self.annual]

    @property
    def mean_lst(self) -> List[Tuple[int, Optional[float]]]:
        """(year, meanLST) series."""
        return [(record.year, record.mean_lst) for record in self.annual]

    def to_dataframe(self) -> pd.DataFrame:
        """Annual table; missing means are NaN in the frame."""
        return pd.DataFrame(
            {
                "year": [r.year for r in self.annual],
                "image_count": [r.image_count for r in self.annual],
                "mean_lst": [r.mean_lst for r in self.annual],
                "months_present": [r.months_present for r in self.annual],
            }
        ).astype({"mean_lst": "float64"})

    def monthly_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "year": [b.year for b in self.monthly],
                "month": [b.month for b in self.monthly],
                "image_count": [b.image_count for b in self.monthly],
                "mean_lst": [b.value for b in self.monthly],
                "filled": [b.filled for b in self.monthly],
            }
        ).astype({"mean_lst": "float64"})


def gap_fill(buckets: List[MonthlyBucket], window_years: int = 4) -> List[MonthlyBucket]:
    """
    Fill missing buckets from the same calendar month in [year - w, year + w].

    Only values computed from scenes are used as donors, never values that
    were themselves filled. A bucket whose window has no donor stays missing.
    """
    computed: Dict[Tuple[int, int], float] = {
        (b.year, b.month): b.value for b in buckets if b.value is not None
    }

    filled = []
    for bucket in buckets:
        if not bucket.missing:
            filled.append(bucket)
            continue

        donors = [
            computed[(year, bucket.month)]
            for year in range(bucket.year - window_years, bucket.year + window_years + 1)
            if year != bucket.year and (year, bucket.month) in computed
        ]
        if donors:
            filled.append(replace(bucket, value=sum(donors) / len(donors), filled=True))
        else:
            filled.append(bucket)

    return filled


def annual_means(buckets: List[MonthlyBucket]) -> List[AnnualRecord]:
    """Average the (post-fill) months of each year, skipping missing months."""
    by_year: Dict[int, List[MonthlyBucket]] = defaultdict(list)
    for bucket in buckets:
        by_year[bucket.year].append(bucket)

    records = []
    for year in sorted(by_year):
        months = by_year[year]
        present = [b.value for b in months if b.value is not None]
        records.append(AnnualRecord(
            year=year,
            image_count=sum(b.image_count for b in months),
            mean_lst=sum(present) / len(present) if present else None,
            months_present=len(present),
        ))
    return records


class TemporalAggregator:
    """
    Builds monthly and annual region-mean LST series.

    Example:
        >>> aggregator = TemporalAggregator(context)
        >>> series = aggregator.aggregate(filtered)
        >>> series.mean_lst[:2]
        [(1990, 31.4), (1991, None)]
    """

    STAGE = "temporal_aggregation"

    def __init__(self, context: AnalysisContext):
        self.context = context
        self.reducer = RegionReducer(context, stage=self.STAGE)

    def _group(self, collection: RasterCollection) -> Dict[Tuple[int, int], List[RasterImage]]:
        groups: Dict[Tuple[int, int], List[RasterImage]] = defaultdict(list)
        for image in collection:
            groups[(image.year, image.month)].append(image)
        return groups

    def monthly(self, collection: RasterCollection) -> List[MonthlyBucket]:
        """Computed-or-missing bucket for every (year, season month) of the study."""
        groups = self._group(collection)
        buckets = []

        for year in self.context.years:
            for month in self.context.season_months:
                images = groups.get((year, month), [])
                if not images:
                    buckets.append(MonthlyBucket(year, month, None, 0))
                    continue

                composite = RunningMean(images[0].grid.shape)
                for image in images:
                    composite.add(image.band(LST_BAND))
                value = self.reducer.mean(composite.result(), images[0].grid)
                buckets.append(MonthlyBucket(year, month, value, len(images)))

        return buckets

    def aggregate(self, collection: RasterCollection) -> TemporalSeries:
        raw = self.monthly(collection)
        filled = gap_fill(raw, self.context.study.gapfill_window_years)
        annual = annual_means(filled)

        stage_log = StageLogger()
        stage_log.log_stage(
            self.STAGE,
            images_in=len(collection),
            months=len(raw),
            missing_before_fill=sum(b.missing for b in raw),
            missing_after_fill=sum(b.missing for b in filled),
            years_missing=sum(r.mean_lst is None for r in annual),
        )
        stage_log.log_series("annual_mean_lst", [(r.year, r.mean_lst) for r in annual])

        return TemporalSeries(monthly=filled, annual=annual)
