"""
LST Trend Pipeline

Wires the stages together:

    archive -> CollectionBuilder -> QualityFilter -> TemporalAggregator
                                                  -> TrendEstimator
            -> export sinks / summary report
"""

from dataclasses import dataclass
from typing import List, Optional
import logging

from .analysis.context import AnalysisContext
from .analysis.quality import QualityFilter, QualityReport
from .analysis.temporal import TemporalAggregator, TemporalSeries
from .analysis.trend import MASK_NODATA, TrendEstimator, TrendResult, TrendSummary
from .config.settings import Config
from .core.raster import RasterCollection
from .core.region import Region
from .data.archive import ImageArchive
from .data.collection import CollectionBuilder
from .export.report import format_summary
from .export.sinks import RasterSink, TableSink

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run produces."""
    collection_size: int
    quality: QualityReport
    series: TemporalSeries
    trend: Optional[TrendResult]
    summary: TrendSummary
    report: str


class LSTTrendPipeline:
    """
    End-to-end LST trend run over one region.

    Example:
        >>> config = Config.from_yaml("study.yaml")
        >>> pipeline = LSTTrendPipeline(config, GeoTIFFArchive("archive/"))
        >>> result = pipeline.run()
        >>> print(result.report)
    """

    def __init__(
        self,
        config: Config,
        archive: ImageArchive,
        raster_sink: Optional[RasterSink] = None,
        table_sink: Optional[TableSink] = None,
        region: Optional[Region] = None
    ):
        self.config = config
        self.archive = archive
        self.raster_sink = raster_sink
        self.table_sink = table_sink
        self.context = AnalysisContext.from_config(config, region=region)

        for warning in config.validate():
            logger.warning(f"Config: {warning}")

    def build_collection(self) -> RasterCollection:
        builder = CollectionBuilder(self.archive, self.context, self.config.sensors)
        return builder.build()

    def run(self) -> PipelineResult:
        logger.info(
            f"Starting LST trend run for '{self.context.region.name}' "
            f"{self.context.study.start_year}-{self.context.study.end_year}, "
            f"months {self.context.season_months}"
        )

        collection = self.build_collection()
        filtered, quality = QualityFilter(self.context).apply(collection)

        series = TemporalAggregator(self.context).aggregate(filtered)

        estimator = TrendEstimator(self.context)
        trend = estimator.estimate(filtered)
        summary = estimator.summarize(trend)

        report = format_summary(summary, series.mean_lst, self.context.region.name)
        logger.info("\n" + report)

        self.export(series, trend)

        return PipelineResult(
            collection_size=len(collection),
            quality=quality,
            series=series,
            trend=trend,
            summary=summary,
            report=report,
        )

    def export(self, series: TemporalSeries, trend: Optional[TrendResult]) -> List[str]:
        """Hand the series and trend layers to the configured sinks."""
        written = []

        if self.table_sink is not None and self.config.export.write_tables:
            self.table_sink.write_table("annual_series", series.to_dataframe())
            self.table_sink.write_table("monthly_series", series.monthly_dataframe())
            written += ["annual_series", "monthly_series"]

        if self.raster_sink is not None and self.config.export.write_rasters:
            if trend is None:
                logger.warning("No trend rasters to export")
            else:
                self.raster_sink.write("slope", trend.slope, trend.grid)
                self.raster_sink.write("total_change", trend.total_change, trend.grid)
                self.raster_sink.write(
                    "significance", trend.significance_mask, trend.grid, nodata=MASK_NODATA
                )
                written += ["slope", "total_change", "significance"]

        return written
