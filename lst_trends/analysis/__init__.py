"""Analysis module: reductions, quality filtering, temporal aggregation, trends."""

from .context import AnalysisContext
from .reduction import RegionReducer, RunningMean
from .quality import QualityFilter, QualityReport
from .temporal import TemporalAggregator, TemporalSeries, MonthlyBucket, AnnualRecord
from .trend import TrendEstimator, TrendResult, TrendSummary

__all__ = [
    "AnalysisContext",
    "RegionReducer",
    "RunningMean",
    "QualityFilter",
    "QualityReport",
    "TemporalAggregator",
    "TemporalSeries",
    "MonthlyBucket",
    "AnnualRecord",
    "TrendEstimator",
    "TrendResult",
    "TrendSummary",
]
