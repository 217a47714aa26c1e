"""
Analysis Context

Read-only bundle of the region and study parameters shared by every
component that performs a reduction.
"""

from dataclasses import dataclass, replace
from typing import List, Optional

from ..core.raster import season_months
from ..core.region import Region
from ..config.settings import Config, StudyConfig


@dataclass(frozen=True)
class AnalysisContext:
    """
    Shared, immutable inputs for one pipeline run.

    Example:
        >>> context = AnalysisContext.from_config(config)
        >>> context.season_months
        [6, 7, 8]
    """
    region: Region
    study: StudyConfig
    max_pixels: int = 1_000_000_000
    tile_size: int = 512
    max_workers: Optional[int] = None

    def __post_init__(self):
        # Own copy; the caller may keep editing its Config
        object.__setattr__(self, "study", replace(self.study))

    @classmethod
    def from_config(cls, config: Config, region: Optional[Region] = None) -> "AnalysisContext":
        return cls(
            region=region or config.region.to_region(),
            study=config.study,
            max_pixels=config.reduction.max_pixels,
            tile_size=config.reduction.tile_size,
            max_workers=config.reduction.max_workers,
        )

    @property
    def years(self) -> List[int]:
        return self.study.years

    @property
    def season_months(self) -> List[int]:
        return season_months(self.study.season_start_month, self.study.season_end_month)

    @property
    def span_years(self) -> int:
        return self.study.span_years
