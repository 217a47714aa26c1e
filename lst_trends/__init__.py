"""
LST Trends
Multi-decadal land surface temperature trends from a multi-sensor
Landsat archive.

Modules:
    - core: Raster data model, region, tiling, errors
    - config: Configuration management
    - data: Archive access, sensor harmonization, collection building
    - analysis: Quality filtering, temporal aggregation, trend estimation
    - export: Raster/table sinks and summary report
"""

__version__ = "0.1.0"

from .config.settings import Config
from .pipeline import LSTTrendPipeline, PipelineResult
