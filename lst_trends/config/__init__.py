"""Configuration management module."""

from .settings import Config, StudyConfig, RegionConfig, ReductionConfig, ExportConfig

__all__ = ["Config", "StudyConfig", "RegionConfig", "ReductionConfig", "ExportConfig"]
