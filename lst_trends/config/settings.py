"""
Configuration Management System

Provides structured configuration for all pipeline components with
YAML/JSON loading support and environment variable overrides.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional, Union
from pathlib import Path
import json
import logging
import os

import yaml

from ..core.errors import ConfigError
from ..core.region import Region

logger = logging.getLogger(__name__)


DEFAULT_SENSORS = ["LANDSAT_5", "LANDSAT_7", "LANDSAT_8", "LANDSAT_9"]


@dataclass
class StudyConfig:
    """Study window and analysis thresholds."""

    # Temporal window (inclusive calendar years)
    start_year: int = 1990
    end_year: int = 2020

    # Season window (inclusive calendar months, may wrap the year end)
    season_start_month: int = 6
    season_end_month: int = 8

    # Scene filtering
    cloud_cover_ceiling: float = 20.0  # percent, scenes must be strictly below
    valid_pixel_ratio: float = 0.7  # fraction of the collection-mean valid count

    # Trend
    significance_threshold: float = 0.02  # degrees C per year

    # Reductions
    sample_resolution_m: float = 30.0

    # Gap-filling: half-width of the climatological window in years
    gapfill_window_years: int = 4

    def __post_init__(self):
        if self.end_year < self.start_year:
            raise ConfigError(
                f"end_year ({self.end_year}) must be >= start_year ({self.start_year})"
            )
        for name in ("season_start_month", "season_end_month"):
            month = getattr(self, name)
            if not 1 <= month <= 12:
                raise ConfigError(f"{name} must be in 1..12, got {month}")
        if not 0.0 <= self.cloud_cover_ceiling <= 100.0:
            raise ConfigError("cloud_cover_ceiling must be between 0 and 100")
        if self.valid_pixel_ratio < 0.0:
            raise ConfigError("valid_pixel_ratio must be >= 0.0")
        if self.significance_threshold < 0.0:
            raise ConfigError("significance_threshold must be >= 0.0")
        if self.sample_resolution_m <= 0.0:
            raise ConfigError("sample_resolution_m must be > 0")
        if self.gapfill_window_years < 0:
            raise ConfigError("gapfill_window_years must be >= 0")

    @property
    def years(self) -> List[int]:
        return list(range(self.start_year, self.end_year + 1))

    @property
    def span_years(self) -> int:
        """Years between first and last study year."""
        return self.end_year - self.start_year


@dataclass
class RegionConfig:
    """Where the study region comes from: explicit bounds or a GeoJSON file."""

    name: str = "region"
    bounds: Optional[List[float]] = None  # [min_lon, min_lat, max_lon, max_lat]
    geojson_path: Optional[str] = None

    def to_region(self) -> Region:
        if self.geojson_path:
            return Region.from_file(self.geojson_path)
        if self.bounds is not None:
            if len(self.bounds) != 4:
                raise ConfigError(f"region.bounds needs 4 values, got {len(self.bounds)}")
            return Region.from_bounds(*self.bounds, name=self.name)
        raise ConfigError("region needs either 'bounds' or 'geojson_path'")


@dataclass
class ReductionConfig:
    """Resource limits for region reductions and per-pixel work."""

    max_pixels: int = 1_000_000_000
    tile_size: int = 512
    max_workers: Optional[int] = None  # None = one per CPU


@dataclass
class ExportConfig:
    """Parameters handed to the export sinks."""

    output_dir: str = "./outputs"
    crs: Optional[str] = None  # None keeps the source grid CRS
    resolution_m: float = 30.0
    max_pixels: int = 10_000_000_000
    write_rasters: bool = True
    write_tables: bool = True


# Sub-config sections of Config, by key
SECTIONS = {
    "study": StudyConfig,
    "region": RegionConfig,
    "reduction": ReductionConfig,
    "export": ExportConfig,
}

# Environment variable -> (section, attribute, parser); section "" is Config itself
ENV_OVERRIDES = {
    "LST_TRENDS_LOG_LEVEL": ("", "log_level", str),
    "LST_TRENDS_LOG_DIR": ("", "log_dir", str),
    "LST_TRENDS_OUTPUT_DIR": ("export", "output_dir", str),
    "LST_TRENDS_MAX_PIXELS": ("reduction", "max_pixels", lambda v: int(float(v))),
    "LST_TRENDS_MAX_WORKERS": ("reduction", "max_workers", int),
}


def _read(path: Union[str, Path], load: Callable) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = load(f) or {}
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


@dataclass
class Config:
    """
    Master configuration for the LST trend pipeline.

    Example:
        >>> config = Config.from_yaml("config.yaml")
        >>> config.study.significance_threshold = 0.03
        >>> config.save("config_modified.json")
    """

    # Project info
    project_name: str = "lst_trends"

    # Sensor streams, in merge order
    sensors: List[str] = field(default_factory=lambda: list(DEFAULT_SENSORS))

    # Sub-configs
    study: StudyConfig = field(default_factory=StudyConfig)
    region: RegionConfig = field(default_factory=RegionConfig)
    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Logging
    log_dir: str = "./logs"
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration as JSON (loadable with `from_file`)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info(f"Configuration saved to {path}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        Build a config from nested dictionaries.

        Raises:
            ConfigError: on unknown keys or invalid study parameters
        """
        data = dict(data)
        sections = {name: data.pop(name, None) or {} for name in SECTIONS}
        try:
            built = {name: SECTIONS[name](**values) for name, values in sections.items()}
            return cls(**built, **data)
        except TypeError as e:
            raise ConfigError(f"Unknown or malformed configuration key: {e}") from e

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "Config":
        return cls.from_dict(_read(path, json.load))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Config":
        return cls.from_dict(_read(path, yaml.safe_load))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """Load from YAML or JSON depending on the file suffix."""
        if Path(path).suffix.lower() in (".yaml", ".yml"):
            return cls.from_yaml(path)
        return cls.from_json(path)

    def update_from_env(self) -> None:
        """Apply LST_TRENDS_* environment overrides."""
        for var, (section, attr, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(var)
            if not raw:
                continue
            target = getattr(self, section) if section else self
            try:
                setattr(target, attr, cast(raw))
            except ValueError as e:
                raise ConfigError(f"Invalid value for {var}: {raw!r}") from e
            logger.debug(f"{var} overrides {section or 'config'}.{attr}")

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        warnings = []

        if self.study.span_years < 10:
            warnings.append(
                f"Study span of {self.study.span_years} years is short for a multi-decadal trend"
            )

        if self.study.sample_resolution_m < 30.0:
            warnings.append("sample_resolution_m below 30 m is finer than the Landsat grid")

        if self.study.valid_pixel_ratio > 1.0:
            warnings.append(
                "valid_pixel_ratio > 1.0 keeps only scenes above the collection mean"
            )

        if not self.sensors:
            warnings.append("No sensors configured; the collection will be empty")

        if self.reduction.tile_size > 4096:
            warnings.append("tile_size > 4096 may hold large per-tile stacks in memory")

        return warnings
