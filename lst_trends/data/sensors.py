"""
Landsat Sensor Specifications

Band-name resolution tables and Collection-2 Level-2 scale factors for
the Landsat generations that make up the thirty-year archive. Downstream
code only ever sees the canonical band names defined here.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple
import logging

logger = logging.getLogger(__name__)


# Canonical band names after harmonization
OPTICAL_BANDS: Tuple[str, ...] = ("Blue", "Green", "Red", "NIR", "SWIR1", "SWIR2")
LST_BAND = "LST"
CANONICAL_BANDS: Tuple[str, ...] = OPTICAL_BANDS + (LST_BAND,)

# Surface-temperature band names, in lookup order (TIRS, then TM/ETM+)
THERMAL_BANDS: Tuple[str, ...] = ("ST_B10", "ST_B6")

KELVIN_OFFSET = 273.15


# Landsat 4-7 TM/ETM+ surface reflectance bands
TM_OPTICAL = {
    "SR_B1": "Blue",
    "SR_B2": "Green",
    "SR_B3": "Red",
    "SR_B4": "NIR",
    "SR_B5": "SWIR1",
    "SR_B7": "SWIR2",
}

# Landsat 8/9 OLI surface reflectance bands
OLI_OPTICAL = {
    "SR_B2": "Blue",
    "SR_B3": "Green",
    "SR_B4": "Red",
    "SR_B5": "NIR",
    "SR_B6": "SWIR1",
    "SR_B7": "SWIR2",
}


@dataclass(frozen=True)
class SensorSpec:
    """
    Per-sensor conversion parameters.

    Attributes:
        sensor_id: Identifier carried on raw images (e.g. "LANDSAT_8")
        collection_id: Archive collection holding this sensor's scenes
        optical_bands: Raw band name -> canonical band name
        optical_scale / optical_offset: DN -> surface reflectance
        thermal_scale / thermal_offset: DN -> surface temperature in Kelvin
        qa_band: Bit-packed pixel quality band
        cloud_bit / shadow_bit: Bits flagging cloud and cloud shadow
    """
    sensor_id: str
    collection_id: str
    optical_bands: Mapping[str, str]
    optical_scale: float = 0.0000275
    optical_offset: float = -0.2
    thermal_scale: float = 0.00341802
    thermal_offset: float = 149.0
    qa_band: str = "QA_PIXEL"
    cloud_bit: int = 3
    shadow_bit: int = 4
    thermal_bands: Tuple[str, ...] = THERMAL_BANDS

    def __post_init__(self):
        object.__setattr__(self, "optical_bands", MappingProxyType(dict(self.optical_bands)))
        missing = set(OPTICAL_BANDS) - set(self.optical_bands.values())
        if missing:
            raise ValueError(
                f"Sensor {self.sensor_id} does not map canonical band(s): {sorted(missing)}"
            )

    @property
    def qa_mask_bits(self) -> int:
        return (1 << self.cloud_bit) | (1 << self.shadow_bit)


SENSORS: Dict[str, SensorSpec] = {
    "LANDSAT_5": SensorSpec(
        sensor_id="LANDSAT_5",
        collection_id="LANDSAT/LT05/C02/T1_L2",
        optical_bands=TM_OPTICAL,
    ),
    "LANDSAT_7": SensorSpec(
        sensor_id="LANDSAT_7",
        collection_id="LANDSAT/LE07/C02/T1_L2",
        optical_bands=TM_OPTICAL,
    ),
    "LANDSAT_8": SensorSpec(
        sensor_id="LANDSAT_8",
        collection_id="LANDSAT/LC08/C02/T1_L2",
        optical_bands=OLI_OPTICAL,
    ),
    "LANDSAT_9": SensorSpec(
        sensor_id="LANDSAT_9",
        collection_id="LANDSAT/LC09/C02/T1_L2",
        optical_bands=OLI_OPTICAL,
    ),
}


def get_sensor(sensor_id: str) -> SensorSpec:
    """Look up a sensor specification by identifier."""
    try:
        return SENSORS[sensor_id]
    except KeyError:
        raise KeyError(
            f"Unknown sensor '{sensor_id}'. Available: {', '.join(sorted(SENSORS))}"
        ) from None


def list_sensors() -> List[str]:
    return sorted(SENSORS)
