"""
Sensor Harmonization

Converts raw Collection-2 Level-2 digital numbers into surface reflectance
and land surface temperature in degrees Celsius, masks cloud and cloud
shadow from the QA band, and renames bands to the canonical set.
"""

from typing import Dict, List, Optional
import logging

import numpy as np

from ..core.errors import MissingBandError
from ..core.raster import RasterImage
from .sensors import LST_BAND, KELVIN_OFFSET, SensorSpec, get_sensor

logger = logging.getLogger(__name__)


def qa_flagged(qa: np.ndarray, bits: int) -> np.ndarray:
    """True where any of `bits` is set. Non-finite QA samples count as flagged."""
    qa = np.asarray(qa)
    if np.issubdtype(qa.dtype, np.integer):
        return (qa.astype(np.int64) & bits) != 0
    finite = np.isfinite(qa)
    packed = np.where(finite, qa, 0).astype(np.int64)
    return ((packed & bits) != 0) | ~finite


def resolve_thermal_band(image: RasterImage, spec: SensorSpec) -> str:
    """
    Pick the surface-temperature band actually present on the image.

    TM/ETM+ scenes carry ST_B6 and OLI/TIRS scenes carry ST_B10, and
    archives do not always label scenes with the sensor that matches their
    band layout, so the lookup goes by band name.
    """
    for name in spec.thermal_bands:
        if image.has_band(name):
            return name
    raise MissingBandError(image.image_id, image.sensor, spec.thermal_bands)


class SensorHarmonizer:
    """
    Turns raw scenes into harmonized scenes with the canonical band set.

    Example:
        >>> harmonizer = SensorHarmonizer()
        >>> clean = harmonizer(raw_image)                  # spec from raw_image.sensor
        >>> clean = harmonizer(raw_image, SENSORS["LANDSAT_8"])
        >>> sorted(clean.band_names)
        ['Blue', 'Green', 'LST', 'NIR', 'Red', 'SWIR1', 'SWIR2']
    """

    def __call__(self, image: RasterImage, spec: Optional[SensorSpec] = None) -> RasterImage:
        return self.harmonize(image, spec)

    def harmonize(self, image: RasterImage, spec: Optional[SensorSpec] = None) -> RasterImage:
        spec = spec or get_sensor(image.sensor)

        thermal_name = resolve_thermal_band(image, spec)

        missing: List[str] = [
            raw for raw in spec.optical_bands if not image.has_band(raw)
        ]
        if not image.has_band(spec.qa_band):
            missing.append(spec.qa_band)
        if missing:
            raise MissingBandError(image.image_id, image.sensor, missing)

        flagged = qa_flagged(image.band(spec.qa_band), spec.qa_mask_bits)

        bands: Dict[str, np.ndarray] = {}
        for raw, canonical in spec.optical_bands.items():
            dn = image.band(raw).astype(np.float64)
            reflectance = dn * spec.optical_scale + spec.optical_offset
            reflectance[flagged] = np.nan
            bands[canonical] = reflectance

        dn = image.band(thermal_name).astype(np.float64)
        with np.errstate(invalid="ignore"):
            fill = ~(dn > 0)  # Collection-2 fill value is 0; NaN also fails
        lst = dn * spec.thermal_scale + spec.thermal_offset - KELVIN_OFFSET
        lst[flagged | fill] = np.nan
        bands[LST_BAND] = lst

        logger.debug(
            f"Harmonized {image.image_id}: thermal={thermal_name}, "
            f"masked {int(flagged.sum())}/{flagged.size} pixels by QA"
        )

        properties = dict(image.properties)
        properties["thermal_source"] = thermal_name
        return image.with_bands(bands, properties=properties)
