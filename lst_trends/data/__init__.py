"""Data module: archives, sensor harmonization and collection building."""

from .sensors import SensorSpec, SENSORS, CANONICAL_BANDS, LST_BAND, get_sensor
from .harmonizer import SensorHarmonizer
from .archive import ImageArchive, InMemoryArchive, GeoTIFFArchive
from .collection import CollectionBuilder

__all__ = [
    "SensorSpec",
    "SENSORS",
    "CANONICAL_BANDS",
    "LST_BAND",
    "get_sensor",
    "SensorHarmonizer",
    "ImageArchive",
    "InMemoryArchive",
    "GeoTIFFArchive",
    "CollectionBuilder",
]
