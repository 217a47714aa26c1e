"""
Error Taxonomy

Structural failures (bad geometry, unreadable archive, budget exceeded,
unresolvable band) abort the run. Data-sufficiency conditions (missing
month, missing year, under-sampled pixel) are never raised: they travel
as None / NaN values.
"""

from typing import Any, Dict, Iterable, Optional


class LSTTrendError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(LSTTrendError, ValueError):
    """Invalid study or pipeline parameters."""


class InvalidGeometry(LSTTrendError):
    """Region geometry is empty, invalid or not polygonal."""


class ArchiveAccessError(LSTTrendError):
    """The image archive could not be queried or read."""

    def __init__(self, collection_id: str, reason: str, path: Optional[str] = None):
        self.collection_id = collection_id
        self.reason = reason
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"Archive access failed for '{collection_id}'{where}: {reason}")


class MissingBandError(LSTTrendError):
    """
    Harmonization could not locate a required band.

    Raised per image. The collection builder drops the image and only
    re-raises when no sensor produced a usable image.
    """

    def __init__(self, image_id: str, sensor: str, missing: Iterable[str]):
        self.image_id = image_id
        self.sensor = sensor
        self.missing = tuple(missing)
        super().__init__(
            f"Image {image_id} ({sensor}) has none of the required band(s): "
            f"{', '.join(self.missing)}"
        )


class ResourceExceeded(LSTTrendError):
    """A region-wide reduction or export went over its pixel budget."""

    def __init__(
        self,
        stage: str,
        pixels: int,
        max_pixels: int,
        params: Optional[Dict[str, Any]] = None
    ):
        self.stage = stage
        self.pixels = pixels
        self.max_pixels = max_pixels
        self.params = dict(params or {})
        detail = ", ".join(f"{k}={v}" for k, v in sorted(self.params.items()))
        super().__init__(
            f"[{stage}] {pixels:,} pixels exceeds budget of {max_pixels:,}"
            + (f" ({detail})" if detail else "")
        )
