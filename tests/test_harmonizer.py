"""Tests for sensor harmonization."""

from datetime import datetime

import numpy as np
import pytest

from lst_trends.core.errors import MissingBandError
from lst_trends.data.harmonizer import SensorHarmonizer, qa_flagged, resolve_thermal_band
from lst_trends.data.sensors import CANONICAL_BANDS, SENSORS, get_sensor

from conftest import raw_image

CLOUD = 1 << 3
SHADOW = 1 << 4
CLEAR = 1 << 6


@pytest.fixture
def harmonizer():
    return SensorHarmonizer()


@pytest.mark.parametrize("sensor", ["LANDSAT_5", "LANDSAT_7", "LANDSAT_8", "LANDSAT_9"])
def test_band_set_is_canonical(harmonizer, grid, sensor):
    image = raw_image(grid, datetime(2001, 7, 1), sensor=sensor)
    out = harmonizer(image)

    assert set(out.band_names) == set(CANONICAL_BANDS)
    assert len(out.band_names) == len(CANONICAL_BANDS)


def test_physical_units(harmonizer, grid):
    image = raw_image(grid, datetime(2001, 7, 1), celsius=26.5)
    out = harmonizer(image)

    np.testing.assert_allclose(out.band("LST"), 26.5)
    # 10000 * 0.0000275 - 0.2
    np.testing.assert_allclose(out.band("NIR"), 0.075)


def test_thermal_band_resolved_by_name_not_sensor(harmonizer, grid):
    # Labelled as an OLI sensor but carrying the TM/ETM+ thermal band
    image = raw_image(grid, datetime(2013, 7, 1), sensor="LANDSAT_8", thermal_band="ST_B6")

    assert resolve_thermal_band(image, get_sensor("LANDSAT_8")) == "ST_B6"
    out = harmonizer(image)
    assert out.properties["thermal_source"] == "ST_B6"
    np.testing.assert_allclose(out.band("LST"), 25.0)


def test_cloud_and_shadow_pixels_are_nodata(harmonizer, grid):
    qa = np.full(grid.shape, CLEAR)
    qa[0, 0] = CLOUD
    qa[1, 1] = SHADOW
    qa[2, 2] = CLOUD | SHADOW
    qa[3, 3] = CLEAR | (1 << 1)  # dilated cloud only, not masked

    out = harmonizer(raw_image(grid, datetime(2001, 7, 1), qa=qa))

    flagged = (qa & (CLOUD | SHADOW)) != 0
    for name in out.band_names:
        band = out.band(name)
        assert np.all(np.isnan(band[flagged])), name
        assert np.all(np.isfinite(band[~flagged])), name


def test_thermal_fill_value_is_nodata(harmonizer, grid):
    image = raw_image(grid, datetime(2001, 7, 1))
    bands = dict(image.bands)
    thermal = bands["ST_B10"].copy()
    thermal[5, 5] = 0
    bands["ST_B10"] = thermal

    out = harmonizer(image.with_bands(bands))

    assert np.isnan(out.band("LST")[5, 5])
    assert np.isfinite(out.band("NIR")[5, 5])


def test_missing_thermal_band_raises(harmonizer, grid):
    image = raw_image(grid, datetime(2001, 7, 1), drop=("ST_B10",))

    with pytest.raises(MissingBandError) as exc:
        harmonizer(image)
    assert "ST_B10" in exc.value.missing
    assert "ST_B6" in exc.value.missing


def test_missing_qa_band_raises(harmonizer, grid):
    image = raw_image(grid, datetime(2001, 7, 1), drop=("QA_PIXEL",))

    with pytest.raises(MissingBandError):
        harmonizer(image, SENSORS["LANDSAT_8"])


def test_harmonized_image_is_read_only(harmonizer, grid):
    out = harmonizer(raw_image(grid, datetime(2001, 7, 1)))

    with pytest.raises(ValueError):
        out.band("LST")[0, 0] = 1.0


def test_qa_flagged_treats_nan_as_flagged():
    qa = np.array([[0.0, 8.0], [np.nan, 64.0]])
    np.testing.assert_array_equal(qa_flagged(qa, CLOUD | SHADOW), [[False, True], [True, False]])
