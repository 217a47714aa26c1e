"""End-to-end tests for the pipeline and the CLI."""

from datetime import datetime

import numpy as np
import pytest

from lst_trends.analysis.trend import SIGNIFICANT
from lst_trends.config.settings import Config, StudyConfig
from lst_trends.data.archive import InMemoryArchive, collection_dirname, write_scene
from lst_trends.data.sensors import SENSORS
from lst_trends.export.sinks import MemorySink
from lst_trends.main import main
from lst_trends.pipeline import LSTTrendPipeline

from conftest import raw_image

CLOUD_QA = 1 << 3


def _scenes(grid):
    """Six raw scenes over 2000-2002, warming 0.5 C per year; one fully clouded."""
    l5 = SENSORS["LANDSAT_5"].collection_id
    l8 = SENSORS["LANDSAT_8"].collection_id
    return {
        l5: [
            raw_image(grid, datetime(2000, 6, 12), sensor="LANDSAT_5", celsius=25.0),
            raw_image(grid, datetime(2000, 7, 14), sensor="LANDSAT_5", celsius=25.0),
        ],
        l8: [
            raw_image(grid, datetime(2001, 7, 3), celsius=25.5),
            raw_image(grid, datetime(2002, 7, 6), celsius=26.0),
            raw_image(grid, datetime(2002, 8, 7), celsius=26.0),
            raw_image(grid, datetime(2002, 8, 23), celsius=40.0,
                      qa=np.full(grid.shape, CLOUD_QA), image_id="clouded"),
        ],
    }


def _config(grid, tmp_path):
    config = Config(
        sensors=["LANDSAT_5", "LANDSAT_8"],
        study=StudyConfig(start_year=2000, end_year=2002),
        log_dir=str(tmp_path / "logs"),
    )
    config.region.name = "test_region"
    config.region.bounds = list(grid.bounds)
    config.reduction.max_pixels = 1_000_000
    config.reduction.max_workers = 2
    config.export.output_dir = str(tmp_path / "out")
    return config


def _run(grid, tmp_path):
    sink = MemorySink()
    pipeline = LSTTrendPipeline(
        _config(grid, tmp_path),
        InMemoryArchive(_scenes(grid)),
        raster_sink=sink,
        table_sink=sink,
    )
    return pipeline.run(), sink


def test_end_to_end(tmp_path, grid):
    result, sink = _run(grid, tmp_path)

    assert result.collection_size == 6
    assert result.quality.discarded == 1
    assert dict(result.quality.counts)["clouded"] == 0

    np.testing.assert_allclose(result.trend.slope, 0.5, atol=1e-9)
    assert result.summary.mean_slope == pytest.approx(0.5)
    assert result.summary.total_change == pytest.approx(1.0)
    assert result.summary.years_used == (2000, 2001, 2002)

    annual = dict(result.series.mean_lst)
    assert all(value is not None for value in annual.values())
    assert annual[2001] < annual[2002]

    assert set(sink.rasters) == {"slope", "total_change", "significance"}
    assert (sink.rasters["significance"] == SIGNIFICANT).all()
    assert set(sink.tables) == {"annual_series", "monthly_series"}
    assert len(sink.tables["monthly_series"]) == 9
    assert "test_region" in result.report


def test_runs_are_deterministic(tmp_path, grid):
    first, first_sink = _run(grid, tmp_path)
    second, second_sink = _run(grid, tmp_path)

    np.testing.assert_array_equal(first.trend.slope, second.trend.slope)
    assert first.series.mean_lst == second.series.mean_lst
    assert first.quality.counts == second.quality.counts
    assert first_sink.tables["annual_series"].equals(second_sink.tables["annual_series"])


def test_empty_archive(tmp_path, grid):
    sink = MemorySink()
    result = LSTTrendPipeline(
        _config(grid, tmp_path), InMemoryArchive(), raster_sink=sink, table_sink=sink
    ).run()

    assert result.trend is None
    assert result.summary.mean_slope is None
    assert all(value is None for _, value in result.series.mean_lst)
    assert sink.rasters == {}
    assert "n/a" in result.report


def test_cli_run(tmp_path, grid):
    archive = tmp_path / "archive"
    for collection_id, scenes in _scenes(grid).items():
        for idx, scene in enumerate(scenes):
            write_scene(scene, archive / collection_dirname(collection_id) / f"scene_{idx}.tif")

    config_path = tmp_path / "study.json"
    _config(grid, tmp_path).save(config_path)
    out = tmp_path / "cli_out"

    code = main(["run", "--config", str(config_path), "--archive", str(archive), "--output", str(out)])

    assert code == 0
    for name in ("slope.tif", "total_change.tif", "significance.tif",
                 "annual_series.csv", "monthly_series.csv"):
        assert (out / name).exists(), name


def test_cli_run_reports_archive_failure(tmp_path, grid):
    config_path = tmp_path / "study.json"
    _config(grid, tmp_path).save(config_path)

    code = main(["run", "--config", str(config_path), "--archive", str(tmp_path / "missing")])

    assert code == 1


def test_cli_info(capsys):
    assert main(["info"]) == 0
    assert "LANDSAT/LC08/C02/T1_L2" in capsys.readouterr().out


def test_cli_rejects_invalid_config(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("study:\n  start_year: 2020\n  end_year: 2000\n")

    assert main(["run", "--config", str(path), "--archive", str(tmp_path)]) == 2
