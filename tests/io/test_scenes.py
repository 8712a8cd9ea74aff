"""
Tests for GeoTIFF scene loading
"""

from datetime import UTC, datetime

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_bounds
from rasterio.windows import Window

from pixelharmonics.core.exceptions import DataSourceError
from pixelharmonics.io.scenes import load_frame, load_series, parse_date_from_filename


def _write_scene(path, dn, tags=None):
    """Write a 4-band uint16 scene with nodata 0"""
    count, height, width = dn.shape
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=count,
        dtype=np.uint16,
        crs="EPSG:32610",
        transform=from_bounds(0, 0, 30 * width, 30 * height, width, height),
        nodata=0,
    ) as dst:
        dst.write(dn)
        if tags:
            dst.update_tags(**tags)
    return str(path)


@pytest.fixture
def dn():
    data = np.full((4, 3, 5), 10000, dtype=np.uint16)
    data[2, 0, 0] = 0  # nodata red pixel
    return data


class TestParseDate:
    @pytest.mark.parametrize(
        "filename",
        ["LC08_2019-06-01_sr.tif", "LC08_L2SP_044034_20190601_02_T1.tif", "scene_2019_06_01.tif"],
    )
    def test_patterns(self, filename):
        assert parse_date_from_filename(filename) == datetime(2019, 6, 1, tzinfo=UTC)

    def test_custom_pattern(self):
        date = parse_date_from_filename("A2019.06.01_x.tif", r"A(\d{4}\.\d{2}\.\d{2})")
        assert date is None
        date = parse_date_from_filename("img-2019-06-01-x.tif", r"img-(\d{4}-\d{2}-\d{2})")
        assert date == datetime(2019, 6, 1, tzinfo=UTC)

    def test_no_date(self):
        assert parse_date_from_filename("scene.tif") is None


class TestLoadFrame:
    def test_scaling_and_nodata(self, tmp_path, dn):
        path = _write_scene(tmp_path / "scene.tif", dn, {"DATE_ACQUIRED": "2019-06-01"})
        frame = load_frame(path)

        assert frame.band_names == ["B2", "B3", "B4", "B5"]
        assert frame.shape == (3, 5)
        assert frame.band("B5")[1, 1] == pytest.approx(10000 * 0.0000275 - 0.2)
        assert np.isnan(frame.band("B4")[0, 0])
        assert np.isfinite(frame.band("B5")[0, 0])

    def test_date_and_cloud_cover_from_tags(self, tmp_path, dn):
        path = _write_scene(
            tmp_path / "LC08_2020-01-01.tif",
            dn,
            {"DATE_ACQUIRED": "2019-06-01", "CLOUD_COVER": "12.5"},
        )
        frame = load_frame(path)

        assert frame.timestamp == datetime(2019, 6, 1, tzinfo=UTC)
        assert frame.properties["CLOUD_COVER"] == 12.5
        assert frame.properties["path"] == path

    def test_date_from_filename(self, tmp_path, dn):
        frame = load_frame(_write_scene(tmp_path / "LC08_20190715.tif", dn))

        assert frame.date == "2019-07-15"
        assert "CLOUD_COVER" not in frame.properties

    def test_no_date(self, tmp_path, dn):
        with pytest.raises(DataSourceError, match="No acquisition date"):
            load_frame(_write_scene(tmp_path / "scene.tif", dn))

    def test_too_few_bands(self, tmp_path, dn):
        path = _write_scene(tmp_path / "LC08_20190715.tif", dn[:2])
        with pytest.raises(DataSourceError, match="2 bands"):
            load_frame(path)

    def test_unreadable(self, tmp_path):
        path = tmp_path / "LC08_20190715.tif"
        path.write_text("not a tiff")
        with pytest.raises(DataSourceError):
            load_frame(path)

    def test_window(self, tmp_path, dn):
        path = _write_scene(tmp_path / "LC08_20190715.tif", dn)
        frame = load_frame(path, window=Window(1, 0, 2, 2))
        assert frame.shape == (2, 2)


class TestLoadSeries:
    def test_sorted_series(self, scene_dir):
        series = load_series(scene_dir)

        assert len(series) == 8
        assert series.timestamps == sorted(series.timestamps)
        assert series.shape == (10, 12)

    def test_date_filter(self, scene_dir):
        series = load_series(scene_dir, start=datetime(2019, 2, 1), end=datetime(2019, 3, 31))
        assert all(datetime(2019, 2, 1, tzinfo=UTC) <= ts for ts in series.timestamps)
        assert [f.date for f in series] == ["2019-02-06", "2019-02-22", "2019-03-10", "2019-03-26"]

    def test_cloud_filter(self, scene_dir):
        everything = load_series(scene_dir)
        limit = sorted(f.properties["CLOUD_COVER"] for f in everything)[3]

        clear = load_series(scene_dir, max_cloud_cover=limit)
        assert len(clear) == sum(f.properties["CLOUD_COVER"] <= limit for f in everything)
        assert len(clear) >= 4
        assert all(f.properties["CLOUD_COVER"] <= limit for f in clear)

    def test_window(self, scene_dir):
        series = load_series(scene_dir, window=Window(2, 1, 4, 3))
        assert series.shape == (3, 4)

    def test_no_match(self, scene_dir):
        with pytest.raises(DataSourceError, match="No scenes matched"):
            load_series(scene_dir, max_cloud_cover=-1)

    def test_missing_source(self, tmp_path):
        with pytest.raises(DataSourceError, match="not found"):
            load_series(tmp_path / "missing")

    def test_file_list(self, scene_dir):
        from pathlib import Path

        paths = sorted(Path(scene_dir).glob("*.tif"))[:2]
        assert len(load_series(paths)) == 2
