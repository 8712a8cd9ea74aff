"""
Tests for GeoTIFF export
"""

from pathlib import Path

import numpy as np
import pytest
import rasterio
from rasterio.windows import Window

from pixelharmonics.core.bands import derive_bands
from pixelharmonics.core.design import build_design
from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.solver import fit_harmonic
from pixelharmonics.io.export import write_coefficients, write_image
from pixelharmonics.io.scenes import load_series


@pytest.fixture
def like(scene_dir):
    return str(sorted(Path(scene_dir).glob("*.tif"))[0])


class TestWriteImage:
    def test_layers_and_georeference(self, tmp_path, like):
        peak = np.linspace(0, 1, 120).reshape(10, 12)
        doy = np.full((10, 12), 186.0)
        doy[0, 0] = np.nan

        out = write_image({"NDVI_max": peak, "DOY": doy}, tmp_path / "peak.tif", like=like)

        with rasterio.open(out) as dst, rasterio.open(like) as src:
            assert dst.count == 2
            assert dst.descriptions == ("NDVI_max", "DOY")
            assert dst.dtypes[0] == "float32"
            assert dst.crs == src.crs
            assert dst.transform == src.transform
            np.testing.assert_allclose(dst.read(1), peak.astype(np.float32))
            assert np.isnan(dst.read(2)[0, 0])

    def test_window_transform(self, tmp_path, like):
        window = Window(2, 1, 4, 3)
        out = write_image({"a": np.zeros((3, 4))}, tmp_path / "a.tif", like=like, window=window)

        with rasterio.open(out) as dst, rasterio.open(like) as src:
            assert dst.transform == src.window_transform(window)

    def test_without_like(self, tmp_path):
        out = write_image({"a": np.ones((2, 3))}, tmp_path / "nested" / "a.tif")
        with rasterio.open(out) as dst:
            assert dst.shape == (2, 3)
            assert dst.crs is None

    def test_rejects_bad_layers(self, tmp_path):
        with pytest.raises(ConfigurationError):
            write_image({}, tmp_path / "a.tif")
        with pytest.raises(ConfigurationError, match="2-D shape"):
            write_image({"a": np.ones((2, 2)), "b": np.ones((3, 2))}, tmp_path / "a.tif")


class TestWriteCoefficients:
    def test_bands(self, tmp_path, scene_dir, like):
        series = derive_bands(load_series(scene_dir), nir="B5", red="B4")
        coefs = fit_harmonic(series, build_design(1))

        out = write_coefficients(coefs, tmp_path / "coefs.tif", like=like)

        with rasterio.open(out) as dst:
            assert dst.count == 7
            assert dst.descriptions == (
                "constant", "t", "cos1", "sin1", "n_observations", "rmse", "r_squared"
            )
            np.testing.assert_allclose(
                dst.read(3), coefs.band("cos1").astype(np.float32), equal_nan=True
            )

    def test_without_diagnostics(self, tmp_path, scene_dir):
        series = derive_bands(load_series(scene_dir), nir="B5", red="B4")
        coefs = fit_harmonic(series, build_design(1))

        out = write_coefficients(coefs, tmp_path / "coefs.tif", diagnostics=False)
        with rasterio.open(out) as dst:
            assert dst.count == 4
