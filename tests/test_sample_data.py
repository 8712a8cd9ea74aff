"""
Tests for the sample data generator, including an end-to-end fit
"""

import os

import numpy as np
import rasterio

from pixelharmonics.core.bands import derive_bands
from pixelharmonics.core.design import build_design
from pixelharmonics.core.reconstruct import reconstruct
from pixelharmonics.core.solver import fit_harmonic
from pixelharmonics.io.scenes import load_series
from pixelharmonics.sample_data import create_sample_data


class TestSampleData:
    def test_files(self, tmp_path):
        out = create_sample_data(str(tmp_path), n_scenes=3, width=8, height=6)

        assert sorted(os.listdir(out)) == [
            "LC08_2019-01-05_sample_sr.tif",
            "LC08_2019-01-21_sample_sr.tif",
            "LC08_2019-02-06_sample_sr.tif",
        ]
        with rasterio.open(os.path.join(out, "LC08_2019-01-05_sample_sr.tif")) as src:
            assert src.count == 4
            assert src.shape == (6, 8)
            assert src.tags()["DATE_ACQUIRED"] == "2019-01-05"
            assert 0 <= float(src.tags()["CLOUD_COVER"]) <= 60

    def test_temp_dir(self):
        out = create_sample_data(n_scenes=1, width=4, height=4)
        assert os.path.isdir(out)

    def test_reproducible(self, tmp_path):
        a = create_sample_data(str(tmp_path / "a"), n_scenes=2, width=4, height=4)
        b = create_sample_data(str(tmp_path / "b"), n_scenes=2, width=4, height=4)
        name = "LC08_2019-01-21_sample_sr.tif"
        with rasterio.open(os.path.join(a, name)) as fa, rasterio.open(os.path.join(b, name)) as fb:
            np.testing.assert_array_equal(fa.read(), fb.read())

    def test_seasonal_fit(self, tmp_path):
        out = create_sample_data(str(tmp_path), n_scenes=23, width=10, height=4)
        series = derive_bands(load_series(out), nir="B5", red="B4")
        design = build_design(1)

        coefs = fit_harmonic(series, design)
        amplitude = coefs.amplitude(1)

        # Seasonal amplitude grows from the left to the right edge
        assert np.nanmean(amplitude[:, -1]) > np.nanmean(amplitude[:, 0]) + 0.1
        assert coefs.valid.mean() > 0.9

        fitted = reconstruct(series, coefs, design)
        residual = fitted.stack("fitted") - fitted.stack("NDVI")
        assert np.nanmean(np.abs(residual)) < 0.05
