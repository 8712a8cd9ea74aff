"""Tests for the harmonic xarray accessor."""

import numpy as np
import pytest
import xarray as xr

import pixelharmonics.core.accessor  # noqa: F401
from pixelharmonics.core.bands import derive_bands
from pixelharmonics.core.design import build_design
from pixelharmonics.core.solver import fit_harmonic


@pytest.fixture
def reflectance_ds(reflectance_series):
    """Dataset with one (time, y, x) variable per band and x/y coordinates"""
    ds = reflectance_series.to_xarray()
    return ds.assign_coords(x=np.arange(4) * 30.0, y=np.arange(4) * -30.0)


@pytest.fixture
def ndvi_ds(make_series):
    series, beta = make_series(order=1)
    return series.to_xarray(), beta


class TestHarmonicAccessor:
    def test_accessor_exists(self, reflectance_ds):
        assert hasattr(reflectance_ds, "harmonic")

    def test_series(self, reflectance_ds, reflectance_series):
        series = reflectance_ds.harmonic.series
        assert series.timestamps == reflectance_series.timestamps
        np.testing.assert_array_equal(series.stack("B4"), reflectance_series.stack("B4"))

    def test_fit_existing_dependent(self, ndvi_ds):
        ds, beta = ndvi_ds
        coefs = ds.harmonic.fit(order=1)

        assert isinstance(coefs, xr.Dataset)
        assert coefs["coefficients"].dims == ("y", "x", "coefficient")
        np.testing.assert_allclose(coefs["coefficients"].values, beta, atol=1e-6)

    def test_fit_from_reflectance(self, reflectance_ds, reflectance_series):
        # 4 frames fit order 1 exactly where all are valid
        coefs = reflectance_ds.harmonic.fit(order=1, nir="B5", red="B4")
        expected = fit_harmonic(
            derive_bands(reflectance_series, nir="B5", red="B4"), build_design(1)
        )

        np.testing.assert_allclose(
            coefs["coefficients"].values, expected.coefficients, equal_nan=True
        )
        np.testing.assert_array_equal(coefs["x"].values, reflectance_ds["x"].values)

    def test_fitted(self, ndvi_ds):
        ds, _ = ndvi_ds
        out = ds.harmonic.fitted(order=1)

        assert set(out.data_vars) == {"NDVI", "fitted"}
        np.testing.assert_allclose(out["fitted"].values, out["NDVI"].values, atol=1e-9)

    def test_reconstruct_from_fit_output(self, ndvi_ds):
        ds, _ = ndvi_ds
        coefs = ds.harmonic.fit(order=1)
        out = ds.harmonic.reconstruct(coefs, build_design(1))

        assert out["fitted"].dims == ("time", "y", "x")
        np.testing.assert_allclose(out["fitted"].values, ds["NDVI"].values, atol=1e-9)

    def test_reconstruct_with_existing_time_band(self, make_series):
        series, _ = make_series(order=1)
        derived = derive_bands(series)
        design = build_design(1)
        coefs = fit_harmonic(derived, design)

        out = derived.to_xarray().harmonic.reconstruct(coefs, design, name="smooth")
        assert set(out.data_vars) == {"NDVI", "smooth"}

    def test_max_with_companion(self, reflectance_ds):
        ds = reflectance_ds.assign(score=reflectance_ds["B5"] * 2)
        out = ds.harmonic.max_with_companion("B5", "score")

        assert set(out.data_vars) == {"max", "companion"}
        np.testing.assert_allclose(out["companion"].values, out["max"].values * 2)

    def test_repr(self, reflectance_ds):
        assert "2 bands" in repr(reflectance_ds.harmonic)
