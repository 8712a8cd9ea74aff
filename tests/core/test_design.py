"""
Tests for the harmonic design builder
"""

import numpy as np
import pytest

from pixelharmonics.core.bands import derive_bands
from pixelharmonics.core.design import (
    DesignSpec,
    add_harmonic_terms,
    build_design,
    build_independents,
    check_bands,
    design_arrays,
)
from pixelharmonics.core.exceptions import ConfigurationError


class TestBuildDesign:
    def test_independents(self):
        assert build_independents(1) == ["constant", "t", "cos1", "sin1"]
        assert build_independents(3)[-2:] == ["cos3", "sin3"]

    def test_n_params(self):
        for order in (1, 2, 3, 5):
            assert build_design(order).n_params == 2 + 2 * order

    def test_invalid_order(self):
        with pytest.raises(ConfigurationError):
            build_design(0)

    def test_dependent_cannot_be_independent(self):
        with pytest.raises(ConfigurationError):
            build_design(2, dependent="cos1")

    def test_to_dict_from_dict(self):
        design = build_design(3, dependent="EVI")
        assert DesignSpec.from_dict(design.to_dict()) == design

    def test_frozen(self):
        design = build_design(2)
        with pytest.raises(AttributeError):
            design.order = 3


class TestHarmonicTerms:
    def test_add_terms(self, make_series):
        series, _ = make_series(order=1)
        design = build_design(2)

        out = add_harmonic_terms(derive_bands(series), design)
        assert all(name in out.band_names for name in design.band_names)

    def test_idempotent(self, make_series):
        series, _ = make_series(order=1)
        design = build_design(2)

        once = add_harmonic_terms(derive_bands(series), design)
        twice = add_harmonic_terms(once, design)

        assert twice.band_names == once.band_names
        for name in design.independents:
            np.testing.assert_array_equal(twice.stack(name), once.stack(name))

    def test_check_bands(self, make_series):
        series, _ = make_series(order=1)
        with pytest.raises(ConfigurationError, match="missing"):
            check_bands(series, ["NDVI", "t"])

    def test_check_bands_empty(self):
        from pixelharmonics.core.frame import Series

        with pytest.raises(ConfigurationError, match="empty"):
            check_bands(Series(), ["NDVI"])

    def test_design_arrays(self, make_series):
        series, _ = make_series(order=1, shape=(2, 3), n_frames=10)
        design = build_design(1)

        X, y = design_arrays(add_harmonic_terms(derive_bands(series), design), design)

        assert X.shape == (10, 2, 3, 4)
        assert y.shape == (10, 2, 3)
        assert np.all(X[..., 0] == 1.0)
