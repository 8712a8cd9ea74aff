"""
PixelHarmonics - per-pixel harmonic regression for satellite index time series

Fits a trigonometric polynomial to every pixel of a raster time series and
reconstructs the smoothed series from the fitted coefficients.

Quick Start:
    >>> import pixelharmonics as ph
    >>>
    >>> # Load Landsat-8 scenes with at most 20% cloud cover
    >>> scenes = ph.load_series("./scenes", product="landsat8_l2", max_cloud_cover=20)
    >>>
    >>> # NDVI, time and constant bands, then a 3rd order harmonic fit
    >>> series = ph.derive_bands(scenes, nir="B5", red="B4")
    >>> design = ph.build_design(3)
    >>> coefs = ph.fit_harmonic(series, design, workers=4)
    >>> fitted = ph.reconstruct(series, coefs, design)
    >>>
    >>> # Peak NDVI and its day of year
    >>> doy = ph.derive_bands(scenes, nir="B5", red="B4", day_of_year=True, reference_band="B5")
    >>> peak, peak_doy = ph.max_with_companion(doy, "NDVI", "DOY")
"""

from pixelharmonics.core import (
    EPOCH,
    CoefficientImage,
    ConfigurationError,
    DataSourceError,
    DesignSpec,
    FittedSeries,
    Frame,
    NumericInstabilityWarning,
    PixelHarmonicsError,
    Series,
    SolverOptions,
    add_day_of_year,
    add_harmonic_bands,
    add_normalized_difference,
    add_variables,
    build_design,
    build_independents,
    day_of_year,
    derive_bands,
    fit_harmonic,
    fractional_years_since_epoch,
    harmonic_bands,
    max_with_companion,
    normalized_difference,
    reconstruct,
    region_mean_table,
    residuals,
)

# Register xarray accessor (ds.harmonic.fit(), etc.)
import pixelharmonics.core.accessor

__version__ = "0.1.0"

__all__ = [
    "EPOCH",
    "CoefficientImage",
    "ConfigurationError",
    "DataSourceError",
    "DesignSpec",
    "FittedSeries",
    "Frame",
    "NumericInstabilityWarning",
    "PixelHarmonicsError",
    "Series",
    "SolverOptions",
    "__version__",
    "add_day_of_year",
    "add_harmonic_bands",
    "add_normalized_difference",
    "add_variables",
    "build_design",
    "build_independents",
    "create_sample_data",
    "day_of_year",
    "derive_bands",
    "fit_harmonic",
    "fractional_years_since_epoch",
    "get_profile",
    "harmonic_bands",
    "load_series",
    "max_with_companion",
    "normalized_difference",
    "reconstruct",
    "region_mean_table",
    "residuals",
    "write_coefficients",
]


# Lazy imports for rasterio-backed features (avoids heavy import at startup)
def __getattr__(name):
    if name == "load_series":
        from pixelharmonics.io.scenes import load_series

        return load_series
    elif name == "write_coefficients":
        from pixelharmonics.io.export import write_coefficients

        return write_coefficients
    elif name == "create_sample_data":
        from pixelharmonics.sample_data import create_sample_data

        return create_sample_data
    elif name == "get_profile":
        from pixelharmonics.products import get_profile

        return get_profile
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
