"""
PixelHarmonics Core Module

Frames and series, band derivation, the harmonic design, the per-pixel
solver, reconstruction, temporal extrema and exceptions.
"""

from pixelharmonics.core.bands import (
    EPOCH,
    add_day_of_year,
    add_harmonic_bands,
    add_normalized_difference,
    add_variables,
    day_of_year,
    derive_bands,
    fractional_years_since_epoch,
    harmonic_bands,
    normalized_difference,
)
from pixelharmonics.core.chart import region_mean_table
from pixelharmonics.core.design import DesignSpec, build_design, build_independents
from pixelharmonics.core.exceptions import (
    ConfigurationError,
    DataSourceError,
    NumericInstabilityWarning,
    PixelHarmonicsError,
)
from pixelharmonics.core.extrema import max_with_companion
from pixelharmonics.core.frame import FittedSeries, Frame, Series
from pixelharmonics.core.reconstruct import reconstruct, residuals
from pixelharmonics.core.solver import CoefficientImage, SolverOptions, fit_harmonic

__all__ = [
    # Data model
    "Frame",
    "Series",
    "FittedSeries",
    "DesignSpec",
    "CoefficientImage",
    "SolverOptions",
    # Band derivation
    "EPOCH",
    "normalized_difference",
    "day_of_year",
    "fractional_years_since_epoch",
    "harmonic_bands",
    "add_normalized_difference",
    "add_day_of_year",
    "add_variables",
    "add_harmonic_bands",
    "derive_bands",
    # Regression
    "build_independents",
    "build_design",
    "fit_harmonic",
    "reconstruct",
    "residuals",
    "max_with_companion",
    "region_mean_table",
    # Exceptions
    "PixelHarmonicsError",
    "ConfigurationError",
    "DataSourceError",
    "NumericInstabilityWarning",
]
