"""
Fitted series reconstruction

Applies a CoefficientImage to the design bands of every frame:

    fitted = sum_j coefficients[..., j] * band(independents[j])
"""

import logging

import numpy as np

from pixelharmonics.core.design import DesignSpec, add_harmonic_terms, check_bands
from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.frame import FittedSeries, Frame, Series
from pixelharmonics.core.solver import CoefficientImage

logger = logging.getLogger(__name__)


def reconstruct(
    series: Series,
    coefficients: CoefficientImage,
    design: DesignSpec,
    name: str = "fitted",
) -> FittedSeries:
    """
    Reconstruct fitted values for every frame

    Args:
        series: Frames carrying the design bands (cos/sin are derived from
                ``t`` when missing)
        coefficients: Output of fit_harmonic for the same design
        design: Design specification
        name: Name of the fitted band

    Returns:
        New Series, each frame with an extra ``name`` band. NaN where the
        pixel has no coefficients or a design band is invalid.

    Raises:
        ConfigurationError: Coefficient names or shape do not match

    Examples:
        >>> design = build_design(3)
        >>> fitted = reconstruct(series, fit_harmonic(series, design), design)
        >>> fitted.stack("fitted").shape
        (23, 64, 64)
    """
    if tuple(coefficients.names) != design.independents:
        raise ConfigurationError(
            f"Coefficients {list(coefficients.names)} do not match "
            f"design independents {list(design.independents)}"
        )

    series = add_harmonic_terms(series, design)
    check_bands(series, list(design.independents))
    if series.shape != coefficients.shape:
        raise ConfigurationError(
            f"Series shape {series.shape} does not match coefficient shape {coefficients.shape}"
        )

    beta = coefficients.coefficients

    def _fit_frame(frame: Frame) -> Frame:
        X = np.stack(
            [frame.band(band).astype(np.float64) for band in design.independents], axis=-1
        )
        return frame.with_bands({name: np.einsum("rcp,rcp->rc", X, beta)})

    fitted = series.map(_fit_frame)
    logger.debug("Reconstructed '%s' for %d frames", name, len(fitted))
    return fitted


def residuals(
    fitted: FittedSeries,
    design: DesignSpec,
    fitted_name: str = "fitted",
    name: str = "residual",
) -> Series:
    """Append observed minus fitted as band ``name`` to every frame"""
    check_bands(fitted, [design.dependent, fitted_name])

    def _residual(frame: Frame) -> Frame:
        observed = frame.band(design.dependent).astype(np.float64)
        return frame.with_bands({name: observed - frame.band(fitted_name)})

    return fitted.map(_residual)
