"""
Temporal extrema reduction

Per-pixel maximum of one band over time, together with the value of a
companion band in the frame that holds the maximum (e.g. peak NDVI and the
day of year it was observed).
"""

import logging

import numpy as np
from numpy.typing import NDArray

from pixelharmonics.core.design import check_bands
from pixelharmonics.core.frame import Series
from pixelharmonics.core.parallel import run_row_chunks

logger = logging.getLogger(__name__)


def max_with_companion(
    series: Series,
    primary: str,
    companion: str,
    *,
    workers: int | None = 1,
    chunk_rows: int = 256,
) -> tuple[NDArray, NDArray]:
    """
    Per-pixel maximum of ``primary`` and ``companion`` at the argmax frame

    Invalid primary values are ignored. Ties go to the earliest frame in
    series order. Pixels with no valid primary value are NaN in both outputs.

    Args:
        series: Frames carrying both bands
        primary: Band to maximize
        companion: Band sampled at the maximizing frame
        workers: Threads for row chunks (None = CPU count)
        chunk_rows: Raster rows per chunk

    Returns:
        (max_image, companion_image), both float64 (rows, cols)

    Examples:
        >>> peak, peak_doy = max_with_companion(series, "NDVI", "DOY")
    """
    check_bands(series, [primary, companion])
    values = series.stack(primary)
    companions = series.stack(companion)
    n_rows, n_cols = series.shape

    max_image = np.full((n_rows, n_cols), np.nan)
    companion_image = np.full((n_rows, n_cols), np.nan)

    def _reduce_rows(rows: slice) -> None:
        chunk = values[:, rows]
        valid = np.isfinite(chunk)
        # argmax returns the first index among equal maxima
        index = np.argmax(np.where(valid, chunk, -np.inf), axis=0)[None]
        any_valid = valid.any(axis=0)

        peak = np.take_along_axis(chunk, index, axis=0)[0]
        at_peak = np.take_along_axis(companions[:, rows], index, axis=0)[0]
        max_image[rows] = np.where(any_valid, peak, np.nan)
        companion_image[rows] = np.where(any_valid, at_peak, np.nan)

    run_row_chunks(_reduce_rows, n_rows, chunk_rows, workers)
    logger.debug(
        "Reduced max '%s' with companion '%s' over %d frames", primary, companion, len(series)
    )
    return max_image, companion_image
