"""
Chart tables for observed vs fitted series

Reduces each frame to the mean over a region so a plotting tool can draw
observed and fitted values against time.
"""

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pixelharmonics.core.design import check_bands
from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.frame import Series


def region_mean_table(
    series: Series,
    bands: list[str],
    region: NDArray | None = None,
) -> pd.DataFrame:
    """
    Region-mean value of each band per frame

    Args:
        series: Source series (e.g. a FittedSeries)
        bands: Bands to tabulate (e.g. ["NDVI", "fitted"])
        region: Boolean mask of the frame shape; whole frame when None

    Returns:
        DataFrame indexed by acquisition time with one column per band.
        NaN pixels are ignored; a frame with no valid pixel in the region
        gives NaN.

    Examples:
        >>> table = region_mean_table(fitted, ["NDVI", "fitted"], region=field_mask)
        >>> table.plot(style=[".", "-"])
    """
    check_bands(series, bands)
    if region is None:
        region = np.ones(series.shape, dtype=bool)
    region = np.asarray(region, dtype=bool)
    if region.shape != series.shape:
        raise ConfigurationError(
            f"Region shape {region.shape} does not match series shape {series.shape}"
        )

    columns = {}
    for band in bands:
        values = series.stack(band)[:, region]
        counts = np.isfinite(values).sum(axis=1)
        sums = np.nansum(values, axis=1)
        columns[band] = np.where(counts > 0, sums / np.maximum(counts, 1), np.nan)

    index = pd.DatetimeIndex(series.timestamps, name="time")
    return pd.DataFrame(columns, index=index)
