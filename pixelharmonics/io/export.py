"""
GeoTIFF export of per-pixel results

Writes coefficient and reduction images as float32 GeoTIFFs with one
described band per layer. Georeferencing is copied unchanged from a source
scene; no reprojection happens here.
"""

import logging
from pathlib import Path

import numpy as np
import rasterio
from numpy.typing import NDArray
from rasterio.windows import Window

from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.solver import CoefficientImage

logger = logging.getLogger(__name__)


def write_image(
    layers: dict[str, NDArray],
    path: str | Path,
    like: str | Path | None = None,
    window: Window | None = None,
) -> str:
    """
    Write named 2-D layers as a multi-band GeoTIFF

    Args:
        layers: Layer name to (rows, cols) array; names become band descriptions
        path: Output file
        like: Scene whose CRS and transform are copied
        window: Window of ``like`` the layers cover (for clipped series)

    Returns:
        Output path as string
    """
    if not layers:
        raise ConfigurationError("Nothing to write")
    shapes = {np.shape(arr) for arr in layers.values()}
    if len(shapes) != 1 or len(next(iter(shapes))) != 2:
        raise ConfigurationError(f"Layers must share one 2-D shape, got {sorted(shapes)}")
    height, width = next(iter(shapes))

    profile = {
        "driver": "GTiff",
        "dtype": "float32",
        "width": width,
        "height": height,
        "count": len(layers),
        "nodata": np.nan,
        "compress": "deflate",
    }
    if like is not None:
        with rasterio.open(like) as src:
            profile["crs"] = src.crs
            profile["transform"] = (
                src.window_transform(window) if window is not None else src.transform
            )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **profile) as dst:
        for i, (name, array) in enumerate(layers.items(), 1):
            dst.write(np.asarray(array, dtype=np.float32), i)
            dst.set_band_description(i, name)

    logger.info("Wrote %d layers to %s", len(layers), path)
    return str(path)


def write_coefficients(
    coefficients: CoefficientImage,
    path: str | Path,
    like: str | Path | None = None,
    window: Window | None = None,
    diagnostics: bool = True,
) -> str:
    """
    Write a CoefficientImage as a GeoTIFF

    One band per coefficient (described by its independent band name),
    followed by ``n_observations``, ``rmse`` and ``r_squared`` when
    ``diagnostics`` is set.

    Examples:
        >>> write_coefficients(coefs, "coefs.tif", like=series[0].properties["path"])
    """
    layers = {name: coefficients.band(name) for name in coefficients.names}
    if diagnostics:
        layers["n_observations"] = coefficients.n_observations
        layers["rmse"] = coefficients.rmse
        layers["r_squared"] = coefficients.r_squared
    return write_image(layers, path, like=like, window=window)
