"""
Band derivation for raster frames

Pure per-frame transforms that produce derived bands: normalized difference
indices, day of year, fractional-year time, the constant regressor and the
harmonic cos/sin terms. ``add_*`` functions return new Frames; nothing here
mutates its input.

Time convention:
    t = (timestamp - 1970-01-01T00:00Z) / 365.25 days

The same fixed-length year is used for the ``t`` band and for the harmonic
angle ``t * i * 2 * pi``, so harmonic ``i`` has a period of exactly
365.25 / i days.
"""

import logging
from datetime import UTC, datetime

import numpy as np
from numpy.typing import NDArray

from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.frame import Frame, Series, as_utc, is_valid

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
YEAR_SECONDS = 365.25 * 86400.0

TIME_BAND = "t"
CONSTANT_BAND = "constant"
DOY_BAND = "DOY"


def normalized_difference(frame: Frame, band_a: str, band_b: str) -> NDArray:
    """
    Compute (A - B) / (A + B)

    Args:
        frame: Source frame
        band_a: First band (e.g. NIR)
        band_b: Second band (e.g. red)

    Returns:
        float64 array, NaN where A + B == 0 or either input is invalid

    Examples:
        >>> ndvi = normalized_difference(frame, "B5", "B4")
    """
    a = frame.band(band_a).astype(np.float64)
    b = frame.band(band_b).astype(np.float64)

    valid = is_valid(frame.band(band_a)) & is_valid(frame.band(band_b))
    denominator = a + b
    valid &= denominator != 0

    out = np.full(frame.shape, np.nan, dtype=np.float64)
    np.divide(a - b, denominator, out=out, where=valid)
    return out


def day_of_year(frame: Frame, reference_band: str | None = None) -> NDArray:
    """
    Day of year (1..366) of the acquisition, as a constant band

    Args:
        frame: Source frame
        reference_band: Pixels invalid in this band are NaN in the output

    Returns:
        float64 array of the frame's shape
    """
    doy = np.full(frame.shape, float(frame.timestamp.timetuple().tm_yday))
    if reference_band is not None:
        doy[~frame.valid_mask(reference_band)] = np.nan
    return doy


def fractional_years_since_epoch(timestamp: datetime, epoch: datetime = EPOCH) -> float:
    """
    Elapsed time in fractional years of 365.25 days

    Naive datetimes are taken as UTC.

    Examples:
        >>> fractional_years_since_epoch(datetime(1971, 1, 1, 6))
        1.0
    """
    delta = as_utc(timestamp) - as_utc(epoch)
    return delta.total_seconds() / YEAR_SECONDS


def time_band(frame: Frame, epoch: datetime = EPOCH) -> NDArray:
    """Fractional years since ``epoch`` broadcast over the frame"""
    return np.full(frame.shape, fractional_years_since_epoch(frame.timestamp, epoch))


def constant_band(frame: Frame, value: float = 1.0) -> NDArray:
    return np.full(frame.shape, float(value))


def harmonic_names(index: int) -> tuple[str, str]:
    """Band names of harmonic ``index``: ("cos<i>", "sin<i>")"""
    return f"cos{index}", f"sin{index}"


def check_order(order) -> int:
    if isinstance(order, bool) or not isinstance(order, (int, np.integer)):
        raise ConfigurationError(f"Harmonic order must be an integer, got {order!r}")
    if order < 1:
        raise ConfigurationError(f"Harmonic order must be >= 1, got {order}")
    return int(order)


def harmonic_bands(frame: Frame, order: int) -> dict[str, NDArray]:
    """
    Cosine and sine terms for harmonics 1..order

    For each harmonic ``i`` the angle is ``t * i * 2 * pi``, where ``t`` is the
    frame's time band.

    Args:
        frame: Frame carrying a ``t`` band
        order: Number of harmonics (>= 1)

    Returns:
        Dict {"cos1": ..., "sin1": ..., ..., "cosK": ..., "sinK": ...}

    Raises:
        ConfigurationError: If the time band is missing or order < 1
    """
    order = check_order(order)
    if TIME_BAND not in frame:
        raise ConfigurationError(
            f"Frame {frame.date} has no '{TIME_BAND}' band; add time variables first"
        )
    t = frame.band(TIME_BAND).astype(np.float64)

    terms = {}
    for i in range(1, order + 1):
        radians = t * (i * 2 * np.pi)
        cos_name, sin_name = harmonic_names(i)
        terms[cos_name] = np.cos(radians)
        terms[sin_name] = np.sin(radians)
    return terms


def add_normalized_difference(frame: Frame, band_a: str, band_b: str, name: str) -> Frame:
    return frame.with_bands({name: normalized_difference(frame, band_a, band_b)})


def add_day_of_year(
    frame: Frame, reference_band: str | None = None, name: str = DOY_BAND
) -> Frame:
    return frame.with_bands({name: day_of_year(frame, reference_band)})


def add_variables(
    frame: Frame,
    nir: str | None = None,
    red: str | None = None,
    index_name: str = "NDVI",
    epoch: datetime = EPOCH,
) -> Frame:
    """
    Add the regression variables: index band, time band and constant

    The index band is skipped when ``nir``/``red`` are not given (e.g. when
    the dependent band is already present).
    """
    new_bands = {}
    if nir is not None and red is not None:
        new_bands[index_name] = normalized_difference(frame, nir, red)
    new_bands[TIME_BAND] = time_band(frame, epoch)
    new_bands[CONSTANT_BAND] = constant_band(frame)
    return frame.with_bands(new_bands)


def add_harmonic_bands(frame: Frame, order: int) -> Frame:
    """Append cos/sin bands up to ``order``; bands already present are kept as-is"""
    terms = harmonic_bands(frame, order)
    return frame.with_bands({k: v for k, v in terms.items() if k not in frame})


def derive_bands(
    series: Series,
    nir: str | None = None,
    red: str | None = None,
    *,
    index_name: str = "NDVI",
    reference_band: str | None = None,
    epoch: datetime = EPOCH,
    day_of_year: bool = False,
    order: int | None = None,
) -> Series:
    """
    Derive regression bands for every frame of a series

    Args:
        series: Input series
        nir: Near-infrared band name (index numerator minuend)
        red: Red band name
        index_name: Name of the normalized difference band
        reference_band: Validity reference for the DOY band
        epoch: Epoch of the time band
        day_of_year: Also add a DOY band
        order: Also add harmonic terms up to this order

    Returns:
        New Series; input frames are untouched

    Examples:
        >>> derived = derive_bands(series, nir="B5", red="B4", order=3)
        >>> derived.band_names[-6:]
        ['cos1', 'sin1', 'cos2', 'sin2', 'cos3', 'sin3']
    """
    if order is not None:
        check_order(order)

    def _derive(frame: Frame) -> Frame:
        frame = add_variables(frame, nir=nir, red=red, index_name=index_name, epoch=epoch)
        if day_of_year:
            frame = add_day_of_year(frame, reference_band)
        if order is not None:
            frame = add_harmonic_bands(frame, order)
        return frame

    derived = series.map(_derive)
    logger.debug("Derived bands for %d frames: %s", len(derived), derived.band_names)
    return derived
