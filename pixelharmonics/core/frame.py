"""
Frame and Series - immutable raster time-series containers

A Frame is a single acquisition: named 2-D bands on one pixel grid, an
acquisition timestamp and scene properties (cloud cover, scene id, ...).
A Series is an ordered tuple of Frames sharing the same grid.

Invalid pixels are NaN in floating-point bands. Integer bands are treated as
fully valid.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd
import xarray as xr
from numpy.typing import NDArray

from pixelharmonics.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def as_utc(timestamp: datetime) -> datetime:
    """Interpret naive timestamps as UTC and convert aware ones to UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def _freeze(array: Any) -> NDArray:
    """Return a read-only copy of ``array`` (masked values become NaN)."""
    if np.ma.isMaskedArray(array):
        array = np.ma.asarray(array, dtype=np.float64).filled(np.nan)
    elif (
        isinstance(array, np.ndarray)
        and not array.flags.writeable
        and array.flags.owndata
    ):
        # Already frozen by another Frame; views may still share writable memory
        return array
    frozen = np.array(array, copy=True)
    frozen.flags.writeable = False
    return frozen


def matches_selection(
    timestamp: datetime,
    properties: Mapping[str, Any],
    start: datetime | None = None,
    end: datetime | None = None,
    max_cloud_cover: float | None = None,
    cloud_cover_key: str = "CLOUD_COVER",
) -> bool:
    """
    Date range and cloud cover test shared by Series.filter and scene loading

    Args:
        timestamp: Acquisition time (UTC)
        properties: Scene metadata
        start: Inclusive lower bound (naive means UTC)
        end: Inclusive upper bound (naive means UTC)
        max_cloud_cover: Maximum cloud cover; scenes without the property fail
        cloud_cover_key: Property holding cloud cover

    Returns:
        True if the scene passes every given condition
    """
    if start is not None and timestamp < as_utc(start):
        return False
    if end is not None and timestamp > as_utc(end):
        return False
    if max_cloud_cover is not None:
        cover = properties.get(cloud_cover_key)
        if cover is None or float(cover) > max_cloud_cover:
            return False
    return True


def is_valid(array: NDArray) -> NDArray:
    """Boolean validity mask: finite for floating bands, all True otherwise."""
    if np.issubdtype(array.dtype, np.floating) or np.issubdtype(array.dtype, np.complexfloating):
        return np.isfinite(array)
    return np.ones(array.shape, dtype=bool)


@dataclass(frozen=True, eq=False)
class Frame:
    """
    One raster observation

    Attributes:
        timestamp: Acquisition time (stored in UTC)
        bands: Read-only mapping of band name to 2-D array (rows, cols)
        properties: Read-only scene metadata (e.g. {"CLOUD_COVER": 12.5})

    Examples:
        >>> frame = Frame(datetime(2019, 6, 1), {"B4": red, "B5": nir})
        >>> frame.shape
        (64, 64)
        >>> ndvi_frame = frame.with_bands({"NDVI": (nir - red) / (nir + red)})
    """

    timestamp: datetime
    bands: Mapping[str, NDArray]
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.timestamp, datetime):
            raise ConfigurationError(
                f"Frame timestamp must be a datetime, got {type(self.timestamp).__name__}"
            )
        if not self.bands:
            raise ConfigurationError("Frame needs at least one band")

        frozen = {}
        shape = None
        for name, array in self.bands.items():
            arr = _freeze(array)
            if arr.ndim != 2:
                raise ConfigurationError(f"Band '{name}' must be 2-D, got shape {arr.shape}")
            if shape is None:
                shape = arr.shape
            elif arr.shape != shape:
                raise ConfigurationError(
                    f"Band '{name}' has shape {arr.shape}, expected {shape}"
                )
            frozen[str(name)] = arr

        # Use object.__setattr__ because dataclass is frozen
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))
        object.__setattr__(self, "bands", MappingProxyType(frozen))
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @classmethod
    def from_array(
        cls,
        timestamp: datetime,
        array: NDArray,
        band_names: list[str],
        properties: Mapping[str, Any] | None = None,
    ) -> Frame:
        """
        Build a Frame from a (band, rows, cols) array

        Args:
            timestamp: Acquisition time
            array: 3-D array, first axis is the band axis
            band_names: One name per band
            properties: Scene metadata

        Returns:
            New Frame
        """
        array = np.asarray(array)
        if array.ndim != 3:
            raise ConfigurationError(f"Expected (band, rows, cols) array, got shape {array.shape}")
        if len(band_names) != array.shape[0]:
            raise ConfigurationError(
                f"{len(band_names)} band names given for {array.shape[0]} bands"
            )
        bands = {name: array[i] for i, name in enumerate(band_names)}
        return cls(timestamp=timestamp, bands=bands, properties=properties or {})

    @property
    def shape(self) -> tuple[int, int]:
        """Spatial shape (rows, cols)"""
        return next(iter(self.bands.values())).shape

    @property
    def band_names(self) -> list[str]:
        return list(self.bands)

    @property
    def date(self) -> str:
        """Acquisition date as YYYY-MM-DD"""
        return self.timestamp.strftime("%Y-%m-%d")

    def __contains__(self, name: object) -> bool:
        return name in self.bands

    def band(self, name: str) -> NDArray:
        """
        Get a band by name

        Raises:
            ConfigurationError: If the band is missing
        """
        try:
            return self.bands[name]
        except KeyError:
            raise ConfigurationError(
                f"Band '{name}' not found in frame {self.date}. Available: {self.band_names}"
            ) from None

    def valid_mask(self, name: str) -> NDArray:
        """True where band ``name`` holds a valid value"""
        return is_valid(self.band(name))

    def with_bands(self, new_bands: Mapping[str, NDArray]) -> Frame:
        """
        Return a new Frame with ``new_bands`` appended

        Existing bands are never overwritten.

        Raises:
            ConfigurationError: If a band name already exists
        """
        clashes = sorted(set(new_bands) & set(self.bands))
        if clashes:
            raise ConfigurationError(f"Bands already present in frame {self.date}: {clashes}")
        return Frame(
            timestamp=self.timestamp,
            bands={**self.bands, **new_bands},
            properties=self.properties,
        )

    def select(self, names: Iterable[str]) -> Frame:
        """Return a new Frame holding only ``names`` (in that order)"""
        return Frame(
            timestamp=self.timestamp,
            bands={name: self.band(name) for name in names},
            properties=self.properties,
        )

    def clip(self, rows: slice, cols: slice) -> Frame:
        """Return a new Frame cut to a row/column window"""
        return Frame(
            timestamp=self.timestamp,
            bands={name: arr[rows, cols] for name, arr in self.bands.items()},
            properties=self.properties,
        )

    def __repr__(self) -> str:
        return (
            f"<Frame {self.timestamp.isoformat()}>\n"
            f"  Shape: {self.shape}\n"
            f"  Bands: {', '.join(self.band_names)}"
        )


class Series:
    """
    Ordered, immutable sequence of Frames on a common pixel grid

    Attributes:
        frames: Tuple of Frames in series order

    Examples:
        >>> series = Series(frames)
        >>> summer = series.filter(start=datetime(2019, 6, 1), end=datetime(2019, 8, 31))
        >>> ndvi = series.stack("NDVI")  # (time, rows, cols)
    """

    def __init__(self, frames: Iterable[Frame] = ()):
        frames = tuple(frames)
        for frame in frames:
            if not isinstance(frame, Frame):
                raise ConfigurationError(f"Series holds Frames, got {type(frame).__name__}")

        shapes = {frame.shape for frame in frames}
        if len(shapes) > 1:
            raise ConfigurationError(f"Frames have mismatched spatial shapes: {sorted(shapes)}")

        self._frames = frames

    @property
    def frames(self) -> tuple[Frame, ...]:
        return self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Series(self._frames[index])
        return self._frames[index]

    @property
    def shape(self) -> tuple[int, int]:
        """Spatial shape (rows, cols) shared by all frames"""
        if not self._frames:
            raise ConfigurationError("Series is empty")
        return self._frames[0].shape

    @property
    def timestamps(self) -> list[datetime]:
        return [frame.timestamp for frame in self._frames]

    @property
    def band_names(self) -> list[str]:
        """Bands present in every frame, in first-frame order"""
        if not self._frames:
            return []
        common = set.intersection(*(set(frame.bands) for frame in self._frames))
        return [name for name in self._frames[0].band_names if name in common]

    def stack(self, name: str) -> NDArray:
        """
        Stack one band across frames

        Returns:
            float64 array of shape (time, rows, cols)

        Raises:
            ConfigurationError: If the series is empty or a frame lacks the band
        """
        if not self._frames:
            raise ConfigurationError("Series is empty")
        return np.stack([frame.band(name).astype(np.float64) for frame in self._frames])

    def map(self, func: Callable[[Frame], Frame]) -> Series:
        """Apply ``func`` to every frame and return a new Series"""
        return Series(func(frame) for frame in self._frames)

    def sorted(self, by: str | None = None, reverse: bool = False) -> Series:
        """
        Return a new Series ordered by acquisition time or a scene property

        Args:
            by: Scene property to sort on (e.g. "CLOUD_COVER"); None sorts
                by timestamp. Ties keep their current order.
            reverse: Sort in descending order

        Raises:
            ConfigurationError: If a frame lacks the ``by`` property

        Examples:
            >>> clearest = series.sorted(by="CLOUD_COVER")[0]
        """
        if by is None:
            return Series(sorted(self._frames, key=lambda frame: frame.timestamp, reverse=reverse))

        missing = [frame.date for frame in self._frames if by not in frame.properties]
        if missing:
            raise ConfigurationError(f"Frames without property '{by}': {missing}")
        return Series(sorted(self._frames, key=lambda frame: frame.properties[by], reverse=reverse))

    def filter(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        max_cloud_cover: float | None = None,
        cloud_cover_key: str = "CLOUD_COVER",
    ) -> Series:
        """
        Select frames by date range and cloud cover

        Args:
            start: Keep frames acquired at or after ``start``
            end: Keep frames acquired at or before ``end``
            max_cloud_cover: Keep frames whose cloud cover is <= this value.
                             Frames without the property are dropped.
            cloud_cover_key: Scene property holding cloud cover

        Returns:
            New Series with matching frames, original order kept
        """
        kept = [
            frame
            for frame in self._frames
            if matches_selection(
                frame.timestamp, frame.properties, start, end, max_cloud_cover, cloud_cover_key
            )
        ]

        logger.debug("Filter kept %d of %d frames", len(kept), len(self._frames))
        return Series(kept)

    def clip(self, rows: slice, cols: slice) -> Series:
        """Cut every frame to the same row/column window"""
        return self.map(lambda frame: frame.clip(rows, cols))

    def to_xarray(self, bands: list[str] | None = None) -> xr.Dataset:
        """
        Convert to an xarray Dataset

        Args:
            bands: Bands to export (default: bands common to all frames)

        Returns:
            Dataset with one (time, y, x) variable per band. Scalar scene
            properties shared by all frames become time coordinates.
        """
        if not self._frames:
            raise ConfigurationError("Series is empty")
        bands = bands if bands is not None else self.band_names
        times = pd.DatetimeIndex([frame.timestamp for frame in self._frames]).tz_convert(None)

        coords: dict[str, Any] = {"time": times}
        if self._frames:
            common = set.intersection(*(set(frame.properties) for frame in self._frames))
            for key in sorted(common):
                values = [frame.properties[key] for frame in self._frames]
                if all(isinstance(v, (int, float, str)) for v in values):
                    coords[key] = ("time", values)

        data_vars = {name: (("time", "y", "x"), self.stack(name)) for name in bands}
        return xr.Dataset(data_vars=data_vars, coords=coords)

    @classmethod
    def from_xarray(cls, ds: xr.Dataset) -> Series:
        """
        Build a Series from an xarray Dataset

        Accepts one (time, y, x) variable per band, or a variable with a
        ``band`` dimension (time, band, y, x) whose band coordinate names the
        bands. 1-D coordinates along ``time`` become scene properties.
        """
        if "time" not in ds.dims:
            raise ConfigurationError("Dataset has no 'time' dimension")

        per_band: dict[str, xr.DataArray] = {}
        for name, var in ds.data_vars.items():
            if "band" in var.dims:
                labels = var.coords["band"].values if "band" in var.coords else range(var.sizes["band"])
                for i, label in enumerate(labels):
                    per_band[str(label)] = var.isel(band=i)
            else:
                per_band[str(name)] = var

        property_coords = [
            name
            for name, coord in ds.coords.items()
            if name != "time" and coord.dims == ("time",)
        ]

        timestamps = pd.to_datetime(ds["time"].values)
        frames = []
        for i, ts in enumerate(timestamps):
            bands = {
                name: var.isel(time=i).transpose("y", "x").values
                for name, var in per_band.items()
            }
            properties = {name: ds.coords[name].values[i].item() for name in property_coords}
            frames.append(Frame(ts.to_pydatetime(), bands, properties))
        return cls(frames)

    def __repr__(self) -> str:
        if not self._frames:
            return "<Series (empty)>"
        return (
            f"<Series: {len(self)} frames>\n"
            f"  Shape: {self.shape}\n"
            f"  Time: {self._frames[0].date} .. {self._frames[-1].date}\n"
            f"  Bands: {', '.join(self.band_names)}"
        )


# A Series whose frames carry a reconstructed "fitted" band
FittedSeries = Series
