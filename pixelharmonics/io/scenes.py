"""
Scene loading from GeoTIFF files

Reads a directory of single-date GeoTIFF scenes into a Series: band layout
and scaling from a ProductProfile, acquisition date from GeoTIFF tags or the
filename, cloud cover from tags. Scenes are filtered by date and cloud cover
on their headers before any pixels are read.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from rasterio.errors import RasterioIOError
from rasterio.windows import Window

from pixelharmonics.core.exceptions import DataSourceError
from pixelharmonics.core.frame import Frame, Series, as_utc, matches_selection
from pixelharmonics.products import ProductProfile, get_profile

logger = logging.getLogger(__name__)

# Date parsing patterns (tried in order)
_DATE_PATTERNS = [
    (r"(\d{4}-\d{2}-\d{2})", "%Y-%m-%d"),  # 2024-01-15
    (r"(\d{8})", "%Y%m%d"),  # 20240115
    (r"(\d{4}_\d{2}_\d{2})", "%Y_%m_%d"),  # 2024_01_15
]

# GeoTIFF tags checked for the acquisition time
_TIME_TAGS = ("ACQUISITION_TIME", "DATE_ACQUIRED", "TIFFTAG_DATETIME")


def parse_date_from_filename(filename: str, date_pattern: str | None = None) -> datetime | None:
    """
    Extract acquisition date from filename.

    Tries common patterns in order:
    1. Custom regex (if provided via date_pattern)
    2. YYYY-MM-DD
    3. YYYYMMDD
    4. YYYY_MM_DD
    5. Falls back to None if no date found
    """
    if date_pattern:
        m = re.search(date_pattern, filename)
        if m:
            date_str = m.group(1) if m.lastindex else m.group(0)
            for fmt in ("%Y-%m-%d", "%Y%m%d", "%Y_%m_%d", "%Y/%m/%d"):
                try:
                    return datetime.strptime(date_str, fmt).replace(tzinfo=UTC)
                except ValueError:
                    continue

    for pattern, fmt in _DATE_PATTERNS:
        m = re.search(pattern, filename)
        if m:
            try:
                return datetime.strptime(m.group(1), fmt).replace(tzinfo=UTC)
            except ValueError:
                continue

    return None


def _parse_time_tag(value: str) -> datetime | None:
    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


@dataclass
class SceneHeader:
    """Scene metadata read without pixel data."""

    path: str
    timestamp: datetime
    properties: dict[str, Any]


def read_header(
    path: str | Path,
    profile: ProductProfile,
    date_pattern: str | None = None,
) -> SceneHeader:
    """
    Read acquisition time and scene properties of a GeoTIFF

    Raises:
        DataSourceError: Unreadable file or no acquisition date
    """
    path = Path(path)
    try:
        with rasterio.open(path) as src:
            tags = src.tags()
    except RasterioIOError as e:
        raise DataSourceError(f"Cannot open scene {path}: {e}") from e

    timestamp = None
    for key in _TIME_TAGS:
        if key in tags:
            timestamp = _parse_time_tag(tags[key])
            if timestamp is not None:
                break
    if timestamp is None:
        timestamp = parse_date_from_filename(path.name, date_pattern)
    if timestamp is None:
        raise DataSourceError(f"No acquisition date in tags or filename of {path}")

    properties: dict[str, Any] = {"path": str(path), "product_id": profile.product_id}
    if profile.cloud_cover_key in tags:
        try:
            properties[profile.cloud_cover_key] = float(tags[profile.cloud_cover_key])
        except ValueError:
            logger.warning(
                "Ignoring non-numeric %s=%r in %s",
                profile.cloud_cover_key,
                tags[profile.cloud_cover_key],
                path,
            )
    return SceneHeader(path=str(path), timestamp=timestamp, properties=properties)


def load_frame(
    path: str | Path,
    product: str | ProductProfile = "landsat8_l2",
    window: Window | None = None,
    date_pattern: str | None = None,
) -> Frame:
    """
    Load one GeoTIFF scene as a Frame

    Nodata pixels become NaN; valid DNs are scaled to reflectance with the
    profile's scale factor and offset.

    Args:
        path: Scene file
        product: Product id or profile
        window: Optional rasterio Window to clip to
        date_pattern: Custom regex for the filename date

    Raises:
        DataSourceError: Unreadable file, missing bands or no date
    """
    profile = get_profile(product)
    header = read_header(path, profile, date_pattern)

    try:
        with rasterio.open(path) as src:
            if src.count < profile.band_count:
                raise DataSourceError(
                    f"{path} has {src.count} bands, profile '{profile.product_id}' "
                    f"needs {profile.band_count}"
                )
            indexes = [profile.bands[name] + 1 for name in profile.band_names]
            data = src.read(indexes, window=window).astype(np.float64)
            nodata = src.nodata if src.nodata is not None else profile.nodata
    except RasterioIOError as e:
        raise DataSourceError(f"Cannot read scene {path}: {e}") from e

    reflectance = data * profile.scale_factor + profile.offset
    if nodata is not None:
        reflectance[data == nodata] = np.nan

    return Frame.from_array(header.timestamp, reflectance, profile.band_names, header.properties)


def _scene_paths(source: str | Path | list, glob_pattern: str) -> list[Path]:
    if isinstance(source, (list, tuple)):
        return [Path(p) for p in source]
    source = Path(source)
    if source.is_file():
        return [source]
    if not source.is_dir():
        raise DataSourceError(f"Scene source not found: {source}")
    return sorted(f for f in source.glob(glob_pattern) if f.is_file())


def load_series(
    source: str | Path | list,
    product: str | ProductProfile = "landsat8_l2",
    start: datetime | None = None,
    end: datetime | None = None,
    max_cloud_cover: float | None = None,
    window: Window | None = None,
    glob_pattern: str = "**/*.tif*",
    date_pattern: str | None = None,
) -> Series:
    """
    Load scenes into a time-ordered Series

    Args:
        source: Directory, single file, or list of files
        product: Product id or profile
        start: Keep scenes acquired at or after this time
        end: Keep scenes acquired at or before this time
        max_cloud_cover: Keep scenes with cloud cover <= this value
                         (scenes without a cloud cover tag are dropped)
        window: Optional rasterio Window applied to every scene
        glob_pattern: File pattern for directory sources
        date_pattern: Custom regex for filename dates

    Returns:
        Series sorted by acquisition time

    Raises:
        DataSourceError: No scene matched or a scene could not be read

    Examples:
        >>> series = load_series("./scenes", max_cloud_cover=20)
        >>> series = load_series(
        ...     "./scenes",
        ...     start=datetime(2019, 1, 1),
        ...     end=datetime(2019, 12, 31),
        ...     window=Window(0, 0, 256, 256),
        ... )
    """
    profile = get_profile(product)
    paths = _scene_paths(source, glob_pattern)

    selected = []
    for path in paths:
        header = read_header(path, profile, date_pattern)
        if matches_selection(
            header.timestamp,
            header.properties,
            start,
            end,
            max_cloud_cover,
            profile.cloud_cover_key,
        ):
            selected.append(header)

    if not selected:
        raise DataSourceError(f"No scenes matched in {source} ({len(paths)} candidates)")

    selected.sort(key=lambda h: h.timestamp)
    logger.info("Loading %d of %d scenes", len(selected), len(paths))

    frames = [load_frame(h.path, profile, window, date_pattern) for h in selected]
    return Series(frames)
