"""
Sample data generator for PixelHarmonics tutorials.

Creates small synthetic GeoTIFF scenes that simulate a Landsat 8 Level-2
time series with a seasonal vegetation cycle, for quick-start
demonstrations and tests.
"""

import logging
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.transform import from_bounds

from pixelharmonics.products import get_profile

logger = logging.getLogger(__name__)

# Landsat 8 revisit interval
_REVISIT_DAYS = 16


def _to_dn(reflectance: np.ndarray, scale: float, offset: float) -> np.ndarray:
    dn = np.round((reflectance - offset) / scale)
    return np.clip(dn, 1, 65535).astype(np.uint16)


def create_sample_data(
    output_dir: str | None = None,
    n_scenes: int = 23,
    start: datetime = datetime(2019, 1, 5, tzinfo=UTC),
    width: int = 32,
    height: int = 32,
    seed: int = 42,
) -> str:
    """
    Create sample Landsat-8-like scenes for the quick-start tutorial.

    Each scene is a 4-band uint16 GeoTIFF (blue, green, red, NIR digital
    numbers) with ``DATE_ACQUIRED`` and ``CLOUD_COVER`` tags. NDVI follows
    an annual cosine peaking in early July whose amplitude grows across the
    image columns; scenes with high cloud cover carry a nodata patch.

    Args:
        output_dir: Directory to write scenes. If None, uses a temp directory.
        n_scenes: Number of acquisitions, one per 16-day revisit
        start: First acquisition date
        width: Scene width in pixels
        height: Scene height in pixels
        seed: Random seed for noise and cloud cover

    Returns:
        Path to the directory containing the scenes.

    Examples:
        >>> from pixelharmonics.sample_data import create_sample_data
        >>> scene_dir = create_sample_data(n_scenes=3)
        >>> sorted(os.listdir(scene_dir))
        ['LC08_2019-01-05_sample_sr.tif', 'LC08_2019-01-21_sample_sr.tif', 'LC08_2019-02-06_sample_sr.tif']
    """
    if output_dir is None:
        output_dir = tempfile.mkdtemp(prefix="pixelharmonics_sample_")

    out_path = Path(output_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    profile = get_profile("landsat8_l2")

    # Sample area: small field block in UTM 10N, 30m pixels
    west, south = 600000.0, 4200000.0
    east, north = west + 30.0 * width, south + 30.0 * height
    transform = from_bounds(west, south, east, north, width, height)
    crs = CRS.from_epsg(32610)

    rng = np.random.default_rng(seed)  # Reproducible

    # Seasonal amplitude grows from bare ground (left) to dense crop (right)
    amplitude = np.linspace(0.05, 0.35, width)[None, :] * np.ones((height, 1))
    red = np.full((height, width), 0.06)

    for i in range(n_scenes):
        date = start + timedelta(days=_REVISIT_DAYS * i)
        day = date.timetuple().tm_yday
        season = np.cos(2 * np.pi * (day - 186) / 365.25)

        ndvi = np.clip(0.4 + amplitude * season + rng.normal(0, 0.01, (height, width)), -0.9, 0.9)
        nir = red * (1 + ndvi) / (1 - ndvi)
        blue = red * 0.8
        green = red * 1.2

        bands = [_to_dn(b, profile.scale_factor, profile.offset) for b in (blue, green, red, nir)]

        cloud_cover = float(np.round(rng.uniform(0, 60), 1))
        if cloud_cover > 40:
            # Cloud patch masked as nodata
            rows = slice(0, height // 3)
            for band in bands:
                band[rows, : width // 2] = int(profile.nodata)

        filepath = out_path / f"LC08_{date:%Y-%m-%d}_sample_sr.tif"
        with rasterio.open(
            str(filepath),
            "w",
            driver="GTiff",
            dtype="uint16",
            width=width,
            height=height,
            count=profile.band_count,
            crs=crs,
            transform=transform,
            nodata=profile.nodata,
            compress="deflate",
        ) as dst:
            for index, band_data in enumerate(bands, 1):
                dst.write(band_data, index)
            for name, index in profile.bands.items():
                dst.set_band_description(index + 1, name)
            dst.update_tags(DATE_ACQUIRED=f"{date:%Y-%m-%d}", CLOUD_COVER=str(cloud_cover))

        logger.debug("Created sample scene: %s", filepath)

    logger.info("Created %d sample scenes in %s", n_scenes, output_dir)
    return str(out_path)
