"""
PixelHarmonics Test Configuration

Shared pytest fixtures for all tests.
"""

from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from pixelharmonics.core.bands import EPOCH, YEAR_SECONDS
from pixelharmonics.core.frame import Frame, Series


def design_rows(timestamps: list[datetime], order: int) -> np.ndarray:
    """Reference design matrix [1, t, cos1, sin1, ...] computed independently"""
    rows = []
    for ts in timestamps:
        t = (ts - EPOCH).total_seconds() / YEAR_SECONDS
        row = [1.0, t]
        for i in range(1, order + 1):
            row += [np.cos(2 * np.pi * i * t), np.sin(2 * np.pi * i * t)]
        rows.append(row)
    return np.array(rows)


@pytest.fixture
def timestamps():
    """30 acquisitions, 16 days apart, starting 2019-01-05 UTC"""
    start = datetime(2019, 1, 5, tzinfo=UTC)
    return [start + timedelta(days=16 * i) for i in range(30)]


@pytest.fixture
def make_series(timestamps):
    """
    Factory for series whose NDVI is an exact harmonic model per pixel.

    Returns (series, beta) where beta has shape (rows, cols, 2 + 2K).
    """

    def _make(order=2, shape=(3, 4), n_frames=None, noise=0.0, seed=0):
        times = timestamps[:n_frames] if n_frames else timestamps
        rng = np.random.default_rng(seed)
        n_params = 2 + 2 * order

        beta = rng.uniform(-0.2, 0.2, (*shape, n_params))
        beta[..., 0] = rng.uniform(0.3, 0.5, shape)
        beta[..., 1] = rng.uniform(-0.005, 0.005, shape)

        X = design_rows(times, order)
        ndvi = np.einsum("np,rcp->nrc", X, beta)
        if noise:
            ndvi = ndvi + rng.normal(0, noise, ndvi.shape)

        frames = [
            Frame(ts, {"NDVI": ndvi[i]}, {"CLOUD_COVER": float(i)})
            for i, ts in enumerate(times)
        ]
        return Series(frames), beta

    return _make


@pytest.fixture
def reflectance_series():
    """Four frames with red/NIR reflectance and one invalid pixel per frame"""
    rng = np.random.default_rng(42)
    frames = []
    for i, month in enumerate([1, 4, 7, 10]):
        red = rng.uniform(0.03, 0.08, (4, 4))
        nir = red + rng.uniform(0.05, 0.4, (4, 4))
        red[i, i] = np.nan
        frames.append(
            Frame(
                datetime(2019, month, 1, tzinfo=UTC),
                {"B4": red, "B5": nir},
                {"CLOUD_COVER": 10.0 * (i + 1)},
            )
        )
    return Series(frames)


@pytest.fixture
def scene_dir(tmp_path):
    """Directory of 8 synthetic Landsat-8-like scenes"""
    from pixelharmonics.sample_data import create_sample_data

    return create_sample_data(str(tmp_path / "scenes"), n_scenes=8, width=12, height=10)
