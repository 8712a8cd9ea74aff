"""Scene loading shared by the fit and peak commands"""

import argparse

from rasterio.windows import Window

from pixelharmonics.core.frame import Series
from pixelharmonics.io.scenes import load_series


def scene_window(args: argparse.Namespace) -> Window | None:
    if args.window is None:
        return None
    row, col, height, width = args.window
    return Window(col, row, width, height)


def load_scenes(args: argparse.Namespace) -> Series:
    return load_series(
        args.source,
        product=args.product,
        start=args.start,
        end=args.end,
        max_cloud_cover=args.max_cloud_cover,
        window=scene_window(args),
    )


def workers(args: argparse.Namespace) -> int | None:
    """0 means every CPU"""
    return None if args.workers == 0 else args.workers
