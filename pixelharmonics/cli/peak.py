"""
Peak CLI command

Writes the per-pixel maximum NDVI and the day of year it was observed.
"""

import argparse

from pixelharmonics.cli._scenes import load_scenes, scene_window, workers
from pixelharmonics.core.bands import DOY_BAND, derive_bands
from pixelharmonics.core.extrema import max_with_companion
from pixelharmonics.io.export import write_image
from pixelharmonics.products import get_profile


def run_peak(args: argparse.Namespace) -> None:
    """Run the peak command"""
    profile = get_profile(args.product)

    series = load_scenes(args)
    print(f"Scenes: {len(series)} ({series[0].date} .. {series[-1].date})")

    derived = derive_bands(
        series,
        nir=profile.nir,
        red=profile.red,
        reference_band=profile.mask_band,
        day_of_year=True,
    )
    peak, peak_doy = max_with_companion(derived, "NDVI", DOY_BAND, workers=workers(args))

    like = series[0].properties["path"]
    out = write_image(
        {"NDVI_max": peak, DOY_BAND: peak_doy}, args.output, like=like, window=scene_window(args)
    )
    print(f"Peak image: {out}")
