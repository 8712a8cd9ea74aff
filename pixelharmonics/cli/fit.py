"""
Fit CLI command

Loads scenes, derives NDVI and the time variables, fits per-pixel
harmonics and writes the coefficient GeoTIFF.
"""

import argparse

from pixelharmonics.cli._scenes import load_scenes, scene_window, workers
from pixelharmonics.core.bands import derive_bands
from pixelharmonics.core.chart import region_mean_table
from pixelharmonics.core.design import build_design
from pixelharmonics.core.reconstruct import reconstruct
from pixelharmonics.core.solver import SolverOptions, fit_harmonic
from pixelharmonics.io.export import write_coefficients
from pixelharmonics.products import get_profile


def run_fit(args: argparse.Namespace) -> None:
    """Run the fit command"""
    profile = get_profile(args.product)
    design = build_design(args.order, dependent="NDVI")
    options = SolverOptions(
        strategy=args.strategy,
        workers=workers(args),
        max_condition=args.max_condition,
    )

    series = load_scenes(args)
    print(f"Scenes: {len(series)} ({series[0].date} .. {series[-1].date})")

    derived = derive_bands(series, nir=profile.nir, red=profile.red, index_name=design.dependent)
    coefs = fit_harmonic(derived, design, options=options)

    valid = int(coefs.valid.sum())
    total = coefs.valid.size
    print(f"Fitted pixels: {valid:,} / {total:,}")

    like = series[0].properties["path"]
    out = write_coefficients(coefs, args.output, like=like, window=scene_window(args))
    print(f"Coefficients: {out}")

    if args.chart:
        fitted = reconstruct(derived, coefs, design)
        table = region_mean_table(fitted, [design.dependent, "fitted"])
        table.to_csv(args.chart)
        print(f"Chart table: {args.chart}")
