"""
PixelHarmonics CLI Entry Points

Provides command-line interface for:
- fit: Fit per-pixel harmonics to a scene directory
- peak: Per-pixel maximum NDVI and its day of year
- sample: Write synthetic sample scenes
"""

import argparse
import logging
import sys
from datetime import datetime

from pixelharmonics.core.exceptions import PixelHarmonicsError
from pixelharmonics.core.solver import STRATEGIES


def _add_scene_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("source", help="Scene directory or GeoTIFF file")
    parser.add_argument("--output", "-o", required=True, help="Output GeoTIFF path")
    parser.add_argument(
        "--product", default="landsat8_l2", help="Product profile (default: landsat8_l2)"
    )
    parser.add_argument("--start", type=datetime.fromisoformat, help="First date (YYYY-MM-DD)")
    parser.add_argument("--end", type=datetime.fromisoformat, help="Last date (YYYY-MM-DD)")
    parser.add_argument(
        "--max-cloud-cover", type=float, help="Drop scenes with cloud cover above this percent"
    )
    parser.add_argument(
        "--window",
        type=int,
        nargs=4,
        metavar=("ROW", "COL", "HEIGHT", "WIDTH"),
        help="Process only this pixel window",
    )
    parser.add_argument(
        "--workers", type=int, default=1, help="Worker threads, 0 for all CPUs (default: 1)"
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="PixelHarmonics - Per-pixel harmonic regression for vegetation time series",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pixelharmonics sample ./scenes                        Write synthetic scenes
  pixelharmonics fit ./scenes --order 3 -o coefs.tif    Fit third-order harmonics
  pixelharmonics peak ./scenes -o peak.tif              Max NDVI and its day of year
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Fit command
    fit_parser = subparsers.add_parser("fit", help="Fit per-pixel harmonic regression")
    _add_scene_arguments(fit_parser)
    fit_parser.add_argument(
        "--order", type=int, default=3, help="Number of harmonics (default: 3)"
    )
    fit_parser.add_argument(
        "--strategy", choices=STRATEGIES, default="batched", help="Solver strategy"
    )
    fit_parser.add_argument(
        "--max-condition", type=float, help="Reject pixels above this condition number"
    )
    fit_parser.add_argument("--chart", help="Write region-mean observed/fitted CSV here")

    # Peak command
    peak_parser = subparsers.add_parser("peak", help="Per-pixel max NDVI and its day of year")
    _add_scene_arguments(peak_parser)

    # Sample command
    sample_parser = subparsers.add_parser("sample", help="Write synthetic sample scenes")
    sample_parser.add_argument("output_dir", help="Output directory")
    sample_parser.add_argument(
        "--scenes", type=int, default=23, help="Number of scenes (default: 23)"
    )

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(message)s" if not args.verbose else "%(levelname)s: %(message)s"
    )

    try:
        if args.command == "fit":
            from pixelharmonics.cli.fit import run_fit

            run_fit(args)
        elif args.command == "peak":
            from pixelharmonics.cli.peak import run_peak

            run_peak(args)
        elif args.command == "sample":
            from pixelharmonics.cli.sample import run_sample

            run_sample(args)
        else:
            parser.print_help()
            return 1
    except PixelHarmonicsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
