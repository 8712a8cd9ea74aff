"""Sample CLI command"""

import argparse

from pixelharmonics.sample_data import create_sample_data


def run_sample(args: argparse.Namespace) -> None:
    """Run the sample command"""
    out = create_sample_data(args.output_dir, n_scenes=args.scenes)
    print(f"Sample scenes: {out}")
