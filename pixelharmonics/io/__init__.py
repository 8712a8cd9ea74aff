"""
PixelHarmonics I/O Module

GeoTIFF scene loading and result export.
"""

from pixelharmonics.io.export import write_coefficients, write_image
from pixelharmonics.io.scenes import load_frame, load_series, parse_date_from_filename

__all__ = [
    "load_frame",
    "load_series",
    "parse_date_from_filename",
    "write_coefficients",
    "write_image",
]
