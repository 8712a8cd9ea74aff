"""
Product profiles for scene loading.

Defines the band layout, radiometric scaling and metadata keys of the
satellite products the loader understands, plus which bands feed the
vegetation index.
"""

import logging
from dataclasses import dataclass
from typing import Any

from pixelharmonics.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ProductProfile:
    """
    Defines a satellite product's band layout and metadata.

    Attributes:
        product_id: Unique identifier (e.g. "landsat8_l2")
        bands: Band name to 0-based file band index (e.g. {"B4": 2, "B5": 3})
        nir: Near-infrared band name
        red: Red band name
        mask_band: Band whose validity masks the day-of-year band
        scale_factor: DN to reflectance multiplier
        offset: Additive offset applied after scaling
        nodata: No-data DN value (becomes NaN on load)
        cloud_cover_key: Scene tag holding cloud cover percent
        description: Human-readable description

    Examples:
        >>> profile = ProductProfile(
        ...     product_id="drone",
        ...     bands={"red": 0, "nir": 1},
        ...     nir="nir",
        ...     red="red",
        ... )
    """

    product_id: str
    bands: dict[str, int]
    nir: str
    red: str
    mask_band: str | None = None
    scale_factor: float = 1.0
    offset: float = 0.0
    nodata: float | None = None
    cloud_cover_key: str = "CLOUD_COVER"
    description: str = ""

    def __post_init__(self):
        for role in ("nir", "red", "mask_band"):
            name = getattr(self, role)
            if name is not None and name not in self.bands:
                raise ConfigurationError(
                    f"Profile '{self.product_id}': {role} band '{name}' not in {self.band_names}"
                )

    @property
    def band_names(self) -> list[str]:
        """Band names sorted by index."""
        return [k for k, _ in sorted(self.bands.items(), key=lambda x: x[1])]

    @property
    def band_count(self) -> int:
        return len(self.bands)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "bands": self.bands,
            "nir": self.nir,
            "red": self.red,
            "mask_band": self.mask_band,
            "scale_factor": self.scale_factor,
            "offset": self.offset,
            "nodata": self.nodata,
            "cloud_cover_key": self.cloud_cover_key,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductProfile":
        return cls(
            product_id=data["product_id"],
            bands=data["bands"],
            nir=data["nir"],
            red=data["red"],
            mask_band=data.get("mask_band"),
            scale_factor=data.get("scale_factor", 1.0),
            offset=data.get("offset", 0.0),
            nodata=data.get("nodata"),
            cloud_cover_key=data.get("cloud_cover_key", "CLOUD_COVER"),
            description=data.get("description", ""),
        )

    def __repr__(self):
        bands_str = ", ".join(self.band_names)
        return (
            f"<ProductProfile: {self.product_id}>\n"
            f"  Bands: [{bands_str}]\n"
            f"  Index: ({self.nir} - {self.red}) / ({self.nir} + {self.red})"
        )


# Built-in profiles for common satellite products
BUILTIN_PROFILES = {
    "landsat8_l2": ProductProfile(
        product_id="landsat8_l2",
        bands={"B2": 0, "B3": 1, "B4": 2, "B5": 3},
        nir="B5",
        red="B4",
        mask_band="B5",
        scale_factor=0.0000275,  # Collection 2 Level-2 SR
        offset=-0.2,
        nodata=0,
        cloud_cover_key="CLOUD_COVER",
        description="Landsat 8 Collection 2 Surface Reflectance (blue, green, red, NIR)",
    ),
    "sentinel2_l2a": ProductProfile(
        product_id="sentinel2_l2a",
        bands={"B02": 0, "B03": 1, "B04": 2, "B08": 3},
        nir="B08",
        red="B04",
        mask_band="B08",
        scale_factor=0.0001,
        offset=0.0,
        nodata=0,
        cloud_cover_key="CLOUDY_PIXEL_PERCENTAGE",
        description="Sentinel-2 Level-2A Surface Reflectance (10m bands)",
    ),
}

_registry: dict[str, ProductProfile] = dict(BUILTIN_PROFILES)


def register_product(profile: ProductProfile) -> ProductProfile:
    """Register (or replace) a product profile."""
    _registry[profile.product_id] = profile
    logger.info("Registered product profile: %s", profile.product_id)
    return profile


def get_profile(product_id: str | ProductProfile) -> ProductProfile:
    """
    Look up a product profile.

    Raises:
        ConfigurationError: If the product is unknown
    """
    if isinstance(product_id, ProductProfile):
        return product_id
    try:
        return _registry[product_id]
    except KeyError:
        raise ConfigurationError(
            f"Unknown product '{product_id}'. Available: {list_products()}"
        ) from None


def list_products() -> list[str]:
    return sorted(_registry)
