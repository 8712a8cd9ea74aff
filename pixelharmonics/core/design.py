"""
Harmonic design builder

Names the independent variables of a harmonic regression and assembles the
per-pixel design arrays from a Series.

The order of ``build_independents(order)`` is the coefficient index
convention used everywhere downstream:

    [constant, t, cos1, sin1, ..., cosK, sinK]
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pixelharmonics.core.bands import (
    CONSTANT_BAND,
    TIME_BAND,
    add_harmonic_bands,
    check_order,
    harmonic_names,
)
from pixelharmonics.core.exceptions import ConfigurationError
from pixelharmonics.core.frame import Frame, Series

logger = logging.getLogger(__name__)


def build_independents(order: int) -> list[str]:
    """
    Independent band names for a harmonic model of ``order``

    Examples:
        >>> build_independents(2)
        ['constant', 't', 'cos1', 'sin1', 'cos2', 'sin2']
    """
    order = check_order(order)
    names = [CONSTANT_BAND, TIME_BAND]
    for i in range(1, order + 1):
        names.extend(harmonic_names(i))
    return names


@dataclass(frozen=True)
class DesignSpec:
    """
    Harmonic regression configuration

    Attributes:
        order: Number of harmonics K (>= 1)
        dependent: Dependent band name (e.g. "NDVI")
        independents: Independent band names, length 2 + 2K (derived)

    Examples:
        >>> spec = DesignSpec(order=3)
        >>> spec.n_params
        8
    """

    order: int
    dependent: str = "NDVI"
    independents: tuple[str, ...] = field(init=False)

    def __post_init__(self):
        # Use object.__setattr__ because dataclass is frozen
        object.__setattr__(self, "order", check_order(self.order))
        object.__setattr__(self, "independents", tuple(build_independents(self.order)))
        if self.dependent in self.independents:
            raise ConfigurationError(
                f"Dependent band '{self.dependent}' is also an independent variable"
            )

    @property
    def n_params(self) -> int:
        return len(self.independents)

    @property
    def band_names(self) -> list[str]:
        """Every band the regression reads: independents then dependent"""
        return [*self.independents, self.dependent]

    def to_dict(self) -> dict[str, Any]:
        return {"order": self.order, "dependent": self.dependent}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DesignSpec":
        return cls(order=data["order"], dependent=data.get("dependent", "NDVI"))


def build_design(order: int, dependent: str = "NDVI") -> DesignSpec:
    """
    Build the design specification for a harmonic model

    Args:
        order: Number of harmonics (>= 1)
        dependent: Dependent band name

    Raises:
        ConfigurationError: If order is not an integer >= 1
    """
    return DesignSpec(order=order, dependent=dependent)


def add_harmonic_terms(series: Series, design: DesignSpec) -> Series:
    """Append missing harmonic bands of ``design`` to every frame"""

    def _augment(frame: Frame) -> Frame:
        if all(name in frame for name in design.independents):
            return frame
        return add_harmonic_bands(frame, design.order)

    return series.map(_augment)


def check_bands(series: Series, names: list[str]) -> None:
    """
    Validate that every frame carries ``names``

    Raises:
        ConfigurationError: If the series is empty or any frame lacks a band
    """
    if len(series) == 0:
        raise ConfigurationError("Series is empty")
    for frame in series:
        missing = [name for name in names if name not in frame]
        if missing:
            raise ConfigurationError(
                f"Frame {frame.date} is missing bands {missing}. Available: {frame.band_names}"
            )


def design_arrays(series: Series, design: DesignSpec) -> tuple[NDArray, NDArray]:
    """
    Stack the regression inputs of a series

    Args:
        series: Series carrying every band of ``design``
        design: Design specification

    Returns:
        (X, y): X has shape (N, rows, cols, P), y has shape (N, rows, cols),
        both float64 with NaN for invalid values
    """
    check_bands(series, design.band_names)
    X = np.stack([series.stack(name) for name in design.independents], axis=-1)
    y = series.stack(design.dependent)
    return X, y
