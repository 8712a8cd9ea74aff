"""
Harmonic regression accessor for xarray Datasets.

Runs the per-pixel harmonic fit directly on a Dataset holding one
(time, y, x) variable per band, or a (time, band, y, x) variable with band
name coordinates.

Usage:
    >>> import pixelharmonics.core.accessor
    >>> coefs = ds.harmonic.fit(order=3, nir="nir", red="red")
    >>> fitted = ds.harmonic.reconstruct(coefs, build_design(3), nir="nir", red="red")
"""

import xarray as xr

from pixelharmonics.core.bands import TIME_BAND, derive_bands
from pixelharmonics.core.design import DesignSpec, build_design
from pixelharmonics.core.extrema import max_with_companion
from pixelharmonics.core.frame import Series
from pixelharmonics.core.reconstruct import reconstruct
from pixelharmonics.core.solver import CoefficientImage, fit_harmonic


@xr.register_dataset_accessor("harmonic")
class HarmonicAccessor:
    """
    xarray Dataset accessor for harmonic regression.

    The dependent band is either already in the Dataset or computed as the
    normalized difference of ``nir`` and ``red``. Time variables come from
    the ``time`` coordinate unless the Dataset already carries a ``t`` band.
    """

    def __init__(self, ds: xr.Dataset):
        self._ds = ds

    @property
    def series(self) -> Series:
        """The Dataset as a Series of Frames"""
        return Series.from_xarray(self._ds)

    def _derived(self, nir: str | None, red: str | None, dependent: str) -> Series:
        series = self.series
        if TIME_BAND in series.band_names and (nir is None or red is None):
            return series
        return derive_bands(series, nir=nir, red=red, index_name=dependent)

    def fit(
        self,
        order: int,
        dependent: str = "NDVI",
        nir: str | None = None,
        red: str | None = None,
        **options,
    ) -> xr.Dataset:
        """
        Fit harmonics at every pixel.

        Args:
            order: Number of harmonics
            dependent: Dependent band (computed from nir/red if both given)
            nir: Near-infrared band name
            red: Red band name
            **options: SolverOptions fields (workers, strategy, ...)

        Returns:
            xr.Dataset from CoefficientImage.to_xarray(), with the
            Dataset's x/y coordinates when present.
        """
        design = build_design(order, dependent)
        coefs = fit_harmonic(self._derived(nir, red, dependent), design, **options)
        return self._with_spatial_coords(coefs.to_xarray())

    def reconstruct(
        self,
        coefficients: CoefficientImage | xr.Dataset,
        design: DesignSpec,
        nir: str | None = None,
        red: str | None = None,
        name: str = "fitted",
    ) -> xr.Dataset:
        """
        Fitted series from coefficients (a CoefficientImage or fit() output).

        Returns:
            xr.Dataset with (time, y, x) variables ``name`` and, when present,
            the dependent band
        """
        if isinstance(coefficients, xr.Dataset):
            coefficients = CoefficientImage.from_xarray(coefficients)
        series = self._derived(nir, red, design.dependent)
        fitted = reconstruct(series, coefficients, design, name=name)

        bands = [design.dependent, name] if design.dependent in fitted.band_names else [name]
        return self._with_spatial_coords(fitted.to_xarray(bands=bands))

    def fitted(
        self,
        order: int,
        dependent: str = "NDVI",
        nir: str | None = None,
        red: str | None = None,
        **options,
    ) -> xr.Dataset:
        """
        Fit harmonics and return observed and fitted series.

        Returns:
            xr.Dataset with (time, y, x) variables ``dependent`` and ``fitted``
        """
        design = build_design(order, dependent)
        coefs = fit_harmonic(self._derived(nir, red, dependent), design, **options)
        return self.reconstruct(coefs, design, nir=nir, red=red)

    def max_with_companion(self, primary: str, companion: str) -> xr.Dataset:
        """
        Per-pixel maximum of ``primary`` and ``companion`` at that frame.

        Returns:
            xr.Dataset with variables "max" and "companion"
        """
        peak, at_peak = max_with_companion(self.series, primary, companion)
        ds = xr.Dataset({"max": (("y", "x"), peak), "companion": (("y", "x"), at_peak)})
        return self._with_spatial_coords(ds)

    def _with_spatial_coords(self, ds: xr.Dataset) -> xr.Dataset:
        coords = {dim: self._ds.coords[dim] for dim in ("y", "x") if dim in self._ds.coords}
        return ds.assign_coords(coords) if coords else ds

    def __repr__(self) -> str:
        bands = self.series.band_names
        return f"<HarmonicAccessor: {len(bands)} bands, {self._ds.sizes.get('time', 0)} times>"
