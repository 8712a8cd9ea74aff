"""
Per-pixel harmonic regression solver

Every pixel is an independent ordinary least-squares problem

    minimize ||X b - y||

where X holds the independent bands of each frame at that pixel (one row per
frame) and y the dependent band. Rows with any invalid value are dropped per
pixel, so pixels may use different numbers of observations.

Solutions come from an SVD pseudo-inverse in float64. A pixel gets NaN
coefficients when it has fewer valid observations than parameters, when its
design matrix is rank-deficient, or (strict mode) when its condition number
exceeds ``max_condition``. None of these abort the fit.
"""

import logging
import warnings
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
import xarray as xr
from numpy.typing import NDArray

from pixelharmonics.core.design import DesignSpec, add_harmonic_terms, design_arrays
from pixelharmonics.core.exceptions import ConfigurationError, NumericInstabilityWarning
from pixelharmonics.core.frame import Series
from pixelharmonics.core.parallel import resolve_workers, run_row_chunks

logger = logging.getLogger(__name__)

STRATEGIES = ("batched", "pixelwise")

# Upper bound on pixels per stacked SVD call
_BATCH_PIXELS = 4096


@dataclass
class SolverOptions:
    """
    Solver configuration

    Attributes:
        strategy: "batched" (group pixels by validity pattern) or "pixelwise"
        workers: Threads for row chunks (None = CPU count)
        chunk_rows: Raster rows per chunk
        rcond: Relative singular value cutoff for the rank test
               (default: max(N, P) * machine epsilon)
        max_condition: Reject pixels whose condition number exceeds this
                       (None = only reject rank-deficient pixels)

    Examples:
        >>> opts = SolverOptions(strategy="pixelwise", workers=4)
        >>> SolverOptions.from_dict(opts.to_dict()) == opts
        True
    """

    strategy: str = "batched"
    workers: int | None = 1
    chunk_rows: int = 256
    rcond: float | None = None
    max_condition: float | None = None

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown strategy '{self.strategy}'. Choose from {list(STRATEGIES)}"
            )
        resolve_workers(self.workers)
        if self.chunk_rows < 1:
            raise ConfigurationError(f"chunk_rows must be >= 1, got {self.chunk_rows}")
        if self.rcond is not None and not 0 <= self.rcond < 1:
            raise ConfigurationError(f"rcond must be in [0, 1), got {self.rcond}")
        if self.max_condition is not None and self.max_condition < 1:
            raise ConfigurationError(f"max_condition must be >= 1, got {self.max_condition}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SolverOptions":
        return cls(**data)


@dataclass(frozen=True, eq=False)
class CoefficientImage:
    """
    Per-pixel regression coefficients

    Attributes:
        coefficients: (rows, cols, P) array, NaN for invalid pixels
        names: Independent band name of each coefficient
        n_observations: (rows, cols) count of valid observations per pixel
        rmse: (rows, cols) root mean squared residual of each fit
        r_squared: (rows, cols) coefficient of determination of each fit

    Examples:
        >>> coefs = fit_harmonic(series, build_design(3))
        >>> coefs.band("cos1").shape
        (64, 64)
        >>> coefs.valid.mean()  # fraction of pixels with a fit
    """

    coefficients: NDArray
    names: tuple[str, ...]
    n_observations: NDArray
    rmse: NDArray
    r_squared: NDArray

    def __post_init__(self):
        if self.coefficients.ndim != 3 or self.coefficients.shape[-1] != len(self.names):
            raise ConfigurationError(
                f"Coefficient array of shape {self.coefficients.shape} "
                f"does not match {len(self.names)} names"
            )
        object.__setattr__(self, "names", tuple(self.names))
        for attr in ("coefficients", "n_observations", "rmse", "r_squared"):
            array = np.array(getattr(self, attr), copy=True)
            array.flags.writeable = False
            object.__setattr__(self, attr, array)

    @property
    def shape(self) -> tuple[int, int]:
        """Spatial shape (rows, cols)"""
        return self.coefficients.shape[:2]

    @property
    def n_params(self) -> int:
        return len(self.names)

    @property
    def valid(self) -> NDArray:
        """True where the pixel has a coefficient vector"""
        return np.isfinite(self.coefficients).all(axis=-1)

    def band(self, name: str) -> NDArray:
        """Coefficient image of one independent variable"""
        try:
            index = self.names.index(name)
        except ValueError:
            raise ConfigurationError(
                f"No coefficient '{name}'. Available: {list(self.names)}"
            ) from None
        return self.coefficients[..., index]

    def amplitude(self, harmonic: int = 1) -> NDArray:
        """Amplitude sqrt(cos_i^2 + sin_i^2) of harmonic ``i``"""
        return np.hypot(self.band(f"cos{harmonic}"), self.band(f"sin{harmonic}"))

    def phase(self, harmonic: int = 1) -> NDArray:
        """Phase atan2(sin_i, cos_i) of harmonic ``i``, in radians"""
        return np.arctan2(self.band(f"sin{harmonic}"), self.band(f"cos{harmonic}"))

    def to_xarray(self) -> xr.Dataset:
        """Dataset with a (y, x, coefficient) array plus fit diagnostics"""
        return xr.Dataset(
            data_vars={
                "coefficients": (("y", "x", "coefficient"), self.coefficients),
                "n_observations": (("y", "x"), self.n_observations),
                "rmse": (("y", "x"), self.rmse),
                "r_squared": (("y", "x"), self.r_squared),
            },
            coords={"coefficient": list(self.names)},
        )

    @classmethod
    def from_xarray(cls, ds: xr.Dataset) -> "CoefficientImage":
        """Inverse of to_xarray()"""
        coefficients = ds["coefficients"].transpose("y", "x", "coefficient")
        return cls(
            coefficients=coefficients.values,
            names=tuple(str(name) for name in coefficients["coefficient"].values),
            n_observations=ds["n_observations"].transpose("y", "x").values,
            rmse=ds["rmse"].transpose("y", "x").values,
            r_squared=ds["r_squared"].transpose("y", "x").values,
        )

    def __repr__(self) -> str:
        return (
            f"<CoefficientImage>\n"
            f"  Shape: {self.shape}\n"
            f"  Coefficients: {', '.join(self.names)}\n"
            f"  Valid pixels: {int(self.valid.sum())} / {self.valid.size}"
        )


@dataclass
class _ChunkStats:
    insufficient: int = 0
    unstable: int = 0


def _accept(
    s: NDArray, n_obs: int, n_params: int, rcond: float | None, max_condition: float | None
) -> NDArray:
    """Rank (and optional conditioning) test on stacked singular values (G, P)"""
    s_max = s[:, 0]
    s_min = s[:, -1]
    cutoff = rcond if rcond is not None else max(n_obs, n_params) * np.finfo(np.float64).eps
    ok = (s_max > 0) & (s_min > cutoff * s_max)
    if max_condition is not None:
        ok &= s_min * max_condition >= s_max
    return ok


def _svd_solve(
    X: NDArray, y: NDArray, rcond: float | None, max_condition: float | None
) -> tuple[NDArray, NDArray]:
    """
    Solve a stack of least-squares problems through the SVD

    Args:
        X: (G, n, P) design matrices with n >= P
        y: (G, n) responses

    Returns:
        (beta, ok): beta is (G, P), NaN where ok is False
    """
    _, n_obs, n_params = X.shape
    U, s, Vt = np.linalg.svd(X, full_matrices=False)
    ok = _accept(s, n_obs, n_params, rcond, max_condition)

    s_inv = np.zeros_like(s)
    np.divide(1.0, s, out=s_inv, where=ok[:, None])

    # beta = V diag(1/s) U^T y
    uty = np.einsum("gnp,gn->gp", U, y)
    beta = np.einsum("gpq,gp->gq", Vt, uty * s_inv)
    beta[~ok] = np.nan
    return beta, ok


def _fit_statistics(X: NDArray, y: NDArray, beta: NDArray) -> tuple[NDArray, NDArray]:
    """RMSE and R^2 of each fit; X broadcasts against (G, n, P)"""
    predicted = np.einsum("...np,...p->...n", X, beta)
    rss = np.sum((y - predicted) ** 2, axis=-1)
    tss = np.sum((y - y.mean(axis=-1, keepdims=True)) ** 2, axis=-1)

    rmse = np.sqrt(rss / y.shape[-1])
    with np.errstate(divide="ignore", invalid="ignore"):
        r_squared = np.where(tss > 0, 1.0 - rss / tss, np.nan)
    return rmse, r_squared


def _solve_group(
    X: NDArray, y: NDArray, options: SolverOptions
) -> tuple[NDArray, NDArray, NDArray, NDArray]:
    """
    Solve pixels that share one validity pattern

    When every pixel in the group has the same design matrix (the usual case
    for harmonic regressors, which are constant over a frame) one
    pseudo-inverse serves the whole group.

    Returns:
        (beta, ok, rmse, r_squared) per pixel
    """
    n_pixels, n_obs, n_params = X.shape

    if np.array_equal(X, np.broadcast_to(X[:1], X.shape)):
        design = X[0]
        U, s, Vt = np.linalg.svd(design, full_matrices=False)
        if not _accept(s[None], n_obs, n_params, options.rcond, options.max_condition)[0]:
            nan = np.full(n_pixels, np.nan)
            return np.full((n_pixels, n_params), np.nan), np.zeros(n_pixels, bool), nan, nan
        pinv = (Vt.T / s) @ U.T
        beta = y @ pinv.T
        rmse, r_squared = _fit_statistics(design, y, beta)
        return beta, np.ones(n_pixels, bool), rmse, r_squared

    betas, oks, rmses, r2s = [], [], [], []
    for start in range(0, n_pixels, _BATCH_PIXELS):
        Xb = X[start : start + _BATCH_PIXELS]
        yb = y[start : start + _BATCH_PIXELS]
        beta, ok = _svd_solve(Xb, yb, options.rcond, options.max_condition)
        rmse, r_squared = _fit_statistics(Xb, yb, beta)
        betas.append(beta)
        oks.append(ok)
        rmses.append(rmse)
        r2s.append(r_squared)
    return np.concatenate(betas), np.concatenate(oks), np.concatenate(rmses), np.concatenate(r2s)


def _solve_batched(
    X: NDArray, y: NDArray, valid: NDArray, options: SolverOptions
) -> tuple[NDArray, NDArray, NDArray, _ChunkStats]:
    """Solve flattened pixels (M, N, P) grouped by observation validity pattern"""
    n_pixels, _, n_params = X.shape
    beta = np.full((n_pixels, n_params), np.nan)
    rmse = np.full(n_pixels, np.nan)
    r_squared = np.full(n_pixels, np.nan)
    stats = _ChunkStats()

    patterns, inverse = np.unique(valid, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)

    for k, pattern in enumerate(patterns):
        pixels = np.flatnonzero(inverse == k)
        n_obs = int(pattern.sum())
        if n_obs < n_params:
            stats.insufficient += len(pixels)
            continue

        Xg = X[pixels][:, pattern, :]
        yg = y[pixels][:, pattern]
        beta_g, ok, rmse_g, r2_g = _solve_group(Xg, yg, options)
        beta[pixels] = beta_g
        rmse[pixels] = np.where(ok, rmse_g, np.nan)
        r_squared[pixels] = np.where(ok, r2_g, np.nan)
        stats.unstable += int((~ok).sum())

    return beta, rmse, r_squared, stats


def _solve_pixelwise(
    X: NDArray, y: NDArray, valid: NDArray, options: SolverOptions
) -> tuple[NDArray, NDArray, NDArray, _ChunkStats]:
    """Solve flattened pixels (M, N, P) one at a time"""
    n_pixels, _, n_params = X.shape
    beta = np.full((n_pixels, n_params), np.nan)
    rmse = np.full(n_pixels, np.nan)
    r_squared = np.full(n_pixels, np.nan)
    stats = _ChunkStats()

    for m in range(n_pixels):
        rows = valid[m]
        if rows.sum() < n_params:
            stats.insufficient += 1
            continue

        Xm = X[m, rows][None]
        ym = y[m, rows][None]
        beta_m, ok = _svd_solve(Xm, ym, options.rcond, options.max_condition)
        if not ok[0]:
            stats.unstable += 1
            continue

        rmse_m, r2_m = _fit_statistics(Xm, ym, beta_m)
        beta[m] = beta_m[0]
        rmse[m] = rmse_m[0]
        r_squared[m] = r2_m[0]

    return beta, rmse, r_squared, stats


def fit_harmonic(
    series: Series,
    design: DesignSpec,
    *,
    options: SolverOptions | None = None,
    **overrides: Any,
) -> CoefficientImage:
    """
    Fit a harmonic regression independently at every pixel

    Args:
        series: Frames carrying the dependent band and the ``t`` and
                ``constant`` bands; missing cos/sin bands are derived from ``t``
        design: Design specification (order, dependent band)
        options: Solver options
        **overrides: Individual SolverOptions fields (e.g. workers=4)

    Returns:
        CoefficientImage of shape (rows, cols, 2 + 2K)

    Raises:
        ConfigurationError: Missing bands, empty series, bad options

    Warns:
        NumericInstabilityWarning: Some pixels with enough observations were
            rejected as rank-deficient or ill-conditioned

    Examples:
        >>> series = derive_bands(scenes, nir="B5", red="B4")
        >>> coefs = fit_harmonic(series, build_design(3), workers=4)
    """
    if options is None:
        options = SolverOptions(**overrides)
    elif overrides:
        options = SolverOptions(**{**options.to_dict(), **overrides})

    series = add_harmonic_terms(series, design)
    X, y = design_arrays(series, design)
    n_frames, n_rows, n_cols, n_params = X.shape

    logger.debug(
        "Fitting order-%d harmonics: %d frames, %dx%d pixels, strategy=%s",
        design.order,
        n_frames,
        n_rows,
        n_cols,
        options.strategy,
    )

    coefficients = np.full((n_rows, n_cols, n_params), np.nan)
    n_observations = np.zeros((n_rows, n_cols), dtype=np.int64)
    rmse_image = np.full((n_rows, n_cols), np.nan)
    r2_image = np.full((n_rows, n_cols), np.nan)
    solve = _solve_batched if options.strategy == "batched" else _solve_pixelwise

    def _fit_rows(rows: slice) -> _ChunkStats:
        # (N, r, C, P) -> (r*C, N, P)
        Xc = np.moveaxis(X[:, rows], 0, 2).reshape(-1, n_frames, n_params)
        yc = np.moveaxis(y[:, rows], 0, 2).reshape(-1, n_frames)
        valid = np.isfinite(Xc).all(axis=-1) & np.isfinite(yc)

        beta, rmse, r_squared, stats = solve(Xc, yc, valid, options)

        chunk_rows = rows.stop - rows.start
        coefficients[rows] = beta.reshape(chunk_rows, n_cols, n_params)
        n_observations[rows] = valid.sum(axis=-1).reshape(chunk_rows, n_cols)
        rmse_image[rows] = rmse.reshape(chunk_rows, n_cols)
        r2_image[rows] = r_squared.reshape(chunk_rows, n_cols)
        return stats

    stats = run_row_chunks(_fit_rows, n_rows, options.chunk_rows, options.workers)
    insufficient = sum(s.insufficient for s in stats)
    unstable = sum(s.unstable for s in stats)

    result = CoefficientImage(
        coefficients=coefficients,
        names=design.independents,
        n_observations=n_observations,
        rmse=rmse_image,
        r_squared=r2_image,
    )

    if insufficient:
        logger.debug("%d pixels have fewer than %d valid observations", insufficient, n_params)
    if unstable:
        warnings.warn(
            f"{unstable} pixels rejected as rank-deficient or ill-conditioned",
            NumericInstabilityWarning,
            stacklevel=2,
        )
    logger.info(
        "Fitted %d of %d pixels (order %d, %d frames)",
        int(result.valid.sum()),
        n_rows * n_cols,
        design.order,
        n_frames,
    )
    return result
