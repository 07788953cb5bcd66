# marginals/toolkit.py
"""
Operations on posterior marginals.

Every function here is pure: it reads the knots of its input Marginal and
returns new objects. Densities between knots come from the Marginal's PCHIP
interpolant (see :mod:`margpipe.marginals.interpolation`); integrals use the
trapezoid rule on an even grid spanning the support.

Operations that integrate (``hpd_interval``, ``summarize``, ``cdf``,
``quantile``, ``expectation``, ``sample``) normalize the resampled density
first, and log a warning when the raw knots are far from unit mass.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Sequence, Tuple

import numpy as np
from scipy.integrate import trapezoid

from ..custom_types import Array, ArrayLike, PRNG, ScalarFunc
from ..array_backend.utils import (
    _as_array,
    _ensure_point_count,
    _ensure_probability,
)
from ..defaults import (
    DEFAULT_FD_STEP,
    DEFAULT_HPD_POINTS,
    DEFAULT_PROBABILITY,
    DEFAULT_RESAMPLE_POINTS,
    DEFAULT_SUMMARY_POINTS,
    DEFAULT_TRANSFORM_BINS,
    MASS_TOLERANCE,
    SUMMARY_QUANTILES,
)
from ..exceptions import InvalidInputError, OutOfSupportError
from .interpolation import even_grid, evaluate, grid_cdf, mass, quadrature_weights
from .marginal import Marginal
from .results import CredibleInterval, MarginalSummary

__all__ = [
    "resample",
    "density_at",
    "hpd_interval",
    "hpd_regions",
    "transform",
    "summarize",
    "normalize",
    "cdf",
    "quantile",
    "mode",
    "expectation",
    "sample",
]

logger = logging.getLogger(__name__)


# ------------------------------ Helpers -------------------------------

def _check_mass(marginal: Marginal, context: str) -> None:
    m = marginal.mass
    if abs(m - 1.0) > MASS_TOLERANCE:
        logger.warning(
            "%s: marginal %r has mass %.4f; it is normalized before integrating.",
            context, marginal.name, m,
        )


def _normalized_grid(marginal: Marginal, n_points: int) -> Tuple[Array, Array]:
    """Even grid over the support and the normalized interpolated density."""
    n_points = _ensure_point_count(n_points)
    x = even_grid(*marginal.support, n_points)
    d = evaluate(marginal.interpolator, x)
    total = mass(x, d)
    if not total > 0:
        raise InvalidInputError(
            f"marginal {marginal.name!r} has zero mass on a {n_points}-point grid."
        )
    return x, d / total


def _invert_cdf(x: Array, F: Array, p: Array) -> Array:
    # first grid point at which each distinct CDF level is reached
    levels, first = np.unique(F, return_index=True)
    return np.interp(p, levels, x[first])


def _scalar_or_array(out: Array, like: Array) -> float | Array:
    return float(out) if like.ndim == 0 else out


def _apply(func: ScalarFunc, values: Array, *, strict: bool) -> Array:
    """Applies a scalar function knot by knot.

    With `strict=True` any failure raises InvalidInputError, otherwise the
    failing entries become NaN.
    """
    out = np.empty_like(values, dtype=float)
    with np.errstate(all="ignore"):
        for i, v in enumerate(values):
            try:
                out[i] = float(func(float(v)))
            except (ArithmeticError, ValueError, TypeError) as e:
                if strict:
                    raise InvalidInputError(
                        f"transform is undefined at value {v!r}: {e}"
                    ) from e
                out[i] = np.nan
    if strict and not np.all(np.isfinite(out)):
        bad = values[~np.isfinite(out)]
        raise InvalidInputError(
            f"transform is not finite at value(s) {bad[:5].tolist()}."
        )
    return out


def _derivative(func: ScalarFunc, values: Array, fx: Array, step: float) -> Array:
    """Central finite difference, one-sided where the centre stencil leaves the domain."""
    # relative to the knot value, but never below the step at the scale of the support
    h = step * np.maximum(np.abs(values), np.ptp(values))
    f_plus = _apply(func, values + h, strict=False)
    f_minus = _apply(func, values - h, strict=False)

    central = (f_plus - f_minus) / (2 * h)
    forward = (f_plus - fx) / h
    backward = (fx - f_minus) / h

    ok_plus, ok_minus = np.isfinite(f_plus), np.isfinite(f_minus)
    return np.where(
        ok_plus & ok_minus, central,
        np.where(ok_plus, forward, np.where(ok_minus, backward, np.nan)),
    )


def _rebin(values: Array, densities: Array, fx: Array, n_bins: int) -> Tuple[Array, Array]:
    """Histogram density of f(X) from the mass of each knot-to-knot segment.

    Each segment's trapezoid mass is spread uniformly over its image
    [min(f(a), f(b)), max(f(a), f(b))]. Degenerate images put their mass into
    the bin containing them.
    """
    seg_mass = 0.5 * (densities[:-1] + densities[1:]) * np.diff(values)
    a = np.minimum(fx[:-1], fx[1:])
    b = np.maximum(fx[:-1], fx[1:])

    edges = np.linspace(fx.min(), fx.max(), n_bins + 1)
    lo_e, hi_e = edges[:-1], edges[1:]

    width = b - a
    overlap = np.clip(
        np.minimum(b[:, None], hi_e[None, :]) - np.maximum(a[:, None], lo_e[None, :]),
        0.0, None,
    )
    safe_width = np.where(width > 0, width, 1.0)
    frac = np.where(width[:, None] > 0, overlap / safe_width[:, None], 0.0)

    flat = np.flatnonzero(width <= 0)
    if flat.size:
        bins = np.clip(np.searchsorted(edges, a[flat], side="right") - 1, 0, n_bins - 1)
        frac[flat, :] = 0.0
        frac[flat, bins] = 1.0

    dens = (seg_mass @ frac) / np.diff(edges)
    centers = 0.5 * (lo_e + hi_e)
    # end knots at the outer edges keep the trapezoid mass equal to the bin mass
    values = np.concatenate([edges[:1], centers, edges[-1:]])
    return values, np.concatenate([dens[:1], dens, dens[-1:]])


def _transformed_name(marginal: Marginal, func: ScalarFunc) -> str | None:
    fname = getattr(func, "__name__", None)
    if marginal.name is None or fname in (None, "<lambda>"):
        return marginal.name
    return f"{marginal.name}:{fname}"


# ---------------------------- Resampling ------------------------------

def resample(marginal: Marginal, n_points: int = DEFAULT_RESAMPLE_POINTS) -> Marginal:
    """Interpolates a marginal onto `n_points` evenly spaced knots.

    The new knots span exactly the same support. Densities come from the
    monotone cubic interpolant of the raw knots, so plots of the result are
    smooth even when the solver returned only a few dozen points.

    Args:
        marginal: Source marginal (at least two knots by construction).
        n_points: Number of output knots, at least 2.

    Returns:
        Marginal: The resampled marginal, same name.

    Raises:
        InvalidInputError: If ``n_points`` is not an integer >= 2.
    """
    n_points = _ensure_point_count(n_points)
    x = even_grid(*marginal.support, n_points)
    d = evaluate(marginal.interpolator, x)
    return Marginal(x, d, name=marginal.name)


def density_at(marginal: Marginal, x: ArrayLike, *, strict: bool = False) -> float | Array:
    """Evaluates the interpolated density at `x`.

    Points outside the support have density 0. With ``strict=True`` they
    raise instead.

    Args:
        marginal: Marginal to evaluate.
        x: Scalar or array of query points.
        strict: Raise on queries outside the support.

    Returns:
        float for scalar input, otherwise an array shaped like `x`.

    Raises:
        OutOfSupportError: If ``strict`` and any point lies outside the support.
    """
    arr = _as_array(x)
    if strict:
        lo, hi = marginal.support
        outside = (arr < lo) | (arr > hi) | np.isnan(arr)
        if np.any(outside):
            raise OutOfSupportError(
                f"{np.count_nonzero(outside)} point(s) outside the support "
                f"[{lo:.6g}, {hi:.6g}] of marginal {marginal.name!r}."
            )
    return _scalar_or_array(evaluate(marginal.interpolator, arr), arr)


def normalize(marginal: Marginal) -> Marginal:
    """Rescales the knot densities so their trapezoid integral is 1."""
    return Marginal(marginal.values, marginal.densities / marginal.mass, name=marginal.name)


# -------------------------- Credible regions --------------------------

def _hpd_mask(marginal: Marginal, probability: float, n_points: int) -> Tuple[Array, Array]:
    probability = _ensure_probability(probability)
    _check_mass(marginal, "hpd_interval")
    x, d = _normalized_grid(marginal, n_points)

    point_mass = quadrature_weights(x) * d
    point_mass /= point_mass.sum()

    order = np.argsort(-d, kind="stable")
    cum = np.cumsum(point_mass[order])
    k = min(int(np.searchsorted(cum, probability)), x.size - 1)
    threshold = d[order[k]]
    logger.debug(
        "hpd_interval: %r p=%.3f threshold=%.6g on %d points",
        marginal.name, probability, threshold, x.size,
    )
    inside = np.zeros(x.size, dtype=bool)
    inside[order[:k + 1]] = True
    return x, inside


def hpd_interval(
    marginal: Marginal,
    probability: float = DEFAULT_PROBABILITY,
    *,
    n_points: int = DEFAULT_HPD_POINTS,
) -> CredibleInterval:
    """Highest posterior density interval.

    Grid points are ranked by density and accumulated until they hold
    `probability` of the mass; the density of the last point admitted is the
    threshold. The accumulated points form the HPD region; among points tied
    at the threshold only as many as the mass requires are admitted, leftmost
    first.
    For a unimodal marginal the region is one interval. For a multimodal
    marginal this returns its convex hull (smallest and largest qualifying
    value); use :func:`hpd_regions` for the individual pieces.

    Args:
        marginal: Marginal to analyze.
        probability: Enclosed mass, strictly between 0 and 1.
        n_points: Resolution of the search grid.

    Returns:
        CredibleInterval: ``(lower, upper)`` with the requested probability.

    Raises:
        InvalidInputError: If ``probability`` is not in (0, 1).
    """
    x, inside = _hpd_mask(marginal, probability, n_points)
    qualifying = x[inside]
    return CredibleInterval(
        lower=float(qualifying.min()),
        upper=float(qualifying.max()),
        probability=float(probability),
    )


def hpd_regions(
    marginal: Marginal,
    probability: float = DEFAULT_PROBABILITY,
    *,
    n_points: int = DEFAULT_HPD_POINTS,
) -> List[Tuple[float, float]]:
    """HPD region as a list of disjoint ``(lower, upper)`` intervals, left to right."""
    x, inside = _hpd_mask(marginal, probability, n_points)
    idx = np.flatnonzero(inside)
    breaks = np.flatnonzero(np.diff(idx) > 1)
    starts = np.concatenate([idx[:1], idx[breaks + 1]])
    ends = np.concatenate([idx[breaks], idx[-1:]])
    return [(float(x[s]), float(x[e])) for s, e in zip(starts, ends)]


# --------------------------- Transformation ---------------------------

def transform(
    marginal: Marginal,
    func: ScalarFunc,
    *,
    name: str | None = None,
    step: float = DEFAULT_FD_STEP,
    n_bins: int = DEFAULT_TRANSFORM_BINS,
) -> Marginal:
    """Marginal of ``func(X)`` by the change-of-variables rule.

    Each knot ``(v, d)`` maps to ``(func(v), d / |func'(v)|)`` with the
    derivative estimated by a central finite difference of relative size
    `step`. The result is sorted by the new values, so decreasing maps such
    as ``lambda x: (1 / x) ** 0.5`` (precision to standard deviation) work
    as expected.

    If ``func`` is not strictly monotone over the knots the pointwise rule
    would give a multi-valued curve. In that case the mass of each
    knot-to-knot segment is spread over its image on `n_bins` even bins and
    the histogram density is returned. This is an approximation and is
    logged as a warning.

    Args:
        marginal: Source marginal.
        func: Scalar function applied to each knot value.
        name: Name of the result. Defaults to the source name, suffixed with
            the function name when it has one.
        step: Relative finite-difference step.
        n_bins: Bin count for the non-monotone fallback.

    Returns:
        Marginal: The transformed marginal.

    Raises:
        InvalidInputError: If ``func`` raises or is non-finite at any knot, or
            its derivative vanishes or cannot be estimated at a knot.
    """
    v, d = marginal.values, marginal.densities
    fx = _apply(func, v, strict=True)
    out_name = name if name is not None else _transformed_name(marginal, func)

    steps = np.diff(fx)
    if np.all(steps > 0) or np.all(steps < 0):
        jac = np.abs(_derivative(func, v, fx, step))
        if not np.all(np.isfinite(jac)):
            raise InvalidInputError("transform derivative could not be estimated at every knot.")
        if np.any(jac == 0):
            raise InvalidInputError(
                f"transform has zero derivative at value(s) {v[jac == 0][:5].tolist()}."
            )
        dens = d / jac
        if steps[0] < 0:
            fx, dens = fx[::-1], dens[::-1]
        return Marginal(fx, dens, name=out_name)

    if fx.max() == fx.min():
        raise InvalidInputError("transform maps the whole support to a single value.")

    n_bins = _ensure_point_count(n_bins, name="n_bins")
    logger.warning(
        "transform: %s is not monotone over the support of %r; "
        "re-binning onto %d bins (approximate density).",
        getattr(func, "__name__", "func"), marginal.name, n_bins,
    )
    knots, dens = _rebin(v, d, fx, n_bins)
    return Marginal(knots, dens, name=out_name)


# ----------------------------- Summaries ------------------------------

def cdf(marginal: Marginal, x: ArrayLike, *, n_points: int = DEFAULT_SUMMARY_POINTS) -> float | Array:
    """Distribution function P[X <= x]; 0 below and 1 above the support."""
    arr = _as_array(x)
    grid, d = _normalized_grid(marginal, n_points)
    F = grid_cdf(grid, d)
    return _scalar_or_array(np.interp(arr, grid, F, left=0.0, right=1.0), arr)


def quantile(marginal: Marginal, p: ArrayLike, *, n_points: int = DEFAULT_SUMMARY_POINTS) -> float | Array:
    """Quantile function, the inverse of :func:`cdf`.

    Raises:
        InvalidInputError: If any level lies outside [0, 1].
    """
    arr = _as_array(p)
    if np.any(~((arr >= 0.0) & (arr <= 1.0))):
        raise InvalidInputError("quantile levels must lie in [0, 1].")
    grid, d = _normalized_grid(marginal, n_points)
    F = grid_cdf(grid, d)
    return _scalar_or_array(_invert_cdf(grid, F, arr), arr)


def mode(marginal: Marginal, *, n_points: int = DEFAULT_SUMMARY_POINTS) -> float:
    """Location of the maximum of the interpolated density."""
    grid, d = _normalized_grid(marginal, n_points)
    return float(grid[np.argmax(d)])


def expectation(
    marginal: Marginal,
    func: Callable[[Array], ArrayLike] | None = None,
    *,
    n_points: int = DEFAULT_SUMMARY_POINTS,
) -> float:
    """E[func(X)] by trapezoid quadrature; the mean when `func` is None.

    `func` is called once with the whole grid and must be vectorized.
    """
    _check_mass(marginal, "expectation")
    grid, d = _normalized_grid(marginal, n_points)
    fx = grid if func is None else np.asarray(func(grid), dtype=float)
    if fx.shape != grid.shape:
        raise InvalidInputError(
            f"func returned shape {fx.shape}; expected {grid.shape} (it must be vectorized)."
        )
    return float(trapezoid(fx * d, grid))


def sample(
    marginal: Marginal,
    n_samples: int,
    *,
    rng: PRNG | None = None,
    n_points: int = DEFAULT_SUMMARY_POINTS,
) -> Array:
    """Inverse-CDF draws from the marginal, shape (n_samples,)."""
    n_samples = _ensure_point_count(n_samples, minimum=0, name="n_samples")
    rng = rng or np.random.default_rng()
    grid, d = _normalized_grid(marginal, n_points)
    F = grid_cdf(grid, d)
    return _invert_cdf(grid, F, rng.random(n_samples))


def summarize(
    marginal: Marginal,
    *,
    n_points: int = DEFAULT_SUMMARY_POINTS,
    quantiles: Sequence[float] = SUMMARY_QUANTILES,
) -> MarginalSummary:
    """Mean, standard deviation, 2.5/50/97.5% quantiles and mode.

    Moments are trapezoid integrals of the normalized, resampled density;
    quantiles invert its cumulative integral.

    Args:
        marginal: Marginal to summarize.
        n_points: Integration grid size.
        quantiles: The three quantile levels reported as q025, q500, q975.

    Returns:
        MarginalSummary
    """
    if len(quantiles) != 3:
        raise InvalidInputError(f"summarize reports exactly 3 quantiles; got {len(quantiles)}.")
    levels = np.array([_ensure_probability(q) for q in quantiles])

    _check_mass(marginal, "summarize")
    x, d = _normalized_grid(marginal, n_points)

    mean = float(trapezoid(x * d, x))
    var = float(trapezoid((x - mean) ** 2 * d, x))
    q = _invert_cdf(x, grid_cdf(x, d), levels)

    return MarginalSummary(
        mean=mean,
        sd=float(np.sqrt(max(var, 0.0))),
        q025=float(q[0]),
        q500=float(q[1]),
        q975=float(q[2]),
        mode=float(x[np.argmax(d)]),
    )
