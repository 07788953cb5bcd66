# marginals/interpolation.py
"""
Interpolation and quadrature on the knots of a marginal.

Densities between knots come from a piecewise cubic Hermite interpolant
(PCHIP). PCHIP is shape preserving: on each knot interval it stays between
the two end densities, so it never dips below zero and never invents a
spurious mode. Outside the knot range the density is zero.
"""
from __future__ import annotations

import numpy as np
from scipy.integrate import cumulative_trapezoid, trapezoid
from scipy.interpolate import PchipInterpolator

from ..custom_types import Array, ArrayLike


def density_interpolator(values: Array, densities: Array) -> PchipInterpolator:
    """Build the PCHIP interpolant through the knots (no extrapolation)."""
    return PchipInterpolator(values, densities, extrapolate=False)


def evaluate(interp: PchipInterpolator, x: ArrayLike) -> Array:
    """Evaluate `interp` at `x`, with zero outside the knot range."""
    out = np.asarray(interp(np.asarray(x, dtype=float)), dtype=float)
    out = np.where(np.isnan(out), 0.0, out)
    return np.maximum(out, 0.0)


def even_grid(lower: float, upper: float, n_points: int) -> Array:
    """`n_points` evenly spaced values from `lower` to `upper` inclusive."""
    grid = np.linspace(lower, upper, n_points)
    # pin the end points so the support is reproduced exactly
    grid[0], grid[-1] = lower, upper
    return grid


def mass(values: Array, densities: Array) -> float:
    """Trapezoid integral of the knot densities."""
    return float(trapezoid(densities, values))


def quadrature_weights(values: Array) -> Array:
    """Trapezoid weights w such that sum(w * d) == trapezoid(d, values)."""
    dx = np.diff(values)
    w = np.zeros_like(values, dtype=float)
    w[:-1] += 0.5 * dx
    w[1:] += 0.5 * dx
    return w


def grid_cdf(values: Array, densities: Array) -> Array:
    """Normalized cumulative trapezoid integral; starts at 0, ends at 1."""
    cum = cumulative_trapezoid(densities, values, initial=0.0)
    total = cum[-1]
    if total <= 0:
        # all mass sits on zero-width segments; treat as uniform over the grid
        return np.linspace(0.0, 1.0, values.size)
    return cum / total
