# plotting.py
"""
Matplotlib renderers for marginals, HPD regions and fitted-value bands.

Every function draws into `ax` when given, otherwise into a new figure, and
returns the Axes so calls can be chained or decorated further.
"""
from __future__ import annotations

from typing import Any

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes

from .custom_types import ArrayLike
from .defaults import DEFAULT_PROBABILITY, DEFAULT_RESAMPLE_POINTS
from .exceptions import InvalidInputError
from .fit import FittedValues
from .marginals.marginal import Marginal
from .marginals.toolkit import density_at, hpd_interval, resample

__all__ = [
    "plot_marginal",
    "plot_hpd",
    "plot_fitted",
]


def _axes(ax: Axes | None) -> Axes:
    if ax is None:
        _, ax = plt.subplots()
    return ax


def plot_marginal(
    marginal: Marginal,
    ax: Axes | None = None,
    *,
    n_points: int = DEFAULT_RESAMPLE_POINTS,
    label: str | None = None,
    **line_kwargs: Any,
) -> Axes:
    """Line plot of the resampled density of `marginal`."""
    ax = _axes(ax)
    smooth = resample(marginal, n_points)
    ax.plot(smooth.values, smooth.densities, label=label or marginal.name, **line_kwargs)
    ax.set_xlabel(marginal.name or "value")
    ax.set_ylabel("density")
    return ax


def plot_hpd(
    marginal: Marginal,
    probability: float = DEFAULT_PROBABILITY,
    ax: Axes | None = None,
    *,
    n_points: int = DEFAULT_RESAMPLE_POINTS,
    alpha: float = 0.3,
    **fill_kwargs: Any,
) -> Axes:
    """Density line with the HPD interval shaded down to the zero baseline."""
    ax = plot_marginal(marginal, ax, n_points=n_points)
    lo, hi = hpd_interval(marginal, probability)
    xs = np.linspace(lo, hi, n_points)
    ax.fill_between(
        xs, 0.0, density_at(marginal, xs),
        alpha=alpha, label=f"{probability:.0%} HPD", **fill_kwargs,
    )
    return ax


def plot_fitted(
    fitted: FittedValues,
    observed: ArrayLike | None = None,
    ax: Axes | None = None,
    *,
    alpha: float = 0.3,
    **line_kwargs: Any,
) -> Axes:
    """Fitted mean with its credible band, optionally over the observations."""
    ax = _axes(ax)
    if observed is not None:
        observed = np.asarray(observed, dtype=float)
        if observed.shape != fitted.mean.shape:
            raise InvalidInputError(
                f"observed has shape {observed.shape}; fitted values have {fitted.mean.shape}."
            )
        ax.scatter(fitted.index, observed, s=4, color="grey", label="observed")

    line, = ax.plot(fitted.index, fitted.mean, label="fitted mean", **line_kwargs)
    color = line.get_color()
    ax.plot(fitted.index, fitted.lower, linestyle="--", linewidth=0.8, color=color)
    ax.plot(fitted.index, fitted.upper, linestyle="--", linewidth=0.8, color=color)
    ax.fill_between(
        fitted.index, fitted.lower, fitted.upper,
        alpha=alpha, color=color, label=f"{fitted.probability:.0%} band",
    )
    ax.set_xlabel("index")
    return ax
