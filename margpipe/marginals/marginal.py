# marginals/marginal.py
from __future__ import annotations

from functools import cached_property
from typing import Any, Callable

import numpy as np
from scipy.interpolate import PchipInterpolator

from ..custom_types import Array, ArrayLike, Float, PRNG, ScalarFunc
from ..array_backend.utils import (
    _ensure_knots,
    _ensure_knot_table,
    _ensure_point_count,
    _ensure_real_scalar,
)
from ..defaults import (
    DEFAULT_DISCRETIZE_POINTS,
    DEFAULT_PROBABILITY,
    DEFAULT_RESAMPLE_POINTS,
    DISCRETIZE_TAIL,
)
from ..exceptions import InvalidInputError
from .distribution import Distribution
from .interpolation import density_interpolator, even_grid, evaluate, mass
from .results import CredibleInterval, MarginalSummary

__all__ = [
    "Marginal",
]


class Marginal(Distribution):
    """
    Scalar posterior marginal stored as a table of (value, density) knots.

    This is the representation approximate-inference solvers hand back for
    each fixed effect and hyperparameter: a short, value-sorted list of
    points on the density curve. Between knots the density is given by a
    shape-preserving cubic interpolant; outside the knots it is zero.

    Instances are immutable. The knot arrays are read-only views and every
    operation (resampling, transforming, normalizing) returns a new object.

    Attributes:
        name (str | None): Parameter name, e.g. ``"(Intercept)"``.
        values (Array): Knot locations, strictly increasing, shape (n,).
        densities (Array): Nonnegative densities at the knots, shape (n,).
    """

    def __init__(
        self,
        values: ArrayLike,
        densities: ArrayLike,
        *,
        name: str | None = None,
        sort: bool = False,
    ):
        """Initializes a Marginal from its knots.

        Args:
            values: Knot locations, shape (n,).
            densities: Density at each knot, shape (n,).
            name: Optional parameter name.
            sort: If True, knots are sorted by value first. Otherwise values
                must already be strictly increasing.

        Raises:
            InvalidInputError: If fewer than two knots are given, values are
                not strictly increasing (or not distinct when ``sort=True``),
                any entry is non-finite, any density is negative, or all
                densities are zero.
        """
        x, d = _ensure_knots(values, densities, sort=sort)
        x.flags.writeable = False
        d.flags.writeable = False

        self._x = x
        self._d = d
        self._name = name

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_pairs(cls, pairs: ArrayLike, *, name: str | None = None,
                   sort: bool = False) -> Marginal:
        """Builds a Marginal from an (n, 2) table of (value, density) rows."""
        values, densities = _ensure_knot_table(pairs)
        return cls(values, densities, name=name, sort=sort)

    @classmethod
    def from_density(
        cls,
        func: Callable[[Array], ArrayLike],
        lower: float,
        upper: float,
        num_points: int = DEFAULT_DISCRETIZE_POINTS,
        *,
        name: str | None = None,
    ) -> Marginal:
        """Discretizes a vectorized density function on an even grid.

        Args:
            func: Density function accepting an array of values.
            lower: Left end of the support.
            upper: Right end of the support.
            num_points: Number of knots.
            name: Optional parameter name.

        Raises:
            InvalidInputError: If the bounds are not ordered or ``func``
                returns an array of the wrong shape.
        """
        lower = _ensure_real_scalar(lower, name="lower")
        upper = _ensure_real_scalar(upper, name="upper")
        if not lower < upper:
            raise InvalidInputError(f"lower must be < upper; got [{lower}, {upper}].")
        num_points = _ensure_point_count(num_points, name="num_points")

        grid = even_grid(lower, upper, num_points)
        dens = np.asarray(func(grid), dtype=float)
        if dens.shape != grid.shape:
            raise InvalidInputError(
                f"density function returned shape {dens.shape}; expected {grid.shape}."
            )
        return cls(grid, dens, name=name)

    @classmethod
    def from_distribution(
        cls,
        convert_from: Any,
        *,
        num_points: int = DEFAULT_DISCRETIZE_POINTS,
        support: tuple[float, float] | None = None,
        name: str | None = None,
    ) -> Marginal:
        """Discretizes another distribution onto an even grid.

        Supported sources are scipy frozen distributions (``pdf``/``ppf``),
        other margpipe distributions (``density``/``inv_cdf``) and Marginals,
        which are resampled.

        Args:
            convert_from: Source distribution.
            num_points: Number of knots in the result.
            support: Optional ``(lower, upper)`` bounds. When omitted they are
                taken from the source quantiles at ``DISCRETIZE_TAIL`` and
                ``1 - DISCRETIZE_TAIL``.
            name: Optional name for the result.

        Raises:
            InvalidInputError: If the source exposes neither a density nor
                a quantile function usable for bounds.
        """
        if isinstance(convert_from, Marginal):
            from .toolkit import resample
            out = resample(convert_from, num_points)
            return out if name is None else out.with_name(name)

        if hasattr(convert_from, "pdf") and hasattr(convert_from, "ppf"):
            density, inv_cdf = convert_from.pdf, convert_from.ppf
        elif isinstance(convert_from, Distribution):
            density, inv_cdf = convert_from.density, convert_from.inv_cdf
        else:
            raise InvalidInputError(
                f"Cannot convert {type(convert_from).__name__} to a Marginal; "
                "expected a scipy frozen distribution or a margpipe Distribution."
            )

        if support is None:
            try:
                lower = float(np.ravel(inv_cdf(DISCRETIZE_TAIL))[0])
                upper = float(np.ravel(inv_cdf(1.0 - DISCRETIZE_TAIL))[0])
            except NotImplementedError as e:
                raise InvalidInputError(
                    f"{type(convert_from).__name__} has no quantile function; pass support=(lower, upper)."
                ) from e
        else:
            lower, upper = support

        return cls.from_density(
            lambda x: np.ravel(density(x)), lower, upper, num_points, name=name,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str | None:
        """str | None: Parameter name."""
        return self._name

    @property
    def values(self) -> Array:
        """Array: Read-only knot locations, shape (n,)."""
        return self._x

    @property
    def densities(self) -> Array:
        """Array: Read-only knot densities, shape (n,)."""
        return self._d

    @property
    def n(self) -> int:
        """int: Number of knots."""
        return int(self._x.size)

    @property
    def support(self) -> tuple[float, float]:
        """tuple[float, float]: First and last knot value."""
        return float(self._x[0]), float(self._x[-1])

    @property
    def mass(self) -> float:
        """float: Trapezoid integral of the knots; close to 1 for solver output."""
        return mass(self._x, self._d)

    @property
    def pairs(self) -> Array:
        """Array: Copy of the knots as an (n, 2) table."""
        return np.column_stack([self._x, self._d])

    @cached_property
    def interpolator(self) -> PchipInterpolator:
        """PchipInterpolator: Interpolant through the knots, built on first use."""
        return density_interpolator(self._x, self._d)

    def with_name(self, name: str | None) -> Marginal:
        """Returns a copy of this marginal carrying a different name."""
        return type(self)(self._x, self._d, name=name)

    # ------------------------------------------------------------------
    # Distribution interface
    # ------------------------------------------------------------------

    def density(self, x: ArrayLike) -> Array[Float]:
        """Interpolated density at `x`; zero outside the support."""
        return evaluate(self.interpolator, x)

    def cdf(self, x: ArrayLike) -> Array[Float]:
        from .toolkit import cdf
        return np.asarray(cdf(self, x), dtype=float)

    def inv_cdf(self, u: ArrayLike) -> Array[Float]:
        from .toolkit import quantile
        return np.asarray(quantile(self, u), dtype=float)

    def sample(self, n_samples: int = 1, *, rng: PRNG | None = None) -> Array[Float]:
        from .toolkit import sample
        return sample(self, n_samples, rng=rng)

    rvs = sample

    def expectation(self, func: Callable[[Array], Array] | None = None) -> float:
        from .toolkit import expectation
        return expectation(self, func)

    def mean(self) -> float:
        """Posterior mean."""
        return self.expectation()

    def var(self) -> float:
        """Posterior variance."""
        m = self.mean()
        return self.expectation(lambda x: (x - m) ** 2)

    def std(self) -> float:
        """Posterior standard deviation."""
        return float(np.sqrt(max(self.var(), 0.0)))

    # ------------------------------------------------------------------
    # Toolkit shortcuts
    # ------------------------------------------------------------------

    def resample(self, n_points: int = DEFAULT_RESAMPLE_POINTS) -> Marginal:
        from .toolkit import resample
        return resample(self, n_points)

    def hpd(self, probability: float = DEFAULT_PROBABILITY) -> CredibleInterval:
        from .toolkit import hpd_interval
        return hpd_interval(self, probability)

    def transform(self, func: ScalarFunc, *, name: str | None = None) -> Marginal:
        from .toolkit import transform
        return transform(self, func, name=name)

    def summarize(self) -> MarginalSummary:
        from .toolkit import summarize
        return summarize(self)

    def normalize(self) -> Marginal:
        from .toolkit import normalize
        return normalize(self)

    def __len__(self) -> int:
        return self.n

    def __repr__(self) -> str:
        lo, hi = self.support
        return f"Marginal(name={self._name!r}, n={self.n}, support=[{lo:.4g}, {hi:.4g}])"
