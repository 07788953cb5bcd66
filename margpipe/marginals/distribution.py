# marginals/distribution.py
from __future__ import annotations

from typing import Generic, TypeVar, Callable, Any
from abc import ABC, abstractmethod

import numpy as np

from ..custom_types import Array, ArrayLike, Float, PRNG

__all__ = [
    "Distribution",
]

T = TypeVar("T", bound=np.number)


class Distribution(Generic[T], ABC):
    """
    Abstract base class for scalar distributions handled by margpipe.

    This class defines the interface shared by posterior marginals and
    anything that can be converted into one. Subclasses are expected to
    implement density evaluation; sampling, distribution functions and
    expectations are optional.

    Subclasses that cannot support a specific operation may leave that
    method unimplemented.

    Type Variables:
        T: Numeric data type (e.g., float or np.floating).
    """

    def sample(self, n_samples: int = 1, *, rng: PRNG | None = None) -> Array[T]:
        """
        Optional. Draws `n_samples` values from the distribution.

        Returns an array of shape (n_samples,).
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    def density(self, x: ArrayLike) -> Array[Float]:
        """
        Optional. Computes p(x) pointwise; output has the shape of `x`.
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    def log_density(self, x: ArrayLike) -> Array[Float]:
        """
        Computes log p(x) pointwise. Zero density maps to -inf.
        """
        with np.errstate(divide="ignore"):
            return np.log(self.density(x))

    def cdf(self, x: ArrayLike) -> Array[Float]:
        """
        Optional. Computes P[X <= x] pointwise.
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    def inv_cdf(self, u: ArrayLike) -> Array[Float]:
        """
        Optional. Quantile function, the inverse of `cdf`.
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    def expectation(self, func: Callable[[Array[T]], Array] | None = None) -> float:
        """
        Optional. Computes E[func(X)], or E[X] when `func` is None.
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    @classmethod
    @abstractmethod
    def from_distribution(cls, convert_from: Any, **fit_kwargs: Any) -> Distribution[T]:
        """
        Convert `convert_from` into a distribution of type `cls`. This will
        typically be an approximation, such as discretizing a continuous
        density onto a grid.
        """
        raise NotImplementedError("This method should be implemented by subclasses")
