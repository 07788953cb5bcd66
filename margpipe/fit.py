# fit.py
"""
Contract between margpipe and an external model-fitting backend.

A backend consumes a :class:`ModelSpec` (response, fixed-effect terms,
optional latent terms, likelihood family and priors) together with a
pandas DataFrame, and returns a :class:`ModelFitResult` holding the
posterior marginals of the fixed effects and hyperparameters plus the
fitted values with credible bounds. The approximate-inference solver itself
lives outside this package; only the data structures crossing that
boundary are defined here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
import pandas as pd
import scipy.stats as sp

from .custom_types import Array, ArrayLike
from .array_backend.utils import _ensure_probability, _ensure_real_scalar, _ensure_vector
from .defaults import DEFAULT_PROBABILITY
from .exceptions import InvalidInputError, MissingMarginalError
from .marginals.collection import MarginalSet
from .marginals.marginal import Marginal
from .marginals.toolkit import quantile, summarize, transform

__all__ = [
    "FAMILIES",
    "INTERCEPT",
    "FixedEffectPrior",
    "PrecisionPrior",
    "LatentTerm",
    "ModelSpec",
    "FittedValues",
    "ModelFitResult",
    "FitBackend",
]

logger = logging.getLogger(__name__)

FAMILIES: Tuple[str, ...] = ("gaussian", "poisson", "binomial", "gamma")
LATENT_MODELS: Tuple[str, ...] = ("iid", "ar1", "rw1", "rw2")
INTERCEPT = "(Intercept)"


# ------------------------------- Priors --------------------------------

@dataclass(frozen=True)
class FixedEffectPrior:
    """Gaussian prior N(mean, 1 / precision) on one fixed effect."""

    mean: float = 0.0
    precision: float = 0.001

    def __post_init__(self):
        mean = _ensure_real_scalar(self.mean, name="mean")
        precision = _ensure_real_scalar(self.precision, name="precision")
        if precision <= 0:
            raise InvalidInputError(f"precision must be > 0; got {precision}.")
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "precision", precision)

    def as_distribution(self):
        """The prior as a scipy frozen normal distribution."""
        return sp.norm(loc=self.mean, scale=1.0 / np.sqrt(self.precision))


@dataclass(frozen=True)
class PrecisionPrior:
    """Log-gamma prior on a log precision.

    The precision tau has a Gamma(shape, rate) prior; the prior is stated on
    theta = log(tau), which is the scale hyperparameters are optimized on.
    """

    shape: float = 1.0
    rate: float = 5e-5

    def __post_init__(self):
        for attr in ("shape", "rate"):
            value = _ensure_real_scalar(getattr(self, attr), name=attr)
            if value <= 0:
                raise InvalidInputError(f"{attr} must be > 0; got {value}.")
            object.__setattr__(self, attr, value)

    def as_distribution(self):
        """Distribution of theta = log(tau) as a scipy frozen distribution."""
        # log of Gamma(shape, 1) is loggamma(shape); dividing tau by rate shifts theta
        return sp.loggamma(self.shape, loc=-np.log(self.rate))

    def log_density(self, theta: ArrayLike) -> Array:
        """Log prior density at log precision `theta`."""
        return self.as_distribution().logpdf(np.asarray(theta, dtype=float))


# --------------------------- Model description -------------------------

@dataclass(frozen=True)
class LatentTerm:
    """A structured latent effect such as ``f(time, model="ar1")``."""

    covariate: str
    model: str = "ar1"
    hyper: Mapping[str, PrecisionPrior] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.covariate, str) or not self.covariate:
            raise InvalidInputError("latent term covariate must be a non-empty string.")
        if self.model not in LATENT_MODELS:
            raise InvalidInputError(
                f"unknown latent model {self.model!r}; expected one of {LATENT_MODELS}."
            )
        object.__setattr__(self, "hyper", MappingProxyType(dict(self.hyper)))

    def __hash__(self):
        return hash((self.covariate, self.model, tuple(sorted(self.hyper.items()))))

    def __str__(self) -> str:
        return f'f({self.covariate}, model="{self.model}")'


@dataclass(frozen=True)
class ModelSpec:
    """Model specification handed to a fitting backend.

    Attributes:
        response: Name of the response column.
        fixed: Names of the fixed-effect covariate columns.
        latent: Structured latent terms.
        family: Likelihood family, one of :data:`FAMILIES`.
        intercept: Whether the linear predictor includes an intercept.
        fixed_priors: Priors keyed by fixed-effect name (``"(Intercept)"``
            for the intercept); effects without an entry use the backend
            default.
        likelihood_prior: Prior on the observation precision (Gaussian
            family only).
    """

    response: str
    fixed: Sequence[str] = ()
    latent: Sequence[LatentTerm] = ()
    family: str = "gaussian"
    intercept: bool = True
    fixed_priors: Mapping[str, FixedEffectPrior] = field(default_factory=dict)
    likelihood_prior: PrecisionPrior | None = None

    def __post_init__(self):
        if not isinstance(self.response, str) or not self.response:
            raise InvalidInputError("response must be a non-empty string.")
        if self.family not in FAMILIES:
            raise InvalidInputError(f"unknown family {self.family!r}; expected one of {FAMILIES}.")

        fixed = tuple(self.fixed)
        if any(not isinstance(name, str) or not name for name in fixed):
            raise InvalidInputError("fixed-effect names must be non-empty strings.")
        if len(set(fixed)) != len(fixed):
            raise InvalidInputError(f"duplicate fixed-effect names in {fixed}.")
        object.__setattr__(self, "fixed", fixed)
        object.__setattr__(self, "latent", tuple(self.latent))
        object.__setattr__(self, "fixed_priors", MappingProxyType(dict(self.fixed_priors)))

        unknown = set(self.fixed_priors) - set(self.effect_names)
        if unknown:
            raise InvalidInputError(
                f"priors given for unknown effect(s) {sorted(unknown)}; effects are {list(self.effect_names)}."
            )
        if self.likelihood_prior is not None and self.family != "gaussian":
            raise InvalidInputError("likelihood_prior applies to the gaussian family only.")

    def __hash__(self):
        return hash((
            self.response, self.fixed, self.latent, self.family, self.intercept,
            tuple(sorted(self.fixed_priors.items())), self.likelihood_prior,
        ))

    @property
    def effect_names(self) -> Tuple[str, ...]:
        """Fixed-effect names as they appear in a fit result."""
        return ((INTERCEPT,) if self.intercept else ()) + tuple(self.fixed)

    @property
    def columns(self) -> Tuple[str, ...]:
        """Data columns the model reads."""
        return (self.response,) + tuple(self.fixed) + tuple(t.covariate for t in self.latent)

    @property
    def formula(self) -> str:
        """Model formula, e.g. ``y ~ x + f(time, model="ar1")``."""
        terms = list(self.fixed) + [str(t) for t in self.latent]
        if not self.intercept:
            terms = ["-1"] + terms
        rhs = " + ".join(terms) if terms else "1"
        return f"{self.response} ~ {rhs}"

    def prior_for(self, effect: str) -> FixedEffectPrior:
        """Prior of a fixed effect, falling back to the default prior."""
        if effect not in self.effect_names:
            raise MissingMarginalError(f"No fixed effect named {effect!r}. Available: {list(self.effect_names)}")
        return self.fixed_priors.get(effect, FixedEffectPrior())

    def validate_data(self, data: pd.DataFrame) -> None:
        """Raises InvalidInputError if `data` lacks a column the model reads."""
        missing = [c for c in self.columns if c not in data.columns]
        if missing:
            raise InvalidInputError(f"data is missing column(s) {missing} required by {self.formula}.")


# ------------------------------ Fit output -----------------------------

@dataclass(frozen=True, eq=False)
class FittedValues:
    """Posterior summary of the linear predictor at each observation.

    Attributes:
        index: Observation or time index, shape (n,).
        mean: Posterior mean, shape (n,).
        lower: Lower credible bound, shape (n,).
        upper: Upper credible bound, shape (n,).
        probability: Mass enclosed between the bounds.
    """

    index: Array
    mean: Array
    lower: Array
    upper: Array
    probability: float = DEFAULT_PROBABILITY

    def __post_init__(self):
        index = np.array(self.index)
        if index.ndim != 1:
            raise InvalidInputError(f"index must be one-dimensional; got shape {index.shape}.")
        n = index.size
        mean = _ensure_vector(self.mean, length=n, name="mean")
        lower = _ensure_vector(self.lower, length=n, name="lower")
        upper = _ensure_vector(self.upper, length=n, name="upper")
        if np.any(lower > mean) or np.any(mean > upper):
            raise InvalidInputError("fitted bounds must satisfy lower <= mean <= upper.")
        for attr, arr in (("index", index), ("mean", mean), ("lower", lower), ("upper", upper)):
            arr.flags.writeable = False
            object.__setattr__(self, attr, arr)
        object.__setattr__(self, "probability", _ensure_probability(self.probability))

    @classmethod
    def from_marginals(
        cls,
        marginals: Sequence[Marginal],
        index: ArrayLike | None = None,
        probability: float = DEFAULT_PROBABILITY,
    ) -> FittedValues:
        """Builds fitted values from one predictor marginal per observation.

        Bounds are the equal-tailed quantiles enclosing `probability`.
        """
        probability = _ensure_probability(probability)
        tail = 0.5 * (1.0 - probability)
        n = len(marginals)
        index = np.arange(1, n + 1) if index is None else index
        means = np.array([summarize(m).mean for m in marginals], dtype=float)
        bounds = np.array([quantile(m, [tail, 1.0 - tail]) for m in marginals], dtype=float).reshape(n, 2)
        return cls(
            index=index,
            mean=means,
            lower=np.minimum(bounds[:, 0], means),
            upper=np.maximum(bounds[:, 1], means),
            probability=probability,
        )

    def __len__(self) -> int:
        return int(self.index.size)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"mean": self.mean, "lower": self.lower, "upper": self.upper},
            index=pd.Index(self.index, name="index"),
        )


def _precision_to_sd(x: float) -> float:
    return (1.0 / x) ** 0.5


@dataclass(frozen=True)
class ModelFitResult:
    """Posterior output of one model fit.

    Attributes:
        fixed: Marginals of the fixed effects, keyed by effect name.
        hyperpar: Marginals of the hyperparameters, keyed by name.
        fitted: Fitted values with credible bounds, if the backend computed them.
        spec: The specification that was fitted, if known.
    """

    fixed: MarginalSet
    hyperpar: MarginalSet = field(default_factory=MarginalSet)
    fitted: FittedValues | None = None
    spec: ModelSpec | None = None

    def __post_init__(self):
        for attr in ("fixed", "hyperpar"):
            value = getattr(self, attr)
            if not isinstance(value, MarginalSet):
                object.__setattr__(self, attr, MarginalSet(value))
        if self.spec is not None:
            missing = [name for name in self.spec.effect_names if name not in self.fixed]
            if missing:
                logger.warning("fit result has no marginal for fixed effect(s) %s", missing)

    def fixed_effect(self, name: str) -> Marginal:
        return self.fixed[name]

    def hyperparameter(self, name: str) -> Marginal:
        return self.hyperpar[name]

    def marginal(self, name: str) -> Marginal:
        """Looks `name` up among the fixed effects, then the hyperparameters."""
        if name in self.fixed:
            return self.fixed[name]
        if name in self.hyperpar:
            return self.hyperpar[name]
        raise MissingMarginalError(
            f"No marginal named {name!r}. Fixed: {list(self.fixed)}; hyperparameters: {list(self.hyperpar)}"
        )

    def hyperparameter_sd(self, name: str) -> Marginal:
        """Marginal of the standard deviation 1/sqrt(tau) for a precision hyperparameter."""
        return transform(self.hyperpar[name], _precision_to_sd, name=f"SD for {name}")

    def summary_fixed(self, probability: float | None = None) -> pd.DataFrame:
        return self.fixed.to_frame(probability)

    def summary_hyperpar(self, probability: float | None = None) -> pd.DataFrame:
        return self.hyperpar.to_frame(probability)


@runtime_checkable
class FitBackend(Protocol):
    """Anything that can fit a ModelSpec to a DataFrame."""

    def fit(self, spec: ModelSpec, data: pd.DataFrame) -> ModelFitResult:
        ...
