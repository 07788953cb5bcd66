"""margpipe: post-processing toolkit for posterior marginals."""

from margpipe.exceptions import (
    MarginalError,
    InvalidInputError,
    OutOfSupportError,
    MissingMarginalError,
)
from margpipe.marginals import (
    Distribution,
    Marginal,
    MarginalSet,
    CredibleInterval,
    MarginalSummary,
    resample,
    density_at,
    hpd_interval,
    hpd_regions,
    transform,
    summarize,
    normalize,
    cdf,
    quantile,
    mode,
    expectation,
    sample,
)
from margpipe.fit import (
    FixedEffectPrior,
    PrecisionPrior,
    LatentTerm,
    ModelSpec,
    FittedValues,
    ModelFitResult,
    FitBackend,
)

__version__ = "0.1.0"
