from .distribution import Distribution
from .marginal import Marginal
from .collection import MarginalSet
from .results import CredibleInterval, MarginalSummary
from .toolkit import (
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
