# marginals/results.py
from __future__ import annotations

from dataclasses import dataclass, astuple
from typing import Dict, Iterator

SUMMARY_COLUMNS = ("mean", "sd", "0.025quant", "0.5quant", "0.975quant", "mode")


@dataclass(frozen=True)
class CredibleInterval:
    """A credible interval ``[lower, upper]`` enclosing ``probability`` mass.

    Unpacks like a pair: ``lo, hi = hpd_interval(marginal)``.
    """

    lower: float
    upper: float
    probability: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def contains(self, x: float) -> bool:
        return self.lower <= x <= self.upper

    def __iter__(self) -> Iterator[float]:
        yield self.lower
        yield self.upper


@dataclass(frozen=True)
class MarginalSummary:
    """Fixed-shape numerical summary of one marginal.

    Attributes:
        mean: Posterior mean.
        sd: Posterior standard deviation.
        q025: 2.5% quantile.
        q500: Median.
        q975: 97.5% quantile.
        mode: Location of the density maximum.
    """

    mean: float
    sd: float
    q025: float
    q500: float
    q975: float
    mode: float

    def as_dict(self) -> Dict[str, float]:
        """Summary keyed by the column names used in posterior summary tables."""
        return dict(zip(SUMMARY_COLUMNS, astuple(self)))
