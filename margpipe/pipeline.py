# pipeline.py
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict

import pandas as pd

from .core.module import InputSpec, Module
from .defaults import DEFAULT_PROBABILITY
from .fit import ModelFitResult
from .marginals.marginal import Marginal
from .marginals.results import CredibleInterval, MarginalSummary
from .marginals.toolkit import hpd_interval, summarize

__all__ = [
    "FitModule",
    "PosteriorSummary",
]


class FitModule(Module):
    DEPENDENCIES = MappingProxyType({})

    def __init__(self, result: ModelFitResult):
        """
        Wraps a fitted model so it can be injected into other modules.

        Args:
            result (ModelFitResult): Output of a fitting backend.
        """
        if not isinstance(result, ModelFitResult):
            raise TypeError(f"FitModule wraps a ModelFitResult; got {type(result).__name__}")
        super().__init__()
        self._result = result

    @property
    def result(self) -> ModelFitResult:
        return self._result

    def __getattr__(self, name):
        # Delegate attribute access to the wrapped fit result
        if name == "_result":
            raise AttributeError(name)
        return getattr(self._result, name)


class PosteriorSummary(Module):
    """Summary tables and credible intervals from a fitted model.

    Depends on a :class:`FitModule` named ``fit``. Registered run functions:

    - ``summary_fixed(probability)``: table of fixed-effect summaries with
      HPD bounds.
    - ``summary_hyperpar(probability)``: the same for hyperparameters.
    - ``marginal_hpd(name, probability)``: HPD interval of one marginal,
      looked up among fixed effects first.
    - ``marginal_summary(marginal)``: summary of any marginal-like input;
      scipy frozen distributions are discretized first.
    - ``report(probability)``: Prefect flow returning both tables.

    ``probability`` defaults to the module input, which can be changed with
    :meth:`set_input` before registration or passed per call.
    """

    DEPENDENCIES = MappingProxyType({"fit": FitModule})

    def __init__(self, probability: float = DEFAULT_PROBABILITY, **dependencies):
        super().__init__(**dependencies)
        self.set_input(
            probability=InputSpec(type=float, required=False, default=probability),
        )
        self.run_func(self._summary_fixed, name="summary_fixed")
        self.run_func(self._summary_hyperpar, name="summary_hyperpar")
        self.run_func(self._marginal_hpd, name="marginal_hpd")
        self.run_func(self._marginal_summary, name="marginal_summary")
        self.run_func(self._report, name="report", as_task=False)

    def _summary_fixed(self, fit: FitModule, probability: float = DEFAULT_PROBABILITY) -> pd.DataFrame:
        return fit.summary_fixed(probability)

    def _summary_hyperpar(self, fit: FitModule, probability: float = DEFAULT_PROBABILITY) -> pd.DataFrame:
        return fit.summary_hyperpar(probability)

    def _marginal_hpd(self, fit: FitModule, name: str,
                      probability: float = DEFAULT_PROBABILITY) -> CredibleInterval:
        return hpd_interval(fit.marginal(name), probability)

    def _marginal_summary(self, marginal: Marginal) -> MarginalSummary:
        return summarize(marginal)

    # Calls the plain methods rather than the registered tasks so the flow
    # body does not depend on task-run context.
    def _report(self, fit: FitModule, probability: float = DEFAULT_PROBABILITY) -> Dict[str, Any]:
        return {
            "fixed": self._summary_fixed(fit, probability),
            "hyperpar": self._summary_hyperpar(fit, probability),
        }
