# marginals/collection.py
from __future__ import annotations

from typing import Callable, Dict, Iterable, Iterator, Mapping, Tuple, Union

import pandas as pd

from ..exceptions import InvalidInputError, MissingMarginalError
from .marginal import Marginal
from .results import SUMMARY_COLUMNS, MarginalSummary

__all__ = [
    "MarginalSet",
]


class MarginalSet(Mapping[str, Marginal]):
    """
    Read-only, ordered mapping from parameter name to Marginal.

    Fitting backends return their fixed effects and hyperparameters as a
    MarginalSet. Lookup is by name only; an unknown name raises
    :class:`MissingMarginalError` listing the names that do exist. Positional
    access is available explicitly through :meth:`at`.

    Each stored Marginal carries its key as its name.
    """

    def __init__(self, marginals: Union[Mapping[str, Marginal], Iterable[Marginal]] = ()):
        """Initializes the set from a mapping or from named Marginals.

        Args:
            marginals: Either a mapping name -> Marginal, or an iterable of
                Marginals that all carry a name.

        Raises:
            InvalidInputError: If a name is empty, missing or duplicated, or an
                entry is not a Marginal.
        """
        if isinstance(marginals, Mapping):
            items = list(marginals.items())
        else:
            items = []
            for m in marginals:
                if not isinstance(m, Marginal):
                    raise InvalidInputError(f"expected Marginal entries; got {type(m).__name__}.")
                items.append((m.name, m))

        store: Dict[str, Marginal] = {}
        for key, m in items:
            if not isinstance(key, str) or not key:
                raise InvalidInputError(f"marginal names must be non-empty strings; got {key!r}.")
            if not isinstance(m, Marginal):
                raise InvalidInputError(f"entry {key!r} is {type(m).__name__}, not a Marginal.")
            if key in store:
                raise InvalidInputError(f"duplicate marginal name {key!r}.")
            store[key] = m if m.name == key else m.with_name(key)
        self._store = store

    def __getitem__(self, name: str) -> Marginal:
        if not isinstance(name, str):
            raise TypeError(
                f"MarginalSet keys are names (str); got {type(name).__name__}. "
                "Use .at(i) for positional access."
            )
        try:
            return self._store[name]
        except KeyError:
            raise MissingMarginalError(
                f"No marginal named {name!r}. Available: {list(self._store)}"
            ) from None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._store

    def __iter__(self) -> Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)

    @property
    def names(self) -> Tuple[str, ...]:
        """tuple[str, ...]: Names in insertion order."""
        return tuple(self._store)

    def at(self, position: int) -> Marginal:
        """Marginal at `position` in insertion order; negative positions count from the end."""
        n = len(self._store)
        if not -n <= position < n:
            raise MissingMarginalError(
                f"position {position} out of range for {n} marginal(s)."
            )
        return list(self._store.values())[position]

    def map(self, func: Callable[[Marginal], Marginal]) -> MarginalSet:
        """Applies `func` to every marginal, keeping the names."""
        return MarginalSet({name: func(m) for name, m in self._store.items()})

    def summaries(self) -> Dict[str, MarginalSummary]:
        """Summary of every marginal, keyed by name."""
        from .toolkit import summarize
        return {name: summarize(m) for name, m in self._store.items()}

    def to_frame(self, probability: float | None = None) -> pd.DataFrame:
        """Summary table with one row per marginal.

        Columns are ``mean, sd, 0.025quant, 0.5quant, 0.975quant, mode``,
        followed by ``hpd_lower, hpd_upper`` when `probability` is given.
        """
        from .toolkit import hpd_interval

        rows = {}
        for name, summary in self.summaries().items():
            row = summary.as_dict()
            if probability is not None:
                lo, hi = hpd_interval(self._store[name], probability)
                row["hpd_lower"], row["hpd_upper"] = lo, hi
            rows[name] = row
        columns = list(SUMMARY_COLUMNS)
        if probability is not None:
            columns += ["hpd_lower", "hpd_upper"]
        return pd.DataFrame.from_dict(rows, orient="index", columns=columns)

    def __repr__(self) -> str:
        return f"MarginalSet({list(self._store)})"
