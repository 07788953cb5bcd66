# data.py
"""
Loading tabular data for model fitting.

Time series such as daily climate records arrive with a date column. Latent
temporal terms need an integer time index instead, assigned by the sort
order of the parsed dates.
"""
from __future__ import annotations

import logging
from os import PathLike
from typing import Any

import numpy as np
import pandas as pd

from .custom_types import Array, ArrayLike
from .exceptions import InvalidInputError

__all__ = [
    "time_index",
    "load_table",
]

logger = logging.getLogger(__name__)


def _parse_dates(dates: ArrayLike, date_format: str | None) -> pd.Series:
    try:
        parsed = pd.to_datetime(pd.Series(dates), format=date_format)
    except (ValueError, TypeError) as e:
        raise InvalidInputError(f"could not parse dates: {e}") from e
    if parsed.isna().any():
        raise InvalidInputError(f"{int(parsed.isna().sum())} date(s) are missing.")
    return parsed


def time_index(dates: ArrayLike, *, start: int = 1, date_format: str | None = None) -> Array:
    """Integer time index from the sort order of `dates`.

    The earliest date gets `start`, the next `start + 1`, and so on. Equal
    dates are ordered by their position in the input, so the result is a
    permutation of ``start .. start + n - 1``.

    Args:
        dates: Dates as strings, datetimes or anything pandas can parse.
        start: Index of the earliest date.
        date_format: Optional ``strftime`` format for parsing.

    Returns:
        Integer array of shape (n,), aligned with `dates`.

    Raises:
        InvalidInputError: If any date is missing or cannot be parsed.
    """
    parsed = _parse_dates(dates, date_format)
    ranks = parsed.rank(method="first").to_numpy()
    return ranks.astype(np.int64) - 1 + int(start)


def load_table(
    path: str | PathLike,
    *,
    date_column: str | None = None,
    date_format: str | None = None,
    index_column: str = "time",
    start: int = 1,
    sep: str = ",",
    **read_kwargs: Any,
) -> pd.DataFrame:
    """Reads a delimited file into a DataFrame, one row per observation.

    When `date_column` is given it is parsed into datetimes in place and an
    integer time index (see :func:`time_index`) is added as `index_column`.

    Raises:
        InvalidInputError: If `date_column` is absent, `index_column` already
            exists, or the dates cannot be parsed.
    """
    df = pd.read_csv(path, sep=sep, **read_kwargs)
    logger.info("Loaded %d rows, %d columns from %s", len(df), df.shape[1], path)

    if date_column is None:
        return df
    if date_column not in df.columns:
        raise InvalidInputError(f"date column {date_column!r} not in {list(df.columns)}.")
    if index_column in df.columns:
        raise InvalidInputError(f"column {index_column!r} already exists; choose another index_column.")

    df[date_column] = _parse_dates(df[date_column], date_format).to_numpy()
    df[index_column] = time_index(df[date_column], start=start)
    return df
