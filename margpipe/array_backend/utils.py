# array_backend/utils.py
"""
Array canonicalization and validation helpers used by margpipe.

All helpers that return arrays accept `copy: bool = True`. When `copy=True`
the returned array is guaranteed to be a different object from the input,
so a Marginal can freeze its own buffers without affecting the caller's.

Validation failures raise `InvalidInputError`, which is a `ValueError`, so
generic `except ValueError` handlers at call sites keep working.
"""

from __future__ import annotations

import numpy as np
from typing import Any, Tuple

from ..custom_types import Array, ArrayLike
from ..exceptions import InvalidInputError


def _as_array(x: Any, dtype: Any = float) -> Array:
    try:
        return np.asarray(x, dtype=dtype)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(
            f"Could not convert input to a {np.dtype(dtype).name} array.\n"
            f"Input type: {type(x).__name__}\n"
            f"Original error: {e}"
        ) from e


def _is_numpy_scalar(x: Any) -> bool:
    """Return true if object is a numpy generic or Python scalar"""
    return np.isscalar(x) or isinstance(x, np.generic)


def _ensure_real_scalar(x: Any, *, name: str = "value") -> float:
    """
    Return a finite Python float for inputs that contain a single real value.

    Accepts Python scalars, numpy scalar types and arrays holding exactly one
    element (shape (), (1,) or (1, 1)).

    Raises:
      InvalidInputError if the input is complex, non-finite or has more than
      one element.
    """
    if _is_numpy_scalar(x) and np.iscomplexobj(x):
        raise InvalidInputError(f"{name} is complex-valued: {x!r}")

    arr = _as_array(x)
    if arr.size != 1:
        raise InvalidInputError(
            f"{name} must contain exactly one element; got size={arr.size}, shape={arr.shape}"
        )
    out = float(arr.reshape(()))
    if not np.isfinite(out):
        raise InvalidInputError(f"{name} must be finite; got {out}")
    return out


def _ensure_vector(x: ArrayLike, *, length: int | None = None,
                   name: str = "values", copy: bool = True) -> Array:
    """
    Ensure input is returned as a 1-D float vector of shape (n,).

    Accepts:
      - 0D scalar -> (1,)
      - 1D arrays -> (n,)
      - 2D arrays shaped (n,1) or (1,n) -> (n,)

    Raises:
      InvalidInputError for incompatible shapes (ndim > 2 or 2D with both
      dims > 1) or a length mismatch.
    """
    arr = _as_array(x)

    if arr.ndim == 0:
        out = arr.reshape((1,))
    elif arr.ndim == 1:
        out = arr
    elif arr.ndim == 2 and 1 in arr.shape:
        out = np.ravel(arr)
    else:
        raise InvalidInputError(f"{name} must be a vector; got shape {arr.shape}.")

    if length is not None and out.size != length:
        raise InvalidInputError(f"{name} must have length {length}; got {out.size}.")

    return out.copy() if copy else out


def _ensure_knot_table(pairs: ArrayLike, *, copy: bool = True) -> Tuple[Array, Array]:
    """Split an (n, 2) table of (value, density) rows into two vectors.

    A (2, n) table is accepted as well when n != 2, matching the column-major
    layout some solvers export.
    """
    arr = _as_array(pairs)
    if arr.ndim != 2 or 2 not in arr.shape:
        raise InvalidInputError(
            f"knot table must have shape (n, 2); got {arr.shape}."
        )
    if arr.shape[1] != 2:
        arr = arr.T
    values, densities = arr[:, 0], arr[:, 1]
    return (values.copy(), densities.copy()) if copy else (values, densities)


def _ensure_knots(values: ArrayLike, densities: ArrayLike, *,
                  sort: bool = False, copy: bool = True) -> Tuple[Array, Array]:
    """Validate the knots of a marginal and return them as float vectors.

    Requirements:
      - at least two knots, equal lengths
      - finite values, finite non-negative densities
      - strictly increasing values (after sorting when `sort=True`)
      - positive total density

    Raises:
      InvalidInputError if any requirement fails.
    """
    x = _ensure_vector(values, name="values", copy=copy)
    d = _ensure_vector(densities, length=x.size, name="densities", copy=copy)

    if x.size < 2:
        raise InvalidInputError(f"A marginal requires at least 2 knots; got {x.size}.")
    if not np.all(np.isfinite(x)):
        raise InvalidInputError("values must be finite.")
    if not np.all(np.isfinite(d)):
        raise InvalidInputError("densities must be finite.")
    if np.any(d < 0):
        raise InvalidInputError("densities must be nonnegative.")

    if sort:
        order = np.argsort(x, kind="stable")
        x, d = x[order], d[order]

    if np.any(np.diff(x) <= 0):
        raise InvalidInputError(
            "values must be strictly increasing; pass sort=True to sort unordered knots."
            if not sort else "values must be distinct."
        )
    if not d.sum() > 0:
        raise InvalidInputError("densities cannot all be zero.")

    return x, d


def _ensure_probability(p: Any, *, closed: bool = False, name: str = "probability") -> float:
    """Return `p` as a float in (0, 1), or in [0, 1] when `closed=True`."""
    p = _ensure_real_scalar(p, name=name)
    inside = (0.0 <= p <= 1.0) if closed else (0.0 < p < 1.0)
    if not inside:
        bounds = "[0, 1]" if closed else "(0, 1)"
        raise InvalidInputError(f"{name} must lie in {bounds}; got {p}.")
    return p


def _ensure_point_count(n: Any, *, minimum: int = 2, name: str = "n_points") -> int:
    """Return `n` as an int no smaller than `minimum`."""
    if isinstance(n, (bool, np.bool_)) or not isinstance(n, (int, np.integer)):
        raise InvalidInputError(f"{name} must be an integer; got {type(n).__name__}.")
    if n < minimum:
        raise InvalidInputError(f"{name} must be at least {minimum}; got {n}.")
    return int(n)
