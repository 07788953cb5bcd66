"""Default configuration values for margpipe.

Grid sizes, tolerances and the default credible-interval probability used
by the marginal toolkit. Every function that reads one of these accepts a
keyword argument of the same meaning, so a call site can override a value
without touching this module.
"""

# Resampling and integration grids
DEFAULT_RESAMPLE_POINTS: int = 256
"""Number of evenly spaced knots produced by ``resample``."""

DEFAULT_HPD_POINTS: int = 2048
"""Grid size used when searching for the HPD density threshold."""

DEFAULT_SUMMARY_POINTS: int = 2048
"""Grid size used to integrate moments and quantiles in ``summarize``."""

DEFAULT_TRANSFORM_BINS: int = 128
"""Number of bins used when a non-monotone transform is re-binned."""

DEFAULT_DISCRETIZE_POINTS: int = 128
"""Number of knots used when discretizing a density or distribution."""

# Credible intervals
DEFAULT_PROBABILITY: float = 0.95
"""Default mass enclosed by an HPD interval."""

SUMMARY_QUANTILES: tuple[float, float, float] = (0.025, 0.5, 0.975)
"""Quantile levels reported by ``summarize``."""

DISCRETIZE_TAIL: float = 1e-6
"""Tail mass cut from each side when discretizing an unbounded distribution."""

# Numerical tolerances
DEFAULT_FD_STEP: float = 1e-6
"""Relative step of the central finite difference used in ``transform``."""

MASS_TOLERANCE: float = 0.05
"""Deviation of the raw knot mass from 1 above which a warning is logged."""
