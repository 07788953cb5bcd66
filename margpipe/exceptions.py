"""Exception classes raised by margpipe.

Every error derives from :class:`MarginalError` so callers can catch all
package failures at once. The concrete classes also derive from the builtin
exception a caller would naturally expect (``ValueError`` for bad inputs,
``KeyError`` for missing names) so generic handlers keep working.
"""


class MarginalError(Exception):
    """Base class for all margpipe exceptions."""


class InvalidInputError(MarginalError, ValueError):
    """Raised for malformed marginals, probabilities or transforms.

    Examples are a marginal with fewer than two knots, values that are not
    strictly increasing, negative densities, a probability outside (0, 1),
    or a transform that is undefined at one of the knots.
    """


class OutOfSupportError(MarginalError, ValueError):
    """Raised when a density is queried strictly outside a marginal's support.

    Only raised by ``density_at(..., strict=True)``; the default query
    returns zero outside the support instead.
    """


class MissingMarginalError(MarginalError, KeyError, IndexError):
    """Raised when a name or position is not present in a MarginalSet."""

    def __str__(self) -> str:
        # KeyError wraps its message in quotes; keep it readable.
        return str(self.args[0]) if self.args else ""
