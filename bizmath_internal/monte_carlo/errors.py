"""
PURPOSE: Error taxonomy shared by every Monte Carlo component.

All validation is eager: a request is rejected with one of these errors before
any sampling happens, and no component substitutes a default value for a
failed computation.
"""


class MonteCarloError(Exception):
    """Base class for all errors raised by the simulation core."""


class InvalidArgument(MonteCarloError, ValueError):
    """Bad distribution parameters, mismatched vector lengths, out-of-bounds counts."""


# Distribution constructors historically raised this name.
InvalidParameter = InvalidArgument


class FormulaError(MonteCarloError, ValueError):
    """Unparsable or ill-formed formula."""

    def __init__(self, message, formula=None, position=None):
        self.formula = formula
        self.position = position
        if formula is not None and position is not None:
            message = f"{message} at position {position} in {formula!r}"
        elif formula is not None:
            message = f"{message} in {formula!r}"
        super().__init__(message)


class NumericError(MonteCarloError, ArithmeticError):
    """Non-finite result arising from a numeric domain violation."""
