"""Exception hierarchy for the marquardt fitting package.

Every failure of a fit is a FittingError tagged with a FailureReason, so
callers can either catch the specific subclass or dispatch on ``reason``.
"""

import enum
from typing import Optional


class FailureReason(enum.Enum):
    """Why a fit did not produce a result."""

    NOT_READY = "not ready"
    EVALUATION_FAILED = "evaluation failed"
    TOO_MANY_ITERATIONS = "too many iterations"
    SINGULAR_MATRIX = "singular matrix"


class FittingError(Exception):
    """Base class for failures raised by fit()."""

    reason: Optional[FailureReason] = None

    def __init__(self, message: str = "", reason: Optional[FailureReason] = None) -> None:
        if reason is not None:
            self.reason = reason
        if not message:
            message = self.reason.value if self.reason is not None else "fitting failed"
        super().__init__(message)


class NotReadyError(FittingError):
    """Fit requested without an evaluator or with inconsistent data."""

    reason = FailureReason.NOT_READY


class EvaluationError(FittingError):
    """The function evaluator raised or returned unusable output."""

    reason = FailureReason.EVALUATION_FAILED


class TooManyIterationsError(FittingError):
    """Iteration budget exhausted before convergence."""

    reason = FailureReason.TOO_MANY_ITERATIONS


class SingularMatrixError(FittingError):
    """A curvature or covariance matrix could not be inverted."""

    reason = FailureReason.SINGULAR_MATRIX


class NotAvailableError(RuntimeError):
    """Results were requested before a fit converged."""


class ConvergenceError(ArithmeticError):
    """An inner series or continued-fraction evaluation did not converge."""
