"""marquardt: Levenberg-Marquardt nonlinear least-squares fitting."""

try:
    from marquardt._version import __version__
except ImportError:
    __version__ = "0.1.0"

from marquardt._core import fit_curve
from marquardt._errors import (
    ConvergenceError,
    EvaluationError,
    FailureReason,
    FittingError,
    NotAvailableError,
    NotReadyError,
    SingularMatrixError,
    TooManyIterationsError,
)
from marquardt._evaluators import (
    MultiDimensionEvaluator,
    MultiDimensionFunction,
    MultiVariateEvaluator,
    MultiVariateFunction,
    SingleDimensionEvaluator,
    SingleDimensionFunction,
)
from marquardt._fitters import (
    LevenbergMarquardtFitter,
    MultiDimensionFitter,
    MultiVariateFitter,
    SingleDimensionFitter,
)
from marquardt._statistics import chi2_cdf
from marquardt._types import FitResult, FitterConfig, IterationState

__all__ = [
    "__version__",
    "fit_curve",
    "chi2_cdf",
    "FitterConfig",
    "FitResult",
    "IterationState",
    "FailureReason",
    "FittingError",
    "NotReadyError",
    "EvaluationError",
    "TooManyIterationsError",
    "SingularMatrixError",
    "NotAvailableError",
    "ConvergenceError",
    "LevenbergMarquardtFitter",
    "SingleDimensionFitter",
    "MultiDimensionFitter",
    "MultiVariateFitter",
    "SingleDimensionEvaluator",
    "MultiDimensionEvaluator",
    "MultiVariateEvaluator",
    "SingleDimensionFunction",
    "MultiDimensionFunction",
    "MultiVariateFunction",
]
