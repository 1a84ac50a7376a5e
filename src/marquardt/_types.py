"""Public type definitions for the marquardt fitting package.

This module defines the core data structures shared by the fitters:
- FitterConfig: Tunable settings of the Levenberg-Marquardt iteration
- FitResult: Immutable result container returned by fit()
- IterationState: Snapshot handed to per-iteration callbacks

These types form the public API contract of the package.
"""

from dataclasses import dataclass, field, fields
from typing import Iterator, List, Optional

import numpy as np
from numpy.typing import NDArray

from marquardt._errors import FailureReason
from marquardt._statistics import chi2_cdf


@dataclass(frozen=True)
class FitterConfig:
    """Configuration of the Levenberg-Marquardt iteration.

    Attributes:
        tol: Convergence tolerance on the change of chi-square. Default 1e-3.
        itmax: Maximum number of iterations. Default 5000.
        ndone: Number of small-improvement iterations required before the
            final zero-damping pass. Default 4.
        adjust_covariance: Recompute the covariance from the Jacobian at the
            solution, weighted by the input standard deviations. Default True.
        initial_lambda: Damping parameter at the start of a fit. Default 1e-3.
        lambda_decrease: Factor applied to the damping on an accepted step.
            Default 0.1.
        lambda_increase: Factor applied to the damping on a rejected step.
            Default 10.
        verbose: Verbosity level (-1=silent, 0=summary, 1=iterations,
            2=debug). Default 0.
    """

    tol: float = 1e-3
    itmax: int = 5000
    ndone: int = 4
    adjust_covariance: bool = True
    initial_lambda: float = 1e-3
    lambda_decrease: float = 0.1
    lambda_increase: float = 10.0
    verbose: int = 0

    def __post_init__(self) -> None:
        if not self.tol > 0.0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.itmax <= 0:
            raise ValueError(f"itmax must be positive, got {self.itmax}")
        if self.ndone < 1:
            raise ValueError(f"ndone must be at least 1, got {self.ndone}")
        if not self.initial_lambda > 0.0:
            raise ValueError(f"initial_lambda must be positive, got {self.initial_lambda}")
        if not 0.0 < self.lambda_decrease < 1.0:
            raise ValueError(
                f"lambda_decrease must lie in (0, 1), got {self.lambda_decrease}"
            )
        if not self.lambda_increase > 1.0:
            raise ValueError(
                f"lambda_increase must be greater than 1, got {self.lambda_increase}"
            )


@dataclass(frozen=True)
class IterationState:
    """State of the iteration after one accept/reject decision.

    Attributes:
        iteration: Zero-based iteration counter.
        lambda_: Damping parameter used to compute the step.
        chisq: Baseline chi-square after the decision.
        chisq_try: Chi-square of the trial parameters.
        accepted: True if the trial step was accepted.
        params: Copy of the parameter vector after the decision.
    """

    iteration: int
    lambda_: float
    chisq: float
    chisq_try: float
    accepted: bool
    params: NDArray[np.float64]


@dataclass(frozen=True)
class FitResult:
    """Result of a fit - immutable container with dict-like access.

    Attributes:
        params: Fitted parameter vector. Shape (ma,).
        covariance: Parameter covariance. Shape (ma, ma). Held parameters
            have zero rows and columns.
        alpha: Curvature matrix at the solution. Shape (ma, ma).
        chisq: Chi-square normalized by the degrees of freedom.
        mse: Mean square error of the residuals.
        dof: Degrees of freedom, number of samples minus number of parameters.
        iterations: Number of iterations performed.
        nfev: Number of evaluator calls.
        success: True if the fit converged.
        message: Human-readable status message.
        reason: Failure tag, None on success.
        held: Boolean mask of parameters held fixed during the fit.
        history: Optional list of per-iteration states.
    """

    params: NDArray[np.float64]
    covariance: Optional[NDArray[np.float64]]
    alpha: Optional[NDArray[np.float64]]
    chisq: float
    mse: float
    dof: int
    iterations: int
    nfev: int
    success: bool
    message: str
    reason: Optional[FailureReason] = None
    held: Optional[NDArray[np.bool_]] = None
    history: Optional[List[IterationState]] = field(default=None)

    @property
    def p(self) -> float:
        """Probability of observing a chi-square this small or smaller."""
        return chi2_cdf(self.chisq * self.dof, self.dof)

    @property
    def q(self) -> float:
        """Goodness of fit, 1 - p."""
        return 1.0 - self.p

    @property
    def perror(self) -> Optional[NDArray[np.float64]]:
        """One-sigma parameter uncertainties from the covariance diagonal."""
        if self.covariance is None:
            return None
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def __getitem__(self, key: str) -> object:
        """Enable dict-style access: result['params']."""
        return getattr(self, key)

    def keys(self) -> List[str]:
        """Return list of field names for dict-like iteration."""
        return [f.name for f in fields(self)]

    def __iter__(self) -> Iterator[str]:
        """Iterate over field names."""
        return iter(self.keys())

    def __contains__(self, key: str) -> bool:
        """Check if key is a valid field name."""
        return key in self.keys()
