"""Core fit_curve() function, the functional entry point of the package.

fit_curve() wraps a plain model function in the matching evaluator adapter,
picks the fitter from the shapes of the data, applies held parameters and
runs the Levenberg-Marquardt fit.
"""

from typing import Callable, Mapping, Optional

import numpy as np
from numpy.typing import ArrayLike

from marquardt._evaluators import (
    MultiDimensionFunction,
    MultiVariateFunction,
    SingleDimensionFunction,
)
from marquardt._fitters import (
    LevenbergMarquardtFitter,
    MultiDimensionFitter,
    MultiVariateFitter,
    SingleDimensionFitter,
)
from marquardt._jacobian import ModelFn
from marquardt._types import FitResult, FitterConfig, IterationState


def fit_curve(
    func: ModelFn,
    x: ArrayLike,
    y: ArrayLike,
    p0: ArrayLike,
    *,
    sigma: ArrayLike = 1.0,
    jac: Optional[ModelFn] = None,
    hold: Optional[Mapping[int, float]] = None,
    epsilon: float = 1e-8,
    raise_on_failure: bool = True,
    callback: Optional[Callable[[IterationState], None]] = None,
    history: bool = False,
    **config,
) -> FitResult:
    """Fit a model function to data with the Levenberg-Marquardt method.

    The fitter is chosen from the data shapes:
        - x of shape (n,), y of shape (n,): single input variable
        - x of shape (n, d), y of shape (n,): several input variables
        - x of shape (n, d), y of shape (n, v): vector-valued model

    Args:
        func: Model f(x, params). Called with one sample at a time: a float
            for 1-D x, a row of shape (d,) otherwise. Returns a float, or an
            array of shape (v,) for vector-valued models.
        x: Input points.
        y: Observed values.
        p0: Initial parameter guess. Shape (ma,).
        sigma: Standard deviation of each sample (scalar or shape (n,)).
        jac: Optional analytic derivatives jac(x, params) of the model with
            respect to the parameters, shape (ma,) or (v, ma). If None,
            forward differences are used.
        hold: Optional mapping of parameter index to the value it is pinned at.
        epsilon: Relative step of the forward-difference derivatives.
        raise_on_failure: Raise on failure (default) instead of returning an
            unsuccessful FitResult.
        callback: Optional function called with an IterationState after each
            iteration.
        history: If True, include per-iteration states in the result.
        **config: FitterConfig fields (tol, itmax, ndone, adjust_covariance,
            initial_lambda, lambda_decrease, lambda_increase, verbose).

    Returns:
        FitResult with fitted params, covariance and fit statistics.

    Raises:
        ValueError: If the data shapes are not supported or inconsistent.
        FittingError: If the fit fails and raise_on_failure is True.

    Example:
        >>> import numpy as np
        >>> from marquardt import fit_curve
        >>> x = np.linspace(0.0, 4.0, 5)
        >>> result = fit_curve(lambda x, p: p[0] + p[1] * x, x, 2.0 + 3.0 * x,
        ...                    p0=[0.0, 0.0], verbose=-1)
        >>> print(result.params)  # [2.0, 3.0]
    """
    # =========================================================================
    # Input Validation
    # =========================================================================
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    settings = FitterConfig(**config)

    fitter: LevenbergMarquardtFitter
    if y.ndim == 2:
        x2 = x.reshape(len(x), -1)
        evaluator = MultiVariateFunction(
            func, p0, n_dimensions=x2.shape[1], n_variables=y.shape[1],
            jac=jac, epsilon=epsilon,
        )
        fitter = MultiVariateFitter(evaluator, x2, y, sigma, config=settings)
    elif y.ndim == 1 and x.ndim == 2:
        evaluator = MultiDimensionFunction(
            func, p0, n_dimensions=x.shape[1], jac=jac, epsilon=epsilon
        )
        fitter = MultiDimensionFitter(evaluator, x, y, sigma, config=settings)
    elif y.ndim == 1 and x.ndim == 1:
        evaluator = SingleDimensionFunction(func, p0, jac=jac, epsilon=epsilon)
        fitter = SingleDimensionFitter(evaluator, x, y, sigma, config=settings)
    else:
        raise ValueError(f"unsupported data shapes: x {x.shape}, y {y.shape}")

    # =========================================================================
    # Held Parameters
    # =========================================================================
    for index, value in (hold or {}).items():
        fitter.hold(index, value)

    return fitter.fit(raise_on_failure=raise_on_failure, callback=callback, history=history)
