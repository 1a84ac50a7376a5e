"""Parameter Jacobians of model functions.

Used by the callable evaluator adapters: the model is a plain function
``func(x, params)`` and its derivatives with respect to ``params`` come
either from an analytic ``jac(x, params)`` or from forward differences.
"""

from typing import Callable, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

ModelFn = Callable[[object, NDArray[np.float64]], object]


def compute_jacobian(
    func: ModelFn,
    x: object,
    params: NDArray[np.float64],
    jac: Optional[ModelFn] = None,
    epsilon: float = 1e-8,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Evaluate a model and its Jacobian with respect to the parameters.

    Args:
        func: Model f(x, params) -> scalar or array of shape (m,).
        x: Input point, passed through to ``func`` unchanged.
        params: Parameter vector. Shape (n,).
        jac: Optional analytic Jacobian jac(x, params) -> (m, n) matrix
            (or (n,) vector for a scalar model).
        epsilon: Relative step size for the forward-difference approximation.

    Returns:
        Tuple of:
            - f0: Model output as a 1-D array of shape (m,).
            - J: Jacobian matrix of shape (m, n).
    """
    params = np.asarray(params, dtype=np.float64)
    f0 = np.atleast_1d(np.asarray(func(x, params), dtype=np.float64))
    n = len(params)

    if jac is not None:
        J = jac(x, params)
        # Handle sparse matrices
        if hasattr(J, "toarray"):
            J = J.toarray()
        J = np.asarray(J, dtype=np.float64)
        return f0, J.reshape(len(f0), n)

    J = np.zeros((len(f0), n), dtype=np.float64)
    for j in range(n):
        step = epsilon * max(abs(params[j]), 1.0)
        p_plus = params.copy()
        p_plus[j] += step
        f_plus = np.atleast_1d(np.asarray(func(x, p_plus), dtype=np.float64))
        J[:, j] = (f_plus - f0) / step

    return f0, J
