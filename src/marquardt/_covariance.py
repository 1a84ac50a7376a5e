"""Covariance post-processing after convergence.

expand_to_full() places a matrix computed over the active parameters back
into the full parameter ordering with zero rows and columns for held
parameters. adjusted_covariance() recomputes the covariance from the
Jacobian at the solution so that its scale follows the input standard
deviations instead of the damping bookkeeping of the iteration.
"""

import numpy as np
from numpy.typing import NDArray

from marquardt._linalg import inverse


def expand_to_full(
    block: NDArray[np.float64], active: NDArray[np.intp], ma: int
) -> NDArray[np.float64]:
    """Scatter an (mfit, mfit) block into an (ma, ma) zero matrix.

    Row and column k of ``block`` land on row and column ``active[k]``.
    """
    full = np.zeros((ma, ma), dtype=np.float64)
    full[np.ix_(active, active)] = block
    return full


def adjusted_covariance(
    jacobian: NDArray[np.float64],
    weights: NDArray[np.float64],
    dof: int,
) -> NDArray[np.float64]:
    """Covariance (J^T W J)^-1 with W = diag(1 / ((dof + 1) * sigma^2)).

    Args:
        jacobian: Jacobian of every residual row at the solution, restricted to
            the active parameters. Shape (nrows, mfit).
        weights: Inverse variances 1 / sigma^2 of every row. Shape (nrows,).
        dof: Degrees of freedom of the fit.

    Raises:
        numpy.linalg.LinAlgError: If J^T W J is singular.
    """
    w = weights / (dof + 1)
    inv_cov = (jacobian * w[:, np.newaxis]).T @ jacobian
    return inverse(inv_cov)
