"""Curvature matrix and gradient of the weighted sum of squared residuals.

Given the residuals and parameter Jacobian of every sample (one row per model
output), build_curvature() forms the Gauss-Newton approximation

    alpha = J_a^T W J_a        beta = J_a^T W dy

restricted to the active parameters ``a``, with W = diag(1 / sigma^2), along
with the chi-square and mean-square-error statistics normalized by the
degrees of freedom.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class Curvature:
    """Curvature matrix, gradient and fit statistics at one parameter vector."""

    alpha: NDArray[np.float64]
    beta: NDArray[np.float64]
    chisq: float
    mse: float


def build_curvature(
    residuals: NDArray[np.float64],
    jacobian: NDArray[np.float64],
    weights: NDArray[np.float64],
    active: NDArray[np.intp],
    dof: int,
) -> Curvature:
    """Accumulate curvature and gradient over all residual rows.

    Args:
        residuals: Observed minus modeled values. Shape (nrows,).
        jacobian: Model derivatives for every row and parameter. Shape (nrows, ma).
        weights: Inverse variances 1 / sigma^2 of every row. Shape (nrows,).
        active: Indices of the parameters being fitted. Shape (mfit,).
        dof: Degrees of freedom used to normalize chi-square and mse.

    Returns:
        Curvature with alpha of shape (mfit, mfit) and beta of shape (mfit,).
    """
    ja = jacobian[:, active]
    wja = ja * weights[:, np.newaxis]

    alpha = wja.T @ ja
    # exact symmetry regardless of rounding in the product
    alpha = np.tril(alpha) + np.tril(alpha, -1).T
    beta = wja.T @ residuals

    sq = residuals * residuals
    chisq = float(np.sum(sq * weights)) / dof
    mse = float(np.sum(sq)) / abs(dof)
    return Curvature(alpha=alpha, beta=beta, chisq=chisq, mse=mse)
