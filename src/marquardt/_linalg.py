"""Dense linear-algebra helpers for the Levenberg-Marquardt step.

gauss_jordan() solves the augmented normal equations and returns the inverse
of the system matrix alongside the solution, which the fitters keep as the
covariance estimate of the active parameters.
"""

from typing import Tuple

import numpy as np
import scipy.linalg as la
from numpy.typing import ArrayLike, NDArray


def gauss_jordan(
    a: ArrayLike, b: ArrayLike
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Gauss-Jordan elimination with full pivoting.

    Args:
        a: Square system matrix. Shape (n, n). Not modified.
        b: Right-hand side. Shape (n,) or (n, m). Not modified.

    Returns:
        Tuple of:
            - inverse: Inverse of ``a``. Shape (n, n).
            - x: Solution of ``a @ x = b``, same shape as ``b``.

    Raises:
        numpy.linalg.LinAlgError: If ``a`` is singular.
        ValueError: If the shapes are inconsistent.
    """
    a = np.array(a, dtype=np.float64)
    b = np.array(b, dtype=np.float64)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"system matrix must be square, got shape {a.shape}")
    n = a.shape[0]
    vector_rhs = b.ndim == 1
    if vector_rhs:
        b = b[:, np.newaxis]
    if b.shape[0] != n:
        raise ValueError(f"right-hand side must have {n} rows, got {b.shape[0]}")

    ipiv = np.zeros(n, dtype=np.intp)
    indxr = np.zeros(n, dtype=np.intp)
    indxc = np.zeros(n, dtype=np.intp)

    for i in range(n):
        # search the unpivoted block for the largest element
        free = np.flatnonzero(ipiv == 0)
        block = np.abs(a[np.ix_(free, free)])
        flat = int(np.argmax(block))
        irow = int(free[flat // len(free)])
        icol = int(free[flat % len(free)])
        ipiv[icol] += 1

        if irow != icol:
            a[[irow, icol]] = a[[icol, irow]]
            b[[irow, icol]] = b[[icol, irow]]
        indxr[i] = irow
        indxc[i] = icol

        pivot = a[icol, icol]
        if pivot == 0.0 or not np.isfinite(pivot):
            raise np.linalg.LinAlgError("singular matrix in Gauss-Jordan elimination")

        pivinv = 1.0 / pivot
        a[icol, icol] = 1.0
        a[icol] *= pivinv
        b[icol] *= pivinv

        dum = a[:, icol].copy()
        dum[icol] = 0.0
        a[:, icol] = np.where(np.arange(n) == icol, a[:, icol], 0.0)
        a -= np.outer(dum, a[icol])
        b -= np.outer(dum, b[icol])

    # unscramble the column interchanges in reverse order
    for k in range(n - 1, -1, -1):
        if indxr[k] != indxc[k]:
            a[:, [indxr[k], indxc[k]]] = a[:, [indxc[k], indxr[k]]]

    if vector_rhs:
        b = b[:, 0]
    return a, b


def inverse(a: ArrayLike) -> NDArray[np.float64]:
    """Matrix inverse, raising LinAlgError on singular or non-finite input."""
    a = np.asarray(a, dtype=np.float64)
    if not np.all(np.isfinite(a)):
        raise np.linalg.LinAlgError("matrix contains non-finite entries")
    return la.inv(a, check_finite=False)
