"""Mutable per-fitter state of the Levenberg-Marquardt iteration.

A Workspace is created when an evaluator is attached (the parameter count
becomes known) and is owned by a single fitter. Curvature matrices live in
the compact active subspace (mfit x mfit); the mapping back to the full
parameter space is the ``active`` index list built at the start of a fit.
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from marquardt._curvature import Curvature


@dataclass
class Workspace:
    """Parameters, freeze mask and iteration buffers of one fitter.

    ``a`` and ``free`` span all ma parameters; ``alpha``, ``beta`` and
    ``covar`` span the mfit active parameters listed in ``active``.
    ``chisq`` and ``mse`` are the statistics at ``a``; ``iterations`` and
    ``nfev`` count the work of the current fit.
    """

    a: NDArray[np.float64]
    free: NDArray[np.bool_]
    active: NDArray[np.intp] = field(default_factory=lambda: np.zeros(0, dtype=np.intp))
    alpha: NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 0)))
    beta: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    covar: NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 0)))
    chisq: float = 0.0
    mse: float = 0.0
    iterations: int = 0
    nfev: int = 0

    @classmethod
    def from_parameters(cls, a: NDArray[np.float64]) -> "Workspace":
        """Workspace with every parameter free, starting at ``a``."""
        a = np.array(a, dtype=np.float64).ravel()
        return cls(a=a, free=np.ones(a.shape, dtype=bool))

    @property
    def ma(self) -> int:
        """Total number of parameters, free and held."""
        return len(self.a)

    @property
    def mfit(self) -> int:
        """Number of parameters being fitted."""
        return len(self.active)

    def activate(self) -> None:
        """Build the active index list and size the working buffers."""
        self.active = np.flatnonzero(self.free)
        mfit = self.mfit
        self.alpha = np.zeros((mfit, mfit))
        self.beta = np.zeros(mfit)
        self.covar = np.zeros((mfit, mfit))
        self.chisq = 0.0
        self.mse = 0.0
        self.iterations = 0
        self.nfev = 0

    def trial(self, da: NDArray[np.float64]) -> NDArray[np.float64]:
        """Parameters displaced by ``da`` along the active entries only."""
        atry = self.a.copy()
        atry[self.active] += da
        return atry

    def store(self, curvature: Curvature) -> None:
        """Take curvature, gradient and statistics as the current baseline."""
        self.alpha = curvature.alpha
        self.beta = curvature.beta
        self.chisq = curvature.chisq
        self.mse = curvature.mse

    def accept(self, atry: NDArray[np.float64], curvature: Curvature) -> None:
        """Move to the trial parameters ``atry`` evaluated as ``curvature``."""
        self.a[:] = atry
        self.store(curvature)
