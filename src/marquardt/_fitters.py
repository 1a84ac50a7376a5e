"""Levenberg-Marquardt fitters for the three evaluator shapes.

Each fitter owns its input data, an evaluator and a Workspace. Attaching a
new evaluator or new data resets the fit state; results become available
only after fit() converges. A fitter runs one fit at a time; concurrent fits
need independent instances.
"""

import abc
import dataclasses
from typing import Any, Callable, List, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from marquardt._convergence import levenberg_marquardt
from marquardt._covariance import adjusted_covariance, expand_to_full
from marquardt._curvature import Curvature, build_curvature
from marquardt._errors import (
    EvaluationError,
    FittingError,
    NotAvailableError,
    NotReadyError,
    SingularMatrixError,
)
from marquardt._evaluators import (
    Evaluator,
    MultiDimensionEvaluator,
    MultiVariateEvaluator,
    SingleDimensionEvaluator,
)
from marquardt._types import FitResult, FitterConfig, IterationState
from marquardt._workspace import Workspace

Rows = Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]


class LevenbergMarquardtFitter(abc.ABC):
    """Common machinery of the Levenberg-Marquardt fitters.

    Subclasses define the evaluator type, how input data is validated and how
    one sample is evaluated into a block of residual rows.
    """

    evaluator_type: type = object

    def __init__(
        self,
        evaluator: Optional[Evaluator] = None,
        x: Optional[ArrayLike] = None,
        y: Optional[ArrayLike] = None,
        sigma: Optional[ArrayLike] = None,
        *,
        config: Optional[FitterConfig] = None,
        **overrides: Any,
    ) -> None:
        self._config = dataclasses.replace(config or FitterConfig(), **overrides)
        self._evaluator: Optional[Evaluator] = None
        self._workspace: Optional[Workspace] = None
        self._x: Optional[NDArray[np.float64]] = None
        self._y: Optional[NDArray[np.float64]] = None
        self._sig: Optional[NDArray[np.float64]] = None
        self._result: Optional[FitResult] = None

        if x is not None or y is not None:
            self.set_input_data(x, y, 1.0 if sigma is None else sigma)
        if evaluator is not None:
            self.evaluator = evaluator

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def config(self) -> FitterConfig:
        return self._config

    @config.setter
    def config(self, config: FitterConfig) -> None:
        if not isinstance(config, FitterConfig):
            raise TypeError(f"expected FitterConfig, got {type(config).__name__}")
        self._config = config

    def _configure(self, **changes: Any) -> None:
        self._config = dataclasses.replace(self._config, **changes)

    @property
    def tol(self) -> float:
        return self._config.tol

    @tol.setter
    def tol(self, value: float) -> None:
        self._configure(tol=value)

    @property
    def itmax(self) -> int:
        return self._config.itmax

    @itmax.setter
    def itmax(self, value: int) -> None:
        self._configure(itmax=value)

    @property
    def ndone(self) -> int:
        return self._config.ndone

    @ndone.setter
    def ndone(self, value: int) -> None:
        self._configure(ndone=value)

    @property
    def adjust_covariance(self) -> bool:
        return self._config.adjust_covariance

    @adjust_covariance.setter
    def adjust_covariance(self, value: bool) -> None:
        self._configure(adjust_covariance=bool(value))

    @property
    def verbose(self) -> int:
        return self._config.verbose

    @verbose.setter
    def verbose(self, value: int) -> None:
        self._configure(verbose=value)

    # =========================================================================
    # Evaluator and data
    # =========================================================================

    @property
    def evaluator(self) -> Optional[Evaluator]:
        return self._evaluator

    @evaluator.setter
    def evaluator(self, evaluator: Optional[Evaluator]) -> None:
        if evaluator is None:
            self._evaluator = None
            self._workspace = None
            self._result = None
            return
        if not isinstance(evaluator, self.evaluator_type):
            raise TypeError(
                f"{type(self).__name__} requires a {self.evaluator_type.__name__}, "
                f"got {type(evaluator).__name__}"
            )
        a = np.asarray(evaluator.initial_parameters(), dtype=np.float64).ravel()
        if a.size == 0:
            raise ValueError("evaluator must provide at least one parameter")
        self._evaluator = evaluator
        self._workspace = Workspace.from_parameters(a)
        self._result = None

    def set_input_data(self, x: ArrayLike, y: ArrayLike, sigma: ArrayLike = 1.0) -> None:
        """Attach samples and their standard deviations.

        Args:
            x: Input points.
            y: Observed values.
            sigma: Standard deviation of every sample, a scalar broadcast to
                all samples or an array with one entry per sample. Must be
                strictly positive.

        Raises:
            ValueError: If the array lengths disagree or sigma is not positive.
        """
        x, y = self._coerce_data(x, y)
        ndat = len(y)
        sig = np.asarray(sigma, dtype=np.float64)
        if sig.ndim == 0:
            sig = np.full(ndat, float(sig))
        else:
            sig = sig.ravel().copy()
            if len(sig) != ndat:
                raise ValueError(
                    f"sigma must have one entry per sample ({ndat}), got {len(sig)}"
                )
        if not np.all(np.isfinite(sig)) or np.any(sig <= 0.0):
            raise ValueError("sigma must be finite and strictly positive")

        self._x, self._y, self._sig = x, y, sig
        self._result = None

    @abc.abstractmethod
    def _coerce_data(
        self, x: ArrayLike, y: ArrayLike
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Validate and convert input data to arrays."""

    def _data_matches_evaluator(self) -> bool:
        return True

    @abc.abstractmethod
    def _evaluate_sample(
        self, i: int, params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Model outputs, shape (nout,), and Jacobian, shape (nout, ma), of sample i."""

    @property
    def x(self) -> Optional[NDArray[np.float64]]:
        return None if self._x is None else self._x.copy()

    @property
    def y(self) -> Optional[NDArray[np.float64]]:
        return None if self._y is None else self._y.copy()

    @property
    def sigma(self) -> Optional[NDArray[np.float64]]:
        return None if self._sig is None else self._sig.copy()

    @property
    def ndat(self) -> int:
        return 0 if self._y is None else len(self._y)

    @property
    def ma(self) -> int:
        return 0 if self._workspace is None else self._workspace.ma

    @property
    def dof(self) -> int:
        """Chi-square degrees of freedom, number of samples minus parameters."""
        return self.ndat - self.ma

    @property
    def is_ready(self) -> bool:
        return (
            self._evaluator is not None
            and self._y is not None
            and len(self._x) == len(self._y)
            and self._data_matches_evaluator()
        )

    # =========================================================================
    # Parameter hold / free
    # =========================================================================

    def _check_index(self, i: int) -> int:
        if self._workspace is None:
            raise NotReadyError("no function evaluator attached")
        if not -self.ma <= i < self.ma:
            raise IndexError(f"parameter index {i} out of range for {self.ma} parameters")
        return i % self.ma

    def hold(self, i: int, value: float) -> None:
        """Pin parameter ``i`` at ``value``; it is excluded from later fits."""
        i = self._check_index(i)
        self._workspace.free[i] = False
        self._workspace.a[i] = value

    def free(self, i: int) -> None:
        """Release parameter ``i`` so the next fit adjusts it again."""
        i = self._check_index(i)
        self._workspace.free[i] = True

    @property
    def held(self) -> NDArray[np.bool_]:
        if self._workspace is None:
            return np.zeros(0, dtype=bool)
        return ~self._workspace.free

    @property
    def a(self) -> Optional[NDArray[np.float64]]:
        """Current parameter vector (initial guess before the first fit)."""
        return None if self._workspace is None else self._workspace.a.copy()

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _rows(self, params: NDArray[np.float64], strict: bool = True) -> Optional[Rows]:
        """Residual rows, Jacobian rows and row weights over all samples.

        Non-finite model output raises EvaluationError when ``strict``;
        otherwise None is returned so the caller can reject the point.
        """
        ma = self.ma
        residuals: List[NDArray[np.float64]] = []
        jacobians: List[NDArray[np.float64]] = []
        weights: List[NDArray[np.float64]] = []

        for i in range(self.ndat):
            self._workspace.nfev += 1
            try:
                values, jac = self._evaluate_sample(i, params.copy())
            except Exception as e:
                raise EvaluationError(f"evaluation of sample {i} failed: {e}") from e

            observed = np.atleast_1d(self._y[i])
            nout = len(observed)
            if values.shape != (nout,):
                raise EvaluationError(
                    f"sample {i}: expected {nout} model outputs, got shape {values.shape}"
                )
            if jac.shape != (nout, ma):
                raise EvaluationError(
                    f"sample {i}: expected derivatives of shape {(nout, ma)}, "
                    f"got {jac.shape}"
                )
            if not (np.all(np.isfinite(values)) and np.all(np.isfinite(jac))):
                if not strict:
                    return None
                raise EvaluationError(f"sample {i}: evaluator returned non-finite values")

            residuals.append(observed - values)
            jacobians.append(jac)
            weights.append(np.full(nout, 1.0 / (self._sig[i] * self._sig[i])))

        return np.concatenate(residuals), np.vstack(jacobians), np.concatenate(weights)

    def _curvature(self, params: NDArray[np.float64]) -> Curvature:
        dy, jac, w = self._rows(params)
        return build_curvature(dy, jac, w, self._workspace.active, self.dof)

    def _trial_curvature(self, params: NDArray[np.float64]) -> Curvature:
        """Curvature at a trial step; infinite chi-square where the model is undefined."""
        rows = self._rows(params, strict=False)
        if rows is None:
            mfit = self._workspace.mfit
            return Curvature(
                alpha=np.zeros((mfit, mfit)), beta=np.zeros(mfit), chisq=np.inf, mse=np.inf
            )
        return build_curvature(*rows, self._workspace.active, self.dof)

    # =========================================================================
    # Fitting
    # =========================================================================

    def fit(
        self,
        *,
        raise_on_failure: bool = True,
        callback: Optional[Callable[[IterationState], None]] = None,
        history: bool = False,
    ) -> FitResult:
        """Fit the parameters with the Levenberg-Marquardt method.

        Args:
            raise_on_failure: If True (default) failures raise a FittingError
                subclass. If False they are returned as an unsuccessful
                FitResult tagged with the failure reason.
            callback: Optional function called with an IterationState after
                every iteration.
            history: If True, include the list of IterationState records in
                the result.

        Returns:
            FitResult describing the fit.

        Raises:
            NotReadyError: If no evaluator or consistent data is attached, no
                parameter is free, or there are not more samples than
                parameters.
            EvaluationError: If the evaluator fails.
            SingularMatrixError: If a curvature or covariance matrix is singular.
            TooManyIterationsError: If the iteration budget is exhausted.
        """
        self._result = None
        verbose = self._config.verbose
        states: Optional[List[IterationState]] = [] if history else None
        activated = False

        try:
            self._check_ready()
            ws = self._workspace
            ws.activate()
            activated = True
            if verbose >= 2:
                print(
                    f"[LM] Fitting {ws.mfit} of {ws.ma} parameters "
                    f"to {self.ndat} samples (dof={self.dof})"
                )
            levenberg_marquardt(
                self._curvature,
                ws,
                self._config,
                callback,
                states,
                trial_fn=self._trial_curvature,
            )
            covariance, alpha = self._finalize()
        except FittingError as e:
            if verbose >= 0:
                print("[LM] NOT CONVERGED")
                print(f"    {e}")
            if raise_on_failure:
                raise
            return self._failure(e, states, activated)

        ws = self._workspace
        self._result = FitResult(
            params=ws.a.copy(),
            covariance=covariance,
            alpha=alpha,
            chisq=ws.chisq,
            mse=ws.mse,
            dof=self.dof,
            iterations=ws.iterations,
            nfev=ws.nfev,
            success=True,
            message=f"Converged after {ws.iterations} iterations",
            reason=None,
            held=self.held,
            history=states,
        )

        if verbose >= 0:
            print("[LM] CONVERGED")
            print(f"    Chi-square: {ws.chisq:.4e} (dof={self.dof}), mse: {ws.mse:.4e}")
            print(f"    Iterations: {ws.iterations}, evaluations: {ws.nfev}")

        return self._result

    def _check_ready(self) -> None:
        if self._evaluator is None:
            raise NotReadyError("no function evaluator attached")
        if self._y is None:
            raise NotReadyError("no input data attached")
        if not self.is_ready:
            raise NotReadyError("input data does not match the function evaluator")
        if not self._workspace.free.any():
            raise NotReadyError("all parameters are held")
        if self.dof <= 0:
            raise NotReadyError(
                f"{self.ndat} samples cannot constrain {self.ma} parameters "
                f"(degrees of freedom {self.dof})"
            )

    def _finalize(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        ws = self._workspace
        alpha = expand_to_full(ws.alpha, ws.active, ws.ma)

        if not self._config.adjust_covariance:
            return expand_to_full(ws.covar, ws.active, ws.ma), alpha

        if self._config.verbose >= 2:
            print("    [LM] Recomputing covariance from the Jacobian at the solution")
        _, jac, w = self._rows(ws.a)
        try:
            block = adjusted_covariance(jac[:, ws.active], w, self.dof)
        except np.linalg.LinAlgError as e:
            raise SingularMatrixError(f"cannot invert J^T W J: {e}") from e
        return expand_to_full(block, ws.active, ws.ma), alpha

    def _failure(
        self,
        error: FittingError,
        states: Optional[List[IterationState]],
        activated: bool,
    ) -> FitResult:
        # a fit that fails before activation has no statistics of its own
        ws = self._workspace
        return FitResult(
            params=None if ws is None else ws.a.copy(),
            covariance=None,
            alpha=None,
            chisq=ws.chisq if activated else float("nan"),
            mse=ws.mse if activated else float("nan"),
            dof=self.dof,
            iterations=ws.iterations if activated else 0,
            nfev=ws.nfev if activated else 0,
            success=False,
            message=str(error),
            reason=error.reason,
            held=self.held,
            history=states,
        )

    # =========================================================================
    # Results
    # =========================================================================

    @property
    def result_available(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> FitResult:
        if self._result is None:
            raise NotAvailableError("no fit result available; call fit() first")
        return self._result

    @property
    def covar(self) -> NDArray[np.float64]:
        return self.result.covariance.copy()

    @property
    def alpha(self) -> NDArray[np.float64]:
        return self.result.alpha.copy()

    @property
    def chisq(self) -> float:
        return self.result.chisq

    @property
    def mse(self) -> float:
        return self.result.mse

    @property
    def p(self) -> float:
        """Probability that a chi-square this small or smaller occurs by chance."""
        return self.result.p

    @property
    def q(self) -> float:
        return self.result.q


class SingleDimensionFitter(LevenbergMarquardtFitter):
    """Fit a single-output model of one input variable.

    Example:
        >>> import numpy as np
        >>> from marquardt import SingleDimensionFitter, SingleDimensionFunction
        >>> line = SingleDimensionFunction(lambda x, p: p[0] + p[1] * x, p0=[0.0, 0.0])
        >>> x = np.arange(5.0)
        >>> fitter = SingleDimensionFitter(line, x, 2.0 + 3.0 * x, verbose=-1)
        >>> fitter.fit().params  # approximately [2, 3]
    """

    evaluator_type = SingleDimensionEvaluator

    def _coerce_data(
        self, x: ArrayLike, y: ArrayLike
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.ndim != 1 or y.ndim != 1:
            raise ValueError(f"x and y must be 1-D, got shapes {x.shape} and {y.shape}")
        if len(x) != len(y):
            raise ValueError(f"x and y must have equal length, got {len(x)} and {len(y)}")
        return x.copy(), y.copy()

    def _evaluate_sample(
        self, i: int, params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        value, derivatives = self._evaluator.evaluate(i, float(self._x[i]), params)
        values = np.atleast_1d(np.asarray(value, dtype=np.float64))
        jac = np.asarray(derivatives, dtype=np.float64).reshape(1, -1)
        return values, jac


class MultiDimensionFitter(LevenbergMarquardtFitter):
    """Fit a single-output model of several input variables.

    ``x`` has one row per sample; ``y`` one value per sample.
    """

    evaluator_type = MultiDimensionEvaluator

    def _coerce_data(
        self, x: ArrayLike, y: ArrayLike
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.ndim == 1:
            x = x[:, np.newaxis]
        if x.ndim != 2 or y.ndim != 1:
            raise ValueError(f"x must be 2-D and y 1-D, got shapes {x.shape} and {y.shape}")
        if x.shape[0] != len(y):
            raise ValueError(
                f"x and y must have the same number of samples, got {x.shape[0]} and {len(y)}"
            )
        return x.copy(), y.copy()

    def _data_matches_evaluator(self) -> bool:
        return self._x.shape[1] == self._evaluator.n_dimensions

    def _evaluate_sample(
        self, i: int, params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        value, derivatives = self._evaluator.evaluate(i, self._x[i].copy(), params)
        values = np.atleast_1d(np.asarray(value, dtype=np.float64))
        jac = np.asarray(derivatives, dtype=np.float64).reshape(1, -1)
        return values, jac


class MultiVariateFitter(LevenbergMarquardtFitter):
    """Fit a vector-valued model of several input variables.

    ``x`` has shape (ndat, n_dimensions) and ``y`` shape (ndat, n_variables).
    Each sample has a single standard deviation shared by all its outputs.
    """

    evaluator_type = MultiVariateEvaluator

    def _coerce_data(
        self, x: ArrayLike, y: ArrayLike
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.ndim == 1:
            x = x[:, np.newaxis]
        if y.ndim == 1:
            y = y[:, np.newaxis]
        if x.ndim != 2 or y.ndim != 2:
            raise ValueError(f"x and y must be 2-D, got shapes {x.shape} and {y.shape}")
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"x and y must have the same number of samples, "
                f"got {x.shape[0]} and {y.shape[0]}"
            )
        return x.copy(), y.copy()

    def _data_matches_evaluator(self) -> bool:
        return (
            self._x.shape[1] == self._evaluator.n_dimensions
            and self._y.shape[1] == self._evaluator.n_variables
        )

    def _evaluate_sample(
        self, i: int, params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        values, jacobian = self._evaluator.evaluate(i, self._x[i].copy(), params)
        values = np.asarray(values, dtype=np.float64).ravel()
        jac = np.asarray(jacobian, dtype=np.float64)
        if jac.ndim == 1:
            jac = jac.reshape(len(values), -1)
        return values, jac
