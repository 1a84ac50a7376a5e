"""Levenberg-Marquardt iteration controller.

This module drives the damped Gauss-Newton iteration over a Workspace:
solve the augmented normal equations, try the step, and accept it or raise
the damping. After ``ndone`` small-improvement iterations a final pass with
zero damping produces the covariance of the active parameters.
"""

from typing import Callable, List, Optional

import numpy as np
from numpy.typing import NDArray

from marquardt._curvature import Curvature
from marquardt._errors import SingularMatrixError, TooManyIterationsError
from marquardt._linalg import gauss_jordan
from marquardt._types import FitterConfig, IterationState
from marquardt._workspace import Workspace


def levenberg_marquardt(
    curvature_fn: Callable[[NDArray[np.float64]], Curvature],
    ws: Workspace,
    config: FitterConfig,
    callback: Optional[Callable[[IterationState], None]] = None,
    history: Optional[List[IterationState]] = None,
    trial_fn: Optional[Callable[[NDArray[np.float64]], Curvature]] = None,
) -> int:
    """Run the Levenberg-Marquardt iteration in place on ``ws``.

    On return ``ws.a`` holds the fitted parameters, ``ws.alpha`` the
    curvature at the solution and ``ws.covar`` the inverse of the undamped
    curvature over the active parameters.

    Args:
        curvature_fn: Function mapping a full parameter vector to its Curvature.
        ws: Workspace, activated for the current set of free parameters.
        config: Iteration settings.
        callback: Optional function called with an IterationState after
            every accept/reject decision.
        history: Optional list that collects the IterationState records.
        trial_fn: Curvature function for trial steps, defaulting to
            ``curvature_fn``. A trial whose chi-square is not finite is
            rejected like any other step that does not improve the fit.

    Returns:
        Number of iterations performed, including the final pass.

    Raises:
        SingularMatrixError: If the augmented curvature matrix is singular.
        TooManyIterationsError: If ``config.itmax`` iterations pass without
            reaching ``config.ndone`` small-improvement iterations.
        EvaluationError: Propagated from ``curvature_fn``.
    """
    verbose = config.verbose
    if trial_fn is None:
        trial_fn = curvature_fn

    ws.store(curvature_fn(ws.a))
    alamda = config.initial_lambda
    done = 0
    ochisq = ws.chisq

    if verbose >= 2:
        print(f"    [LM] Initial chisq={ochisq:.6e}, {ws.mfit}/{ws.ma} free parameters")

    for iteration in range(config.itmax):
        ws.iterations = iteration + 1
        if done == config.ndone:
            # last pass, pure Gauss-Newton
            alamda = 0.0

        augmented = ws.alpha.copy()
        augmented[np.diag_indices_from(augmented)] *= 1.0 + alamda

        try:
            covar, da = gauss_jordan(augmented, ws.beta)
        except np.linalg.LinAlgError as e:
            raise SingularMatrixError(
                f"singular curvature matrix at iteration {iteration} (lambda={alamda:.3e})"
            ) from e
        ws.covar = covar

        if done == config.ndone:
            if verbose >= 1:
                print(f"    [LM] Final pass at iteration {iteration}: chisq={ws.chisq:.6e}")
            return ws.iterations

        atry = ws.trial(da)
        trial = trial_fn(atry)

        if abs(trial.chisq - ochisq) < max(config.tol, config.tol * trial.chisq):
            done += 1

        step_lambda = alamda
        accepted = trial.chisq < ochisq
        if accepted:
            alamda *= config.lambda_decrease
            ochisq = trial.chisq
            ws.accept(atry, trial)
        else:
            alamda *= config.lambda_increase

        if verbose >= 1:
            status = "accept" if accepted else "reject"
            print(
                f"    [LM] Iteration {iteration:4d}: lambda={step_lambda:.3e}, "
                f"chisq={trial.chisq:.6e} ({status}), done={done}"
            )

        if callback is not None or history is not None:
            state = IterationState(
                iteration=iteration,
                lambda_=step_lambda,
                chisq=ochisq,
                chisq_try=trial.chisq,
                accepted=accepted,
                params=ws.a.copy(),
            )
            if history is not None:
                history.append(state)
            if callback is not None:
                callback(state)

    raise TooManyIterationsError(
        f"too many iterations: no convergence after {config.itmax} iterations"
    )
