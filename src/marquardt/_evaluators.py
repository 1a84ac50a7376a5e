"""Function evaluator contracts consumed by the fitters.

An evaluator supplies the initial parameter guess and, for every sample,
the model prediction together with its partial derivatives with respect to
each parameter. Three shapes are supported:

- SingleDimensionEvaluator: scalar input, scalar output
- MultiDimensionEvaluator: vector input, scalar output
- MultiVariateEvaluator: vector input, vector output (full Jacobian)

The *Function classes adapt plain Python callables to these contracts.
"""

import abc
from typing import Optional, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from marquardt._jacobian import ModelFn, compute_jacobian


class SingleDimensionEvaluator(abc.ABC):
    """Model of one input variable with a single output."""

    @abc.abstractmethod
    def initial_parameters(self) -> ArrayLike:
        """Initial guess of the parameters. Its length fixes the parameter count."""

    @abc.abstractmethod
    def evaluate(
        self, i: int, x: float, params: NDArray[np.float64]
    ) -> Tuple[float, ArrayLike]:
        """Evaluate sample ``i`` at ``x``.

        Returns:
            Tuple of the model value and the derivatives with respect to
            every parameter (length equal to the parameter count).
        """


class MultiDimensionEvaluator(abc.ABC):
    """Model of several input variables with a single output."""

    @property
    @abc.abstractmethod
    def n_dimensions(self) -> int:
        """Length of the input points."""

    @abc.abstractmethod
    def initial_parameters(self) -> ArrayLike:
        """Initial guess of the parameters. Its length fixes the parameter count."""

    @abc.abstractmethod
    def evaluate(
        self, i: int, point: NDArray[np.float64], params: NDArray[np.float64]
    ) -> Tuple[float, ArrayLike]:
        """Evaluate sample ``i`` at ``point``, returning value and derivatives."""


class MultiVariateEvaluator(abc.ABC):
    """Model of several input variables with several outputs."""

    @property
    @abc.abstractmethod
    def n_dimensions(self) -> int:
        """Length of the input points."""

    @property
    @abc.abstractmethod
    def n_variables(self) -> int:
        """Number of model outputs."""

    @abc.abstractmethod
    def initial_parameters(self) -> ArrayLike:
        """Initial guess of the parameters. Its length fixes the parameter count."""

    @abc.abstractmethod
    def evaluate(
        self, i: int, point: NDArray[np.float64], params: NDArray[np.float64]
    ) -> Tuple[ArrayLike, ArrayLike]:
        """Evaluate sample ``i`` at ``point``.

        Returns:
            Tuple of the model outputs, shape (n_variables,), and the Jacobian
            of the outputs with respect to the parameters, shape
            (n_variables, n_params).
        """


Evaluator = Union[SingleDimensionEvaluator, MultiDimensionEvaluator, MultiVariateEvaluator]


class _CallableModel:
    def __init__(
        self,
        func: ModelFn,
        p0: ArrayLike,
        jac: Optional[ModelFn] = None,
        epsilon: float = 1e-8,
    ) -> None:
        p0 = np.asarray(p0, dtype=np.float64).ravel()
        if p0.size == 0:
            raise ValueError("p0 must be non-empty")
        self.func = func
        self.jac = jac
        self.epsilon = epsilon
        self._p0 = p0

    def initial_parameters(self) -> NDArray[np.float64]:
        return self._p0.copy()

    def _evaluate(
        self, x: object, params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        return compute_jacobian(self.func, x, params, self.jac, self.epsilon)


class SingleDimensionFunction(_CallableModel, SingleDimensionEvaluator):
    """Adapt ``func(x, params) -> float`` to a SingleDimensionEvaluator.

    ``jac(x, params)`` must return the derivatives with respect to the
    parameters; without it forward differences are used.
    """

    def evaluate(
        self, i: int, x: float, params: NDArray[np.float64]
    ) -> Tuple[float, NDArray[np.float64]]:
        f0, J = self._evaluate(x, params)
        return f0[0], J[0]


class MultiDimensionFunction(_CallableModel, MultiDimensionEvaluator):
    """Adapt ``func(point, params) -> float`` to a MultiDimensionEvaluator."""

    def __init__(
        self,
        func: ModelFn,
        p0: ArrayLike,
        n_dimensions: int,
        jac: Optional[ModelFn] = None,
        epsilon: float = 1e-8,
    ) -> None:
        super().__init__(func, p0, jac=jac, epsilon=epsilon)
        self._n_dimensions = int(n_dimensions)

    @property
    def n_dimensions(self) -> int:
        return self._n_dimensions

    def evaluate(
        self, i: int, point: NDArray[np.float64], params: NDArray[np.float64]
    ) -> Tuple[float, NDArray[np.float64]]:
        f0, J = self._evaluate(point, params)
        return f0[0], J[0]


class MultiVariateFunction(_CallableModel, MultiVariateEvaluator):
    """Adapt ``func(point, params) -> array`` to a MultiVariateEvaluator."""

    def __init__(
        self,
        func: ModelFn,
        p0: ArrayLike,
        n_dimensions: int,
        n_variables: int,
        jac: Optional[ModelFn] = None,
        epsilon: float = 1e-8,
    ) -> None:
        super().__init__(func, p0, jac=jac, epsilon=epsilon)
        self._n_dimensions = int(n_dimensions)
        self._n_variables = int(n_variables)

    @property
    def n_dimensions(self) -> int:
        return self._n_dimensions

    @property
    def n_variables(self) -> int:
        return self._n_variables

    def evaluate(
        self, i: int, point: NDArray[np.float64], params: NDArray[np.float64]
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        return self._evaluate(point, params)
