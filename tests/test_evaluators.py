"""Tests for evaluator adapters and data validation of the multi-input fitters."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from marquardt import (
    MultiDimensionFitter,
    MultiDimensionFunction,
    MultiVariateFitter,
    MultiVariateFunction,
    NotReadyError,
    SingleDimensionFunction,
)
from marquardt._jacobian import compute_jacobian
from tests.conftest import (
    CIRCLE_T,
    CIRCLE_Y,
    GRID_X,
    PLANE_Y,
    CircularMotionEvaluator,
    PlaneEvaluator,
)


# =============================================================================
# Callable Adapter Tests
# =============================================================================


def test_forward_difference_jacobian_matches_analytic():
    def model(x, p):
        return np.array([p[0] * np.exp(p[1] * x), p[0] + p[1] ** 2 * x])

    params = np.array([1.5, -0.4])
    f0, J = compute_jacobian(model, 2.0, params)

    expected = np.array(
        [[np.exp(-0.8), 1.5 * 2.0 * np.exp(-0.8)], [1.0, 2.0 * -0.4 * 2.0]]
    )
    assert_allclose(f0, model(2.0, params))
    assert_allclose(J, expected, rtol=1e-6)


def test_single_dimension_function_shapes():
    evaluator = SingleDimensionFunction(lambda x, p: p[0] * x**2, p0=[3.0])
    value, derivatives = evaluator.evaluate(0, 2.0, np.array([3.0]))
    assert value == pytest.approx(12.0)
    assert derivatives.shape == (1,)
    assert derivatives[0] == pytest.approx(4.0, rel=1e-6)


def test_initial_parameters_are_copies():
    evaluator = SingleDimensionFunction(lambda x, p: p[0], p0=[1.0, 2.0])
    first = evaluator.initial_parameters()
    first[0] = 99.0
    assert_allclose(evaluator.initial_parameters(), [1.0, 2.0])


def test_empty_initial_parameters_rejected():
    with pytest.raises(ValueError):
        SingleDimensionFunction(lambda x, p: 0.0, p0=[])


def test_multi_variate_function_analytic_jacobian():
    evaluator = MultiVariateFunction(
        lambda point, p: np.array([p[0] * point[0], p[1] * point[1]]),
        p0=[1.0, 1.0],
        n_dimensions=2,
        n_variables=2,
        jac=lambda point, p: np.diag(point),
    )
    values, jacobian = evaluator.evaluate(0, np.array([2.0, 3.0]), np.array([1.0, 1.0]))
    assert_allclose(values, [2.0, 3.0])
    assert_allclose(jacobian, [[2.0, 0.0], [0.0, 3.0]])


# =============================================================================
# Multi-Dimension Fitter Tests
# =============================================================================


def test_multi_dimension_dimension_mismatch_not_ready():
    fitter = MultiDimensionFitter(PlaneEvaluator(), GRID_X[:, :1], PLANE_Y, verbose=-1)
    assert not fitter.is_ready
    with pytest.raises(NotReadyError):
        fitter.fit()


def test_multi_dimension_sample_count_mismatch():
    fitter = MultiDimensionFitter(PlaneEvaluator(), verbose=-1)
    with pytest.raises(ValueError):
        fitter.set_input_data(GRID_X, PLANE_Y[:-1])


def test_multi_dimension_function_fit():
    evaluator = MultiDimensionFunction(
        lambda point, p: p[0] + p[1] * point[0] + p[2] * point[1],
        p0=[0.0, 0.0, 0.0],
        n_dimensions=2,
    )
    result = MultiDimensionFitter(evaluator, GRID_X, PLANE_Y, verbose=-1).fit()
    assert_allclose(result.params, [1.0, -2.0, 0.5], atol=1e-6)


# =============================================================================
# Multi-Variate Fitter Tests
# =============================================================================


def test_multi_variate_variable_mismatch_not_ready():
    fitter = MultiVariateFitter(CircularMotionEvaluator(), CIRCLE_T, CIRCLE_Y[:, :1], verbose=-1)
    assert not fitter.is_ready
    with pytest.raises(NotReadyError):
        fitter.fit()


def test_multi_variate_per_sample_sigma():
    sigma = np.linspace(0.5, 2.0, len(CIRCLE_T))
    fitter = MultiVariateFitter(CircularMotionEvaluator(), CIRCLE_T, CIRCLE_Y, sigma, verbose=-1)
    result = fitter.fit()
    assert_allclose(result.params, [2.0, 1.5], atol=1e-5)
    assert_allclose(fitter.sigma, sigma)
