"""Pytest fixtures and benchmark models for marquardt testing.

This module provides:
- Evaluators with analytic derivatives for the three fitter shapes
- Noise-free datasets with known parameters and starting guesses
- Evaluators that fail in controlled ways

Every dataset is generated from its model at the true parameters, so a
converged fit reproduces them and leaves chi-square at zero.
"""

import numpy as np
import pytest
from numpy.typing import NDArray

from marquardt import (
    MultiDimensionEvaluator,
    MultiVariateEvaluator,
    SingleDimensionEvaluator,
    SingleDimensionFitter,
)


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "robustness: mark test as robustness/edge case test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (run on limited CI matrix)"
    )


# =============================================================================
# Single-Dimension Models
# =============================================================================


class LineEvaluator(SingleDimensionEvaluator):
    """y = a + b*x"""

    def __init__(self, guess=(0.0, 0.0)):
        self.guess = np.asarray(guess, dtype=float)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, x, params):
        return params[0] + params[1] * x, np.array([1.0, x])


class ExponentialDecayEvaluator(SingleDimensionEvaluator):
    """y = A*exp(-k*x) + c"""

    def __init__(self, guess=(4.0, 1.0, 0.0)):
        self.guess = np.asarray(guess, dtype=float)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, x, params):
        amplitude, rate, offset = params
        e = np.exp(-rate * x)
        return amplitude * e + offset, np.array([e, -amplitude * x * e, 1.0])


class GaussianEvaluator(SingleDimensionEvaluator):
    """y = A*exp(-(x - mu)^2 / (2*s^2))"""

    def __init__(self, guess=(2.5, 0.3, 1.0)):
        self.guess = np.asarray(guess, dtype=float)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, x, params):
        amplitude, mu, s = params
        u = (x - mu) / s
        g = np.exp(-0.5 * u * u)
        value = amplitude * g
        return value, np.array([g, value * u / s, value * u * u / s])


# =============================================================================
# Multi-Dimension and Multi-Variate Models
# =============================================================================


class PlaneEvaluator(MultiDimensionEvaluator):
    """z = a + b*x0 + c*x1"""

    n_dimensions = 2

    def initial_parameters(self):
        return np.zeros(3)

    def evaluate(self, i, point, params):
        return params[0] + params[1] * point[0] + params[2] * point[1], np.array(
            [1.0, point[0], point[1]]
        )


class GaussianBlobEvaluator(MultiDimensionEvaluator):
    """z = A*exp(-((x0 - m0)^2 + (x1 - m1)^2) / (2*s^2))"""

    n_dimensions = 2

    def initial_parameters(self):
        return np.array([1.5, 0.2, -0.3, 0.8])

    def evaluate(self, i, point, params):
        amplitude, m0, m1, s = params
        d0 = point[0] - m0
        d1 = point[1] - m1
        r2 = d0 * d0 + d1 * d1
        value = amplitude * np.exp(-0.5 * r2 / (s * s))
        return value, np.array(
            [value / amplitude, value * d0 / (s * s), value * d1 / (s * s), value * r2 / s**3]
        )


class CircularMotionEvaluator(MultiVariateEvaluator):
    """[x, y] = [r*cos(w*t), r*sin(w*t)]"""

    n_dimensions = 1
    n_variables = 2

    def __init__(self, guess=(1.5, 1.2)):
        self.guess = np.asarray(guess, dtype=float)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, point, params):
        r, w = params
        t = point[0]
        c = np.cos(w * t)
        s = np.sin(w * t)
        values = np.array([r * c, r * s])
        jacobian = np.array([[c, -r * t * s], [s, r * t * c]])
        return values, jacobian


# =============================================================================
# Failing Models
# =============================================================================


class FailingEvaluator(SingleDimensionEvaluator):
    """Raises on every evaluation."""

    def initial_parameters(self):
        return np.array([1.0, 1.0])

    def evaluate(self, i, x, params):
        raise RuntimeError("model blew up")


class NaNEvaluator(SingleDimensionEvaluator):
    """Returns NaN predictions."""

    def initial_parameters(self):
        return np.array([1.0, 1.0])

    def evaluate(self, i, x, params):
        return float("nan"), np.array([1.0, x])


class WrongSizeEvaluator(SingleDimensionEvaluator):
    """Returns fewer derivatives than parameters."""

    def initial_parameters(self):
        return np.array([1.0, 1.0, 1.0])

    def evaluate(self, i, x, params):
        return params[0], np.array([1.0])


class DeadParameterEvaluator(SingleDimensionEvaluator):
    """y = a + b*x with a third parameter that does not affect the model."""

    def initial_parameters(self):
        return np.array([0.0, 0.0, 1.0])

    def evaluate(self, i, x, params):
        return params[0] + params[1] * x, np.array([1.0, x, 0.0])


class SqrtOffsetEvaluator(SingleDimensionEvaluator):
    """y = a*x + sqrt(b), undefined for b < 0."""

    def initial_parameters(self):
        return np.array([0.0, 1.0])

    def evaluate(self, i, x, params):
        a, b = params
        with np.errstate(invalid="ignore", divide="ignore"):
            root = np.sqrt(b)
            return a * x + root, np.array([x, 0.5 / root])


# =============================================================================
# Datasets
# =============================================================================

LINE_PARAMS = np.array([2.0, 3.0])
LINE_X = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
LINE_Y = LINE_PARAMS[0] + LINE_PARAMS[1] * LINE_X

EXPONENTIAL_PARAMS = np.array([5.0, 1.3, 0.5])
EXPONENTIAL_X = np.linspace(0.0, 4.0, 20)
EXPONENTIAL_Y = EXPONENTIAL_PARAMS[0] * np.exp(-EXPONENTIAL_PARAMS[1] * EXPONENTIAL_X) + (
    EXPONENTIAL_PARAMS[2]
)

GAUSSIAN_PARAMS = np.array([3.0, 0.5, 1.2])
GAUSSIAN_X = np.linspace(-4.0, 4.0, 41)
GAUSSIAN_Y = GAUSSIAN_PARAMS[0] * np.exp(
    -0.5 * ((GAUSSIAN_X - GAUSSIAN_PARAMS[1]) / GAUSSIAN_PARAMS[2]) ** 2
)

_g0, _g1 = np.meshgrid(np.linspace(-2.0, 2.0, 7), np.linspace(-2.0, 2.0, 7))
GRID_X = np.column_stack([_g0.ravel(), _g1.ravel()])

PLANE_PARAMS = np.array([1.0, -2.0, 0.5])
PLANE_Y = PLANE_PARAMS[0] + PLANE_PARAMS[1] * GRID_X[:, 0] + PLANE_PARAMS[2] * GRID_X[:, 1]

BLOB_PARAMS = np.array([2.0, 0.4, -0.1, 1.1])
BLOB_Y = BLOB_PARAMS[0] * np.exp(
    -0.5
    * ((GRID_X[:, 0] - BLOB_PARAMS[1]) ** 2 + (GRID_X[:, 1] - BLOB_PARAMS[2]) ** 2)
    / BLOB_PARAMS[3] ** 2
)

CIRCLE_PARAMS = np.array([2.0, 1.5])
CIRCLE_T = np.linspace(0.0, 1.0, 12)[:, np.newaxis]
CIRCLE_Y = np.column_stack(
    [
        CIRCLE_PARAMS[0] * np.cos(CIRCLE_PARAMS[1] * CIRCLE_T[:, 0]),
        CIRCLE_PARAMS[0] * np.sin(CIRCLE_PARAMS[1] * CIRCLE_T[:, 0]),
    ]
)


def noisy_line(n: int = 30, seed: int = 0) -> tuple:
    """Line samples with Gaussian noise and varying standard deviations."""
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 5.0, n)
    sigma = 0.1 + 0.05 * rng.random(n)
    y = LINE_PARAMS[0] + LINE_PARAMS[1] * x + sigma * rng.standard_normal(n)
    return x, y, sigma


def weighted_lstsq(x: NDArray[np.float64], y, sigma) -> NDArray[np.float64]:
    """Direct weighted least-squares solution of y = a + b*x."""
    design = np.column_stack([np.ones_like(x), x]) / sigma[:, np.newaxis]
    solution, *_ = np.linalg.lstsq(design, y / sigma, rcond=None)
    return solution


@pytest.fixture
def line_fitter():
    """Single-dimension fitter loaded with the noise-free line dataset."""
    return SingleDimensionFitter(LineEvaluator(), LINE_X, LINE_Y, 1.0, verbose=-1)
